"""Top-down pass: subspace cardinality of every node, and the leaf partition.

Both walks follow ``BinaryTree.topological_order()``, a depth-first preorder,
and keep a subspace only until the node it belongs to has been visited. At
most one pending right sibling per level is alive, so memory grows with the
tree depth rather than its width.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import numpy as np
from loguru import logger

from fantree.domain import (
    CategoricalDomain,
    ContinuousDomain,
    Subspace,
    initial_subspace,
    subspace_cardinality,
    validate_domain_count,
)
from fantree.nodes import ROOT_INDEX, BinaryTree


def compute_subspace_sizes(
    tree: BinaryTree,
    domains: Sequence[ContinuousDomain | CategoricalDomain],
    *,
    dtype: np.dtype | type[np.floating] = np.float64,
) -> np.ndarray:
    """Compute the cardinality of the input subspace reachable through each node.

    Args:
        tree (BinaryTree): The tree to size.
        domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.
        dtype (np.dtype | type[np.floating]): Floating dtype of the result.

    Returns:
        np.ndarray: 1-D array indexed by node identifier; the root entry equals
            the product of all domain sizes.

    Raises:
        FeatureCountMismatchError: If ``domains`` does not match ``tree.num_features``.
    """
    validate_domain_count(domains, tree.num_features)
    sizes = np.zeros(len(tree), dtype=dtype)
    peak_pending = 0
    for node_index, subspace, pending in _walk_subspaces(tree, domains):
        sizes[node_index] = subspace_cardinality(subspace)
        peak_pending = max(peak_pending, pending)
    logger.debug(
        "Subspace sizes computed",
        node_count=len(tree),
        root_size=float(sizes[ROOT_INDEX]),
        peak_pending_subspaces=peak_pending,
    )
    return sizes


def partition(
    tree: BinaryTree,
    domains: Sequence[ContinuousDomain | CategoricalDomain],
) -> list[Subspace]:
    """Return the bounding description of every leaf.

    The leaf subspaces are disjoint and together cover the declared input
    space. Leaves appear in ``tree.leaf_indices()`` order.

    Args:
        tree (BinaryTree): The tree to partition.
        domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.

    Returns:
        list[Subspace]: One subspace per leaf.

    Raises:
        FeatureCountMismatchError: If ``domains`` does not match ``tree.num_features``.
    """
    validate_domain_count(domains, tree.num_features)
    return [subspace for node_index, subspace, _ in _walk_subspaces(tree, domains) if tree[node_index].is_leaf]


def _walk_subspaces(
    tree: BinaryTree,
    domains: Sequence[ContinuousDomain | CategoricalDomain],
) -> Iterator[tuple[int, Subspace, int]]:
    """Yield ``(node_index, subspace, pending_count)`` in topological order.

    Args:
        tree (BinaryTree): The tree to walk.
        domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.

    Yields:
        tuple[int, Subspace, int]: The node, its bounding description, and how
            many subspaces were held in memory when the node was visited.
    """
    pending: dict[int, Subspace] = {ROOT_INDEX: initial_subspace(domains)}
    for node_index in tree.topological_order():
        subspace = pending.pop(node_index)
        node = tree[node_index]
        if node.children is not None and node.split is not None:
            left, right = node.children
            pending[left], pending[right] = node.split.compute_subspaces(subspace)
        yield node_index, subspace, len(pending) + 1
