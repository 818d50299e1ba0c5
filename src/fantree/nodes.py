"""Binary tree container: splits, nodes, and an adapter for fitted scikit-learn trees.

The fANOVA engine only reads this container. Nodes are stored in a flat list
indexed by node identifier; children always refer to other indices in the same
list and the root is node 0.
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from sklearn.tree import DecisionTreeRegressor

from fantree.domain import CategorySet, ContinuousRange, Subspace, SubspaceEntry
from fantree.exceptions import FeatureCountMismatchError

ROOT_INDEX: int = 0

_TREE_LEAF: int = -1  # scikit-learn marks missing children with -1

# Every BinaryTree gets a fresh version; caches built for one version are stale for any other.
_topology_versions: Iterator[int] = itertools.count(1)


# ---------------------------------------------------------------------------
# Public interface -- Splits
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Split:
    """An axis-aligned binary split on one feature.

    Exactly one of ``threshold`` (continuous rule: ``x <= threshold`` goes
    left) or ``left_categories`` (categorical rule: codes in the set go left)
    is set.

    Attributes:
        feature_index (int): Feature the split tests.
        threshold (float | None): Threshold of a continuous split.
        left_categories (frozenset[int] | None): Codes routed left by a
            categorical split.
    """

    feature_index: int
    threshold: float | None = None
    left_categories: frozenset[int] | None = None

    def __post_init__(self) -> None:
        """Validate that exactly one decision rule is present.

        Raises:
            ValueError: If the feature index is negative or the rule is ambiguous.
        """
        if self.feature_index < 0:
            raise ValueError(f"feature_index must be >= 0, got {self.feature_index}")
        if (self.threshold is None) == (self.left_categories is None):
            raise ValueError("A split needs exactly one of 'threshold' or 'left_categories'")

    @property
    def is_categorical(self) -> bool:
        """Whether the split routes by category membership."""
        return self.left_categories is not None

    def goes_left(self, value: float) -> bool:
        """Return True if ``value`` is routed to the left child.

        Args:
            value (float): The feature value (a category code for categorical splits).

        Returns:
            bool: True for the left child, False for the right child. Non-finite
                values never match a category, so they go right on categorical splits.
        """
        if self.left_categories is not None:
            return math.isfinite(value) and int(value) in self.left_categories
        return value <= self.threshold  # type: ignore[operator]

    def compute_subspaces(self, subspace: Subspace) -> tuple[Subspace, Subspace]:
        """Partition ``subspace`` into the left and right child subspaces.

        Only the split feature's entry changes; all other entries are shared.

        Args:
            subspace (Subspace): The bounding description reaching this split.

        Returns:
            tuple[Subspace, Subspace]: ``(left_subspace, right_subspace)``.
        """
        left_entry, right_entry = self._split_entry(subspace[self.feature_index])
        left = (*subspace[: self.feature_index], left_entry, *subspace[self.feature_index + 1 :])
        right = (*subspace[: self.feature_index], right_entry, *subspace[self.feature_index + 1 :])
        return left, right

    def _split_entry(self, entry: SubspaceEntry) -> tuple[SubspaceEntry, SubspaceEntry]:
        if self.left_categories is not None:
            categories: CategorySet = entry  # type: ignore[assignment]
            return categories & self.left_categories, categories - self.left_categories
        lower, upper = entry  # type: ignore[misc]
        threshold: float = self.threshold  # type: ignore[assignment]
        # Clamp so a threshold outside the range yields an empty (zero-length) side.
        left: ContinuousRange = (lower, max(lower, min(upper, threshold)))
        right: ContinuousRange = (min(upper, max(lower, threshold)), upper)
        return left, right


# ---------------------------------------------------------------------------
# Public interface -- Nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Node:
    """One node of a binary regression tree.

    Attributes:
        index (int): Identifier of the node; its position in the tree's node list.
        parent (int | None): Identifier of the parent, ``None`` for the root.
        children (tuple[int, int] | None): ``(left, right)`` identifiers, ``None`` for leaves.
        split (Split | None): The split of an internal node, ``None`` for leaves.
        mean (float): Mean response of the training samples reaching the node.
        n_samples (int): Number of training samples reaching the node.
    """

    index: int
    parent: int | None
    children: tuple[int, int] | None
    split: Split | None
    mean: float
    n_samples: int = 0

    def __post_init__(self) -> None:
        """Validate that children and split are both set or both absent.

        Raises:
            ValueError: If only one of ``children`` / ``split`` is provided.
        """
        if (self.children is None) != (self.split is None):
            raise ValueError(f"Node {self.index}: internal nodes need both children and a split; leaves need neither")

    @property
    def is_leaf(self) -> bool:
        """Whether the node has no children."""
        return self.children is None


# ---------------------------------------------------------------------------
# Public interface -- Tree container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BinaryTree:
    """Immutable node storage for a fitted binary regression tree.

    Attributes:
        nodes (tuple[Node, ...]): All nodes, indexed by identifier; node 0 is the root.
        num_features (int): Number of input features the tree was fit on.
        topology_version (int): Unique stamp of this topology, used to detect
            stale derived caches.
    """

    nodes: tuple[Node, ...]
    num_features: int
    topology_version: int = field(default_factory=lambda: next(_topology_versions), compare=False)
    _order: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate the topology and compute the depth-first order.

        Raises:
            ValueError: If the node list is empty, indices are inconsistent,
                a split references an unknown feature, or nodes are unreachable.
        """
        object.__setattr__(self, "nodes", tuple(self.nodes))
        _validate_nodes(self.nodes, self.num_features)
        order = _depth_first_order(self.nodes)
        if len(order) != len(self.nodes):
            raise ValueError(f"{len(self.nodes) - len(order)} nodes are not reachable from the root")
        object.__setattr__(self, "_order", order)

    def __len__(self) -> int:
        """Return the number of nodes."""
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        """Return the node with identifier ``index``."""
        return self.nodes[index]

    @property
    def root(self) -> Node:
        """The root node."""
        return self.nodes[ROOT_INDEX]

    @property
    def leaf_count(self) -> int:
        """Number of leaves."""
        return sum(1 for node in self.nodes if node.is_leaf)

    def topological_order(self) -> tuple[int, ...]:
        """Return node identifiers so that every parent precedes its children.

        The order is a depth-first preorder from the root, left subtree first;
        reversing it visits every child before its parent. Walking it top-down
        keeps at most one pending sibling per level.

        Returns:
            tuple[int, ...]: All node identifiers, root first.
        """
        return self._order

    def leaf_indices(self) -> list[int]:
        """Return the identifiers of all leaves in topological order."""
        return [index for index in self._order if self.nodes[index].is_leaf]

    def depth(self) -> int:
        """Return the number of edges on the longest root-to-leaf path."""
        depths = [0] * len(self.nodes)
        for index in self._order:
            node = self.nodes[index]
            if node.parent is not None:
                depths[index] = depths[node.parent] + 1
        return max(depths)

    def apply(self, feature_vector: Sequence[float]) -> int:
        """Return the identifier of the leaf that ``feature_vector`` falls into.

        Args:
            feature_vector (Sequence[float]): A fully specified input.

        Returns:
            int: Identifier of the reached leaf.

        Raises:
            FeatureCountMismatchError: If the vector has the wrong length.
            ValueError: If a feature tested on the path is NaN.
        """
        if len(feature_vector) != self.num_features:
            raise FeatureCountMismatchError(
                argument="feature_vector", expected=self.num_features, actual=len(feature_vector)
            )
        node = self.root
        while node.children is not None and node.split is not None:
            value = float(feature_vector[node.split.feature_index])
            if math.isnan(value):
                raise ValueError(f"Feature {node.split.feature_index} is NaN; point predictions need every feature")
            left, right = node.children
            node = self.nodes[left if node.split.goes_left(value) else right]
        return node.index

    def predict(self, feature_vector: Sequence[float]) -> float:
        """Return the mean response of the leaf that ``feature_vector`` falls into.

        Args:
            feature_vector (Sequence[float]): A fully specified input.

        Returns:
            float: The leaf's mean prediction.
        """
        return self.nodes[self.apply(feature_vector)].mean

    @classmethod
    def from_sklearn(
        cls,
        estimator: DecisionTreeRegressor,
        *,
        categorical: Mapping[int, int] | None = None,
    ) -> BinaryTree:
        """Build a container from a fitted scikit-learn regression tree.

        Categorical features are expected to be ordinal-encoded as codes
        ``0 .. n - 1``; a threshold ``t`` on such a feature becomes the
        category set ``{c : c <= t}`` routed left.

        Args:
            estimator (DecisionTreeRegressor): A fitted single-output regressor.
            categorical (Mapping[int, int] | None): Maps categorical feature
                indices to their number of categories.

        Returns:
            BinaryTree: The converted tree.

        Raises:
            ValueError: If the estimator is unfitted or has several outputs.
        """
        sklearn_tree: Any = getattr(estimator, "tree_", None)
        if sklearn_tree is None:
            raise ValueError("The estimator must be fitted before it can be converted")
        if sklearn_tree.n_outputs != 1:
            raise ValueError(f"Only single-output trees are supported, got {sklearn_tree.n_outputs} outputs")

        categorical = dict(categorical or {})
        children_left = sklearn_tree.children_left
        children_right = sklearn_tree.children_right
        parents: list[int | None] = [None] * sklearn_tree.node_count
        for node_id in range(sklearn_tree.node_count):
            if children_left[node_id] != _TREE_LEAF:
                parents[int(children_left[node_id])] = node_id
                parents[int(children_right[node_id])] = node_id

        nodes = [
            _node_from_sklearn(sklearn_tree, node_id, parents[node_id], categorical)
            for node_id in range(sklearn_tree.node_count)
        ]
        return cls(nodes=tuple(nodes), num_features=int(estimator.n_features_in_))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _node_from_sklearn(
    sklearn_tree: Any,
    node_id: int,
    parent: int | None,
    categorical: Mapping[int, int],
) -> Node:
    """Convert one node of ``estimator.tree_`` into a ``Node``.

    Args:
        sklearn_tree (Any): The ``tree_`` attribute of a fitted estimator.
        node_id (int): Index of the node in the sklearn arrays.
        parent (int | None): Index of the parent node.
        categorical (Mapping[int, int]): Categorical feature cardinalities.

    Returns:
        Node: The converted node.
    """
    mean = float(sklearn_tree.value[node_id][0][0])
    n_samples = int(sklearn_tree.n_node_samples[node_id])
    left_child = int(sklearn_tree.children_left[node_id])
    right_child = int(sklearn_tree.children_right[node_id])
    if left_child == _TREE_LEAF:
        return Node(index=node_id, parent=parent, children=None, split=None, mean=mean, n_samples=n_samples)

    feature_index = int(sklearn_tree.feature[node_id])
    threshold = float(sklearn_tree.threshold[node_id])
    if feature_index in categorical:
        left_categories = frozenset(code for code in range(categorical[feature_index]) if code <= threshold)
        split = Split(feature_index=feature_index, left_categories=left_categories)
    else:
        split = Split(feature_index=feature_index, threshold=threshold)
    return Node(
        index=node_id,
        parent=parent,
        children=(left_child, right_child),
        split=split,
        mean=mean,
        n_samples=n_samples,
    )


def _validate_nodes(nodes: Sequence[Node], num_features: int) -> None:
    """Check identifiers, parent links, and split feature indices.

    Args:
        nodes (Sequence[Node]): The node list to check.
        num_features (int): Number of input features.

    Raises:
        ValueError: On the first inconsistency found.
    """
    if not nodes:
        raise ValueError("A tree needs at least one node")
    if num_features < 0:
        raise ValueError(f"num_features must be >= 0, got {num_features}")
    if nodes[ROOT_INDEX].parent is not None:
        raise ValueError("The root node (index 0) must not have a parent")
    node_count = len(nodes)
    for position, node in enumerate(nodes):
        if node.index != position:
            raise ValueError(f"Node at position {position} has index {node.index}")
        if node.split is not None and node.split.feature_index >= num_features:
            raise ValueError(
                f"Node {position} splits on feature {node.split.feature_index} but the tree has {num_features}"
            )
        if node.children is None:
            continue
        for child in node.children:
            if not (0 < child < node_count):
                raise ValueError(f"Node {position} references invalid child {child}")
            if nodes[child].parent != position:
                raise ValueError(f"Node {child} does not list {position} as its parent")


def _depth_first_order(nodes: Sequence[Node]) -> tuple[int, ...]:
    """Return node identifiers reachable from the root in depth-first preorder.

    Left subtrees come before right subtrees, matching scikit-learn node ids.

    Args:
        nodes (Sequence[Node]): The validated node list.

    Returns:
        tuple[int, ...]: Identifiers in preorder, parents before children.
    """
    order: list[int] = []
    seen = np.zeros(len(nodes), dtype=bool)
    stack: list[int] = [ROOT_INDEX]
    while stack:
        index = stack.pop()
        if seen[index]:
            raise ValueError(f"Node {index} is reachable along more than one path")
        seen[index] = True
        order.append(index)
        children = nodes[index].children
        if children is not None:
            left, right = children
            stack.append(right)
            stack.append(left)
    return tuple(order)
