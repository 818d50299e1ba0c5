"""Bottom-up pass: active features, effective subspace sizes and marginal predictions."""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np
from loguru import logger

from fantree.bitset import EMPTY_MASK, FeatureMask, feature_bit
from fantree.models import CutoffInterval
from fantree.nodes import ROOT_INDEX, BinaryTree


class AggregatedMarginals(NamedTuple):
    """Per-node results of the bottom-up pass.

    Attributes:
        subspace_sizes (np.ndarray): Effective sizes; zero for excluded leaves
            and for nodes whose every leaf was excluded.
        active_features (tuple[FeatureMask, ...]): Packed set of features each
            subtree splits on.
        marginal_predictions (np.ndarray): Size-weighted mean prediction of
            each subtree; NaN where the effective size is zero.
        excluded_leaf_count (int): Number of leaves that contribute no weight.
    """

    subspace_sizes: np.ndarray
    active_features: tuple[FeatureMask, ...]
    marginal_predictions: np.ndarray
    excluded_leaf_count: int


def aggregate_marginals(
    tree: BinaryTree,
    raw_subspace_sizes: np.ndarray,
    cutoffs: CutoffInterval,
) -> AggregatedMarginals:
    """Aggregate leaf predictions upward, children strictly before parents.

    A leaf whose mean lies outside ``cutoffs`` gets size zero and a NaN
    prediction. An internal node's size is the sum of its children's sizes
    and its prediction is their size-weighted mean, skipping children of
    size zero.

    Args:
        tree (BinaryTree): The tree to aggregate.
        raw_subspace_sizes (np.ndarray): Output of ``compute_subspace_sizes``.
        cutoffs (CutoffInterval): Admissible leaf predictions.

    Returns:
        AggregatedMarginals: The effective sizes, active features and predictions.

    Raises:
        ValueError: If ``raw_subspace_sizes`` does not have one entry per node.
    """
    if raw_subspace_sizes.shape != (len(tree),):
        raise ValueError(f"Expected {len(tree)} subspace sizes, got array of shape {raw_subspace_sizes.shape}")

    sizes = raw_subspace_sizes.copy()
    marginals = np.full(len(tree), np.nan, dtype=sizes.dtype)
    active: list[FeatureMask] = [EMPTY_MASK] * len(tree)
    excluded_leaf_count = 0

    for node_index in reversed(tree.topological_order()):
        node = tree[node_index]
        if node.children is None or node.split is None:
            if sizes[node_index] > 0 and cutoffs.contains(node.mean):
                marginals[node_index] = node.mean
            else:
                logger.trace("Leaf excluded", node=node_index, mean=node.mean, subspace_size=float(sizes[node_index]))
                sizes[node_index] = 0
                excluded_leaf_count += 1
            continue

        left, right = node.children
        active[node_index] = feature_bit(node.split.feature_index) | active[left] | active[right]

        weight = 0.0
        weighted_sum = 0.0
        for child in (left, right):
            if sizes[child] > 0:
                weight += float(sizes[child])
                weighted_sum += float(marginals[child]) * float(sizes[child])
        sizes[node_index] = weight
        if weight > 0:
            marginals[node_index] = weighted_sum / weight

    root_prediction = float(marginals[ROOT_INDEX])
    logger.debug(
        "Marginal predictions aggregated",
        root_subspace_size=float(sizes[ROOT_INDEX]),
        root_marginal_prediction=None if math.isnan(root_prediction) else root_prediction,
        excluded_leaf_count=excluded_leaf_count,
    )
    return AggregatedMarginals(
        subspace_sizes=sizes,
        active_features=tuple(active),
        marginal_predictions=marginals,
        excluded_leaf_count=excluded_leaf_count,
    )
