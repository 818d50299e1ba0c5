"""Marginalization queries answered from the precomputed caches."""

from __future__ import annotations

import math
from collections.abc import Sequence

from loguru import logger

from fantree.bitset import FeatureMask, feature_bit, mask_from_indices
from fantree.caches import FanovaCaches
from fantree.exceptions import FeatureCountMismatchError
from fantree.nodes import ROOT_INDEX, BinaryTree


class WeightedRunningMean:
    """Streaming weighted mean.

    Examples:
        >>> stats = WeightedRunningMean()
        >>> stats.push(1.0, 1.0)
        >>> stats.push(4.0, 2.0)
        >>> stats.mean()
        3.0
    """

    def __init__(self) -> None:
        self.sum_of_weights = 0.0
        self.weighted_sum = 0.0
        self.count = 0

    def push(self, value: float, weight: float) -> None:
        """Add ``value`` with ``weight``; non-positive weights are ignored.

        Args:
            value (float): The observation.
            weight (float): Its weight.
        """
        if weight <= 0:
            return
        self.sum_of_weights += weight
        self.weighted_sum += value * weight
        self.count += 1

    def mean(self) -> float:
        """Return the weighted mean, or NaN if no weight was pushed."""
        if self.sum_of_weights <= 0:
            return math.nan
        return self.weighted_sum / self.sum_of_weights


def fixed_feature_mask(feature_vector: Sequence[float | None]) -> FeatureMask:
    """Return the mask of entries that are neither ``None`` nor NaN.

    Args:
        feature_vector (Sequence[float | None]): The partially specified input.

    Returns:
        FeatureMask: Bits set for fixed features.
    """
    return mask_from_indices(
        feature_index
        for feature_index, value in enumerate(feature_vector)
        if value is not None and not math.isnan(value)
    )


def marginalized_mean(
    tree: BinaryTree,
    caches: FanovaCaches,
    feature_vector: Sequence[float | None],
) -> float:
    """Return the mean prediction with NaN (or ``None``) entries marginalized out.

    Subtrees that split on no fixed feature are summarized by their cached
    marginal prediction; only subtrees depending on a fixed feature are
    descended.

    Args:
        tree (BinaryTree): The tree the caches were built for.
        caches (FanovaCaches): Caches from ``precompute``.
        feature_vector (Sequence[float | None]): One entry per feature; NaN or
            ``None`` marks a dimension to marginalize.

    Returns:
        float: Subspace-weighted mean prediction, or NaN if every reachable
            leaf was excluded by the cutoffs.

    Raises:
        FeatureCountMismatchError: If the vector has the wrong length.
    """
    if len(feature_vector) != tree.num_features:
        raise FeatureCountMismatchError(
            argument="feature_vector", expected=tree.num_features, actual=len(feature_vector)
        )

    fixed = fixed_feature_mask(feature_vector)
    sizes = caches.subspace_sizes
    stats = WeightedRunningMean()
    stack = [ROOT_INDEX]
    visited = 0

    while stack:
        node_index = stack.pop()
        visited += 1
        if sizes[node_index] == 0:
            continue

        node = tree[node_index]
        if caches.active_features[node_index] & fixed and node.children is not None and node.split is not None:
            left, right = node.children
            feature_index = node.split.feature_index
            if feature_bit(feature_index) & fixed:
                value = float(feature_vector[feature_index])  # type: ignore[arg-type]
                stack.append(left if node.split.goes_left(value) else right)
            else:
                stack.extend((left, right))
        else:
            # Leaves and subtrees independent of every fixed feature are read from the cache.
            stats.push(float(caches.marginal_predictions[node_index]), float(sizes[node_index]))

    result = stats.mean()
    if math.isnan(result):
        logger.debug("Marginalized mean undefined: no reachable leaf survives the cutoffs", visited_nodes=visited)
    else:
        logger.trace(
            "Marginalized mean computed",
            result=result,
            visited_nodes=visited,
            contributions=stats.count,
        )
    return result
