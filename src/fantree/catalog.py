"""Lazily built catalog of the split values used anywhere in a tree."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from fantree.exceptions import FeatureCountMismatchError
from fantree.nodes import BinaryTree


class SplitValueCatalog:
    """Per-feature sorted split values, built on first use and cached.

    For a continuous feature the catalog holds every distinct threshold. For a
    categorical feature that is split on at least once it holds the full code
    range ``0 .. n - 1``. Features never split on map to an empty tuple.

    The cache is not refreshed automatically; call ``invalidate()`` when the
    tree changes.

    Attributes:
        tree (BinaryTree): The tree to scan.
        types (tuple[int, ...]): ``0`` for continuous features, the number of
            categories for categorical ones.
    """

    def __init__(self, tree: BinaryTree, types: Sequence[int]) -> None:
        """Initialize the catalog without scanning the tree.

        Args:
            tree (BinaryTree): The tree to scan.
            types (Sequence[int]): One type tag per feature.

        Raises:
            FeatureCountMismatchError: If ``types`` does not match the feature count.
        """
        if len(types) != tree.num_features:
            raise FeatureCountMismatchError(argument="types", expected=tree.num_features, actual=len(types))
        self.tree = tree
        self.types = tuple(int(type_tag) for type_tag in types)
        self._values: tuple[tuple[float, ...], ...] | None = None

    @property
    def is_built(self) -> bool:
        """Whether the catalog has been computed."""
        return self._values is not None

    def values(self) -> tuple[tuple[float, ...], ...]:
        """Return the sorted split values of every feature, scanning the tree once.

        Returns:
            tuple[tuple[float, ...], ...]: One ascending tuple per feature.
        """
        if self._values is None:
            self._values = self._build()
        return self._values

    def invalidate(self) -> None:
        """Drop the cached values so the next call rescans the tree."""
        self._values = None

    def _build(self) -> tuple[tuple[float, ...], ...]:
        collected: list[set[float]] = [set() for _ in self.types]
        for node in self.tree.nodes:
            if node.split is None:
                continue
            feature_index = node.split.feature_index
            n_categories = self.types[feature_index]
            if n_categories > 0:
                if not collected[feature_index]:
                    collected[feature_index].update(float(code) for code in range(n_categories))
            elif node.split.threshold is not None:
                collected[feature_index].add(node.split.threshold)
        values = tuple(tuple(sorted(feature_values)) for feature_values in collected)
        logger.debug("Split value catalog built", value_counts=[len(v) for v in values])
        return values
