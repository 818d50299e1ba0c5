"""Derived per-node fANOVA state, rebuilt wholesale by every precompute."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from fantree.bitset import FeatureMask, mask_to_indices
from fantree.domain import CategoricalDomain, ContinuousDomain
from fantree.models import CutoffInterval


@dataclass(frozen=True)
class FanovaCaches:
    """Immutable snapshot of the fANOVA caches for one tree topology.

    Attributes:
        topology_version (int): ``BinaryTree.topology_version`` the caches were built for.
        domains (tuple[ContinuousDomain | CategoricalDomain, ...]): Domains passed to precompute.
        cutoffs (CutoffInterval): Cutoffs passed to precompute.
        raw_subspace_sizes (np.ndarray): Sizer output before cutoff exclusion.
        subspace_sizes (np.ndarray): Effective sizes after cutoff exclusion.
        active_features (tuple[FeatureMask, ...]): Packed features each subtree splits on.
        marginal_predictions (np.ndarray): Size-weighted subtree means; NaN where size is zero.
    """

    topology_version: int
    domains: tuple[ContinuousDomain | CategoricalDomain, ...]
    cutoffs: CutoffInterval
    raw_subspace_sizes: np.ndarray
    subspace_sizes: np.ndarray
    active_features: tuple[FeatureMask, ...]
    marginal_predictions: np.ndarray

    def __post_init__(self) -> None:
        """Freeze the arrays so a shared snapshot cannot be modified in place.

        Raises:
            ValueError: If the per-node arrays differ in length.
        """
        node_count = len(self.active_features)
        for name in ("raw_subspace_sizes", "subspace_sizes", "marginal_predictions"):
            array: np.ndarray = getattr(self, name)
            if array.shape != (node_count,):
                raise ValueError(f"{name} has shape {array.shape}, expected ({node_count},)")
            array.setflags(write=False)

    @property
    def node_count(self) -> int:
        """Number of nodes covered by the caches."""
        return len(self.active_features)

    def active_feature_indices(self, node_index: int) -> frozenset[int]:
        """Return the features the subtree below ``node_index`` splits on."""
        return mask_to_indices(self.active_features[node_index])

    def same_values(self, other: FanovaCaches) -> bool:
        """Return True if ``other`` holds identical cache contents (NaN equal to NaN).

        Args:
            other (FanovaCaches): Caches to compare against.

        Returns:
            bool: True when every per-node value matches.
        """
        return (
            self.active_features == other.active_features
            and np.array_equal(self.raw_subspace_sizes, other.raw_subspace_sizes)
            and np.array_equal(self.subspace_sizes, other.subspace_sizes)
            and np.array_equal(self.marginal_predictions, other.marginal_predictions, equal_nan=True)
        )
