"""FanovaTree: a binary regression tree with functional ANOVA caches.

Typical use::

    tree = FanovaTree.from_sklearn(fitted_regressor)
    tree.precompute(bounds=[(0.0, 1.0), (0.0, 0.0)], types=[0, 3])
    tree.marginalized_mean([0.2, math.nan])  # feature 1 averaged out

``precompute`` must not run concurrently with queries on the same tree.
Queries only read an immutable ``FanovaCaches`` snapshot and may run
concurrently with each other.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Self

import numpy as np
from loguru import logger
from sklearn.tree import DecisionTreeRegressor

from fantree.aggregation import aggregate_marginals
from fantree.bitset import mask_to_indices
from fantree.caches import FanovaCaches
from fantree.catalog import SplitValueCatalog
from fantree.config import FanovaSettings, get_settings
from fantree.domain import (
    CategoricalDomain,
    ContinuousDomain,
    Subspace,
    domains_from_bounds,
    validate_domain_count,
)
from fantree.exceptions import CachesNotComputedError, FeatureCountMismatchError
from fantree.models import CutoffInterval, PrecomputeReport
from fantree.nodes import ROOT_INDEX, BinaryTree, Node
from fantree.query import marginalized_mean
from fantree.sizing import compute_subspace_sizes, partition


class FanovaTree:
    """A fitted binary regression tree plus its derived fANOVA caches.

    Attributes:
        settings (FanovaSettings): Defaults for cutoffs, cache dtype and fitting.
    """

    def __init__(self, tree: BinaryTree, *, settings: FanovaSettings | None = None) -> None:
        """Wrap an existing tree container; no caches are computed yet.

        Args:
            tree (BinaryTree): The fitted tree.
            settings (FanovaSettings | None): Overrides the process-wide settings.
        """
        self.settings = settings if settings is not None else get_settings()
        self._tree = tree
        self._caches: FanovaCaches | None = None
        self._report: PrecomputeReport | None = None
        self._catalog: SplitValueCatalog | None = None

    @classmethod
    def from_sklearn(
        cls,
        estimator: DecisionTreeRegressor,
        *,
        categorical: Mapping[int, int] | None = None,
        settings: FanovaSettings | None = None,
    ) -> Self:
        """Wrap a fitted scikit-learn regression tree.

        Args:
            estimator (DecisionTreeRegressor): A fitted single-output regressor.
            categorical (Mapping[int, int] | None): Maps ordinal-encoded
                categorical feature indices to their number of categories.
            settings (FanovaSettings | None): Overrides the process-wide settings.

        Returns:
            Self: The wrapped tree.
        """
        return cls(BinaryTree.from_sklearn(estimator, categorical=categorical), settings=settings)

    # ------------------------------------------------------------------
    # Tree access
    # ------------------------------------------------------------------

    @property
    def tree(self) -> BinaryTree:
        """The underlying node container."""
        return self._tree

    @property
    def nodes(self) -> tuple[Node, ...]:
        """The nodes in index order; index 0 is the root."""
        return self._tree.nodes

    @property
    def num_features(self) -> int:
        """Number of input features."""
        return self._tree.num_features

    @property
    def node_count(self) -> int:
        """Number of nodes in the tree."""
        return len(self._tree)

    def predict(self, feature_vector: Sequence[float]) -> float:
        """Return the ordinary point prediction for a fully specified input."""
        return self._tree.predict(feature_vector)

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def fit(
        self,
        feature_matrix: np.ndarray,
        target_array: np.ndarray,
        *,
        categorical: Mapping[int, int] | None = None,
        max_depth: int | None = None,
        min_samples_leaf: int | None = None,
        random_state: int | None = None,
    ) -> Self:
        """Refit the tree; existing caches become stale until the next precompute.

        Args:
            feature_matrix (np.ndarray): 2-D matrix of shape ``(n_samples, n_features)``.
            target_array (np.ndarray): 1-D target of shape ``(n_samples,)``.
            categorical (Mapping[int, int] | None): Categorical feature cardinalities.
            max_depth (int | None): Maximum depth; defaults to ``settings.max_depth``.
            min_samples_leaf (int | None): Defaults to ``settings.min_samples_leaf``.
            random_state (int | None): Defaults to ``settings.random_state``.

        Returns:
            Self: This instance, for chaining.
        """
        estimator = fit_regressor(
            feature_matrix,
            target_array,
            max_depth=max_depth if max_depth is not None else self.settings.max_depth,
            min_samples_leaf=min_samples_leaf if min_samples_leaf is not None else self.settings.min_samples_leaf,
            random_state=random_state if random_state is not None else self.settings.random_state,
        )
        # The new topology has a new version, so existing caches now read as stale.
        self._tree = BinaryTree.from_sklearn(estimator, categorical=categorical)
        self._catalog = None
        logger.info(
            "Tree fitted",
            node_count=len(self._tree),
            leaf_count=self._tree.leaf_count,
            depth=self._tree.depth(),
            n_samples=int(feature_matrix.shape[0]),
        )
        return self

    def invalidate(self) -> None:
        """Discard the fANOVA caches and the split-value catalog."""
        self._caches = None
        self._report = None
        self._catalog = None

    # ------------------------------------------------------------------
    # Precomputation
    # ------------------------------------------------------------------

    def precompute(
        self,
        *,
        bounds: Sequence[Sequence[float]],
        types: Sequence[int],
        lower_cutoff: float | None = None,
        upper_cutoff: float | None = None,
    ) -> PrecomputeReport:
        """Rebuild every cache from raw bounds and type tags.

        Args:
            bounds (Sequence[Sequence[float]]): ``(lower, upper)`` per feature;
                ignored for categorical features.
            types (Sequence[int]): ``0`` for continuous, ``n`` for a feature
                with ``n`` categories.
            lower_cutoff (float | None): Leaves predicting less are excluded.
                Defaults to ``settings.lower_cutoff``.
            upper_cutoff (float | None): Leaves predicting more are excluded.
                Defaults to ``settings.upper_cutoff``.

        Returns:
            PrecomputeReport: Summary of the new caches.

        Raises:
            FeatureCountMismatchError: If ``bounds``/``types`` do not match each
                other or the tree's feature count.
            InvalidDomainError: If a bound or type tag is malformed.
            pydantic.ValidationError: If ``lower_cutoff > upper_cutoff``.
        """
        if len(types) != self.num_features:
            raise FeatureCountMismatchError(argument="types", expected=self.num_features, actual=len(types))
        domains = domains_from_bounds(bounds, types)
        return self.precompute_domains(domains, lower_cutoff=lower_cutoff, upper_cutoff=upper_cutoff)

    def precompute_domains(
        self,
        domains: Sequence[ContinuousDomain | CategoricalDomain],
        *,
        lower_cutoff: float | None = None,
        upper_cutoff: float | None = None,
    ) -> PrecomputeReport:
        """Rebuild every cache from typed feature domains.

        Args:
            domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.
            lower_cutoff (float | None): Defaults to ``settings.lower_cutoff``.
            upper_cutoff (float | None): Defaults to ``settings.upper_cutoff``.

        Returns:
            PrecomputeReport: Summary of the new caches.
        """
        validate_domain_count(domains, self.num_features)
        cutoffs = CutoffInterval(
            lower=lower_cutoff if lower_cutoff is not None else self.settings.lower_cutoff,
            upper=upper_cutoff if upper_cutoff is not None else self.settings.upper_cutoff,
        )
        raw_sizes = compute_subspace_sizes(self._tree, domains, dtype=np.dtype(self.settings.cache_dtype))
        aggregated = aggregate_marginals(self._tree, raw_sizes, cutoffs)
        self._caches = FanovaCaches(
            topology_version=self._tree.topology_version,
            domains=tuple(domains),
            cutoffs=cutoffs,
            raw_subspace_sizes=raw_sizes,
            subspace_sizes=aggregated.subspace_sizes,
            active_features=aggregated.active_features,
            marginal_predictions=aggregated.marginal_predictions,
        )

        report = PrecomputeReport(
            node_count=len(self._tree),
            leaf_count=self._tree.leaf_count,
            excluded_leaf_count=aggregated.excluded_leaf_count,
            total_subspace_size=float(raw_sizes[ROOT_INDEX]),
            root_subspace_size=float(aggregated.subspace_sizes[ROOT_INDEX]),
            root_marginal_prediction=float(aggregated.marginal_predictions[ROOT_INDEX]),
            active_features=sorted(mask_to_indices(aggregated.active_features[ROOT_INDEX])),
        )
        logger.info(
            "fANOVA caches precomputed",
            node_count=report.node_count,
            excluded_leaf_count=report.excluded_leaf_count,
            root_subspace_size=report.root_subspace_size,
            lower_cutoff=cutoffs.lower,
            upper_cutoff=cutoffs.upper,
        )
        if report.all_leaves_excluded:
            logger.warning(
                "Every leaf was excluded; all marginal predictions are NaN",
                lower_cutoff=cutoffs.lower,
                upper_cutoff=cutoffs.upper,
            )
        self._report = report
        return report

    @property
    def has_caches(self) -> bool:
        """Whether up-to-date caches are available."""
        return self._caches is not None and self._caches.topology_version == self._tree.topology_version

    @property
    def report(self) -> PrecomputeReport:
        """Summary of the most recent precompute.

        Raises:
            CachesNotComputedError: If the caches are missing or stale.
        """
        if self._report is None or not self.has_caches:
            raise CachesNotComputedError(stale=self._caches is not None)
        return self._report

    @property
    def caches(self) -> FanovaCaches:
        """The current caches.

        Raises:
            CachesNotComputedError: If ``precompute`` has not run for the
                current topology.
        """
        if self._caches is None:
            raise CachesNotComputedError()
        if self._caches.topology_version != self._tree.topology_version:
            raise CachesNotComputedError(stale=True)
        return self._caches

    # ------------------------------------------------------------------
    # Queries and accessors
    # ------------------------------------------------------------------

    def marginalized_mean(self, feature_vector: Sequence[float | None]) -> float:
        """Return the mean prediction with NaN/``None`` entries marginalized.

        Args:
            feature_vector (Sequence[float | None]): One entry per feature.

        Returns:
            float: The marginal mean, NaN if the cutoffs exclude every reachable leaf.
        """
        return marginalized_mean(self._tree, self.caches, feature_vector)

    def marginalized_means(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Run ``marginalized_mean`` on every row of a 2-D array.

        Args:
            feature_matrix (np.ndarray): Shape ``(n_queries, n_features)``; NaN
                entries are marginalized.

        Returns:
            np.ndarray: 1-D float array of shape ``(n_queries,)``.

        Raises:
            ValueError: If ``feature_matrix`` is not 2-D.
        """
        matrix = np.asarray(feature_matrix, dtype=np.float64)
        if matrix.ndim != 2:
            raise ValueError(f"feature_matrix must be 2-D, got {matrix.ndim} dimensions")
        caches = self.caches
        return np.array([marginalized_mean(self._tree, caches, row.tolist()) for row in matrix], dtype=np.float64)

    def get_subspace_size(self, node_index: int) -> float:
        """Return the effective subspace size of ``node_index``."""
        return float(self.caches.subspace_sizes[self._check_node(node_index)])

    def get_active_features(self, node_index: int) -> frozenset[int]:
        """Return the features the subtree below ``node_index`` splits on."""
        return self.caches.active_feature_indices(self._check_node(node_index))

    def get_marginal_prediction(self, node_index: int) -> float:
        """Return the cached marginal prediction of ``node_index`` (NaN if excluded)."""
        return float(self.caches.marginal_predictions[self._check_node(node_index)])

    # ------------------------------------------------------------------
    # Split values and partition
    # ------------------------------------------------------------------

    def all_split_values(self, types: Sequence[int]) -> tuple[tuple[float, ...], ...]:
        """Return the sorted split values per feature, cached after the first call.

        The cached catalog is reused as long as ``types`` does not change and
        is dropped on refit.

        Args:
            types (Sequence[int]): ``0`` for continuous, ``n`` for categorical.

        Returns:
            tuple[tuple[float, ...], ...]: One ascending tuple per feature.
        """
        requested = tuple(int(type_tag) for type_tag in types)
        if self._catalog is None or self._catalog.types != requested:
            self._catalog = SplitValueCatalog(self._tree, requested)
        return self._catalog.values()

    def partition(self, *, bounds: Sequence[Sequence[float]], types: Sequence[int]) -> list[Subspace]:
        """Return the bounding description of every leaf.

        Args:
            bounds (Sequence[Sequence[float]]): ``(lower, upper)`` per feature.
            types (Sequence[int]): Type tag per feature.

        Returns:
            list[Subspace]: One subspace per leaf, in ``tree.leaf_indices()`` order.
        """
        return partition(self._tree, domains_from_bounds(bounds, types))

    def _check_node(self, node_index: int) -> int:
        if not (0 <= node_index < len(self._tree)):
            raise IndexError(f"Node index {node_index} out of range for a tree with {len(self._tree)} nodes")
        return node_index

    def __repr__(self) -> str:
        """Return a short description of the tree and cache state."""
        return (
            f"{self.__class__.__name__}(node_count={self.node_count}, num_features={self.num_features}, "
            f"has_caches={self.has_caches})"
        )


def fit_regressor(
    feature_matrix: np.ndarray,
    target_array: np.ndarray,
    *,
    max_depth: int | None,
    min_samples_leaf: int,
    random_state: int | None = None,
) -> DecisionTreeRegressor:
    """Fit a scikit-learn regression tree.

    Args:
        feature_matrix (np.ndarray): 2-D matrix of shape ``(n_samples, n_features)``.
        target_array (np.ndarray): 1-D target of shape ``(n_samples,)``.
        max_depth (int | None): Maximum depth, ``None`` for unbounded.
        min_samples_leaf (int): Minimum number of samples per leaf.
        random_state (int | None): Random seed for reproducibility.

    Returns:
        DecisionTreeRegressor: The fitted estimator.

    Raises:
        ValueError: If the target is not 1-D, the shapes disagree, or
            ``max_depth`` / ``min_samples_leaf`` is below 1.
    """
    if target_array.ndim != 1:
        raise ValueError(f"target_array must be 1-D, got {target_array.ndim} dimensions")
    if feature_matrix.ndim != 2 or feature_matrix.shape[0] != target_array.shape[0]:
        raise ValueError(
            f"feature_matrix shape {feature_matrix.shape} does not match target length {target_array.shape[0]}"
        )
    if max_depth is not None and max_depth < 1:
        raise ValueError(f"max_depth must be >= 1, got {max_depth}")
    if min_samples_leaf < 1:
        raise ValueError(f"min_samples_leaf must be >= 1, got {min_samples_leaf}")
    if math.isnan(float(np.sum(target_array))):
        raise ValueError("target_array contains NaN values")
    estimator = DecisionTreeRegressor(
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
    )
    estimator.fit(feature_matrix, target_array)
    return estimator
