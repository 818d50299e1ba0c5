"""Fit a tree on a numpy matrix or a polars DataFrame and precompute its fANOVA caches."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import polars as pl
from loguru import logger

from fantree.config import FanovaSettings, get_settings
from fantree.domain import CategoricalDomain, ContinuousDomain, domain_types
from fantree.exceptions import FeatureCountMismatchError
from fantree.models import PrecomputeReport
from fantree.preprocessing import (
    ExcludedFeature,
    FeatureEncoder,
    encode_features,
    encode_target,
    filter_features,
)
from fantree.tree import FanovaTree, fit_regressor

# ---------------------------------------------------------------------------
# Public interface -- Result container
# ---------------------------------------------------------------------------


@dataclass
class FittedFanovaTree:
    """A tree fitted on a DataFrame, with the encoders needed to query it by column name.

    Attributes:
        tree (FanovaTree): The fitted tree with precomputed caches.
        target (str): Target column name.
        encoders (list[FeatureEncoder]): One encoder per feature, in model order.
        excluded_features (list[ExcludedFeature]): Columns left out, with reasons.
    """

    tree: FanovaTree
    target: str
    encoders: list[FeatureEncoder]
    excluded_features: list[ExcludedFeature] = field(default_factory=list)

    @property
    def report(self) -> PrecomputeReport:
        """Summary of the most recent precompute on the tree."""
        return self.tree.report

    @property
    def feature_names(self) -> list[str]:
        """Feature column names in model order."""
        return [encoder.column_name for encoder in self.encoders]

    @property
    def domains(self) -> list[ContinuousDomain | CategoricalDomain]:
        """Inferred feature domains in model order."""
        return [encoder.domain for encoder in self.encoders]

    def split_values(self) -> dict[str, tuple[float, ...]]:
        """Return the distinct split values the tree uses, keyed by feature column.

        Categorical columns list every encoded code of their domain.

        Returns:
            dict[str, tuple[float, ...]]: Sorted split values per feature, in model order.
        """
        values = self.tree.all_split_values(domain_types(self.domains))
        return dict(zip(self.feature_names, values, strict=True))

    def encode_query(self, fixed_values: Mapping[str, Any]) -> list[float]:
        """Build a feature vector; columns missing from ``fixed_values`` are marginalized.

        Args:
            fixed_values (Mapping[str, Any]): Raw values keyed by column name.

        Returns:
            list[float]: One encoded entry per feature, NaN for marginalized ones.

        Raises:
            ValueError: If a key is not a feature column, or a category is unknown.
        """
        unknown = sorted(set(fixed_values) - set(self.feature_names))
        if unknown:
            raise ValueError(f"Not feature columns of this tree: {unknown}")
        return [encoder.encode_value(fixed_values.get(encoder.column_name)) for encoder in self.encoders]

    def marginalized_mean(self, fixed_values: Mapping[str, Any]) -> float:
        """Return the mean prediction with every column not in ``fixed_values`` marginalized.

        Args:
            fixed_values (Mapping[str, Any]): Raw values keyed by column name.

        Returns:
            float: The marginal mean, NaN if the cutoffs exclude every reachable leaf.
        """
        return self.tree.marginalized_mean(self.encode_query(fixed_values))


# ---------------------------------------------------------------------------
# Public interface -- Fitting
# ---------------------------------------------------------------------------


def fit_fanova_tree(
    feature_matrix: np.ndarray,
    target_array: np.ndarray,
    *,
    domains: Sequence[ContinuousDomain | CategoricalDomain] | None = None,
    max_depth: int | None = None,
    min_samples_leaf: int | None = None,
    random_state: int | None = None,
    lower_cutoff: float | None = None,
    upper_cutoff: float | None = None,
    settings: FanovaSettings | None = None,
) -> FanovaTree:
    """Fit a regression tree on encoded data and precompute its fANOVA caches.

    Categorical features must be ordinal-encoded as ``0 .. n - 1`` and declared
    through ``domains``. When ``domains`` is omitted every feature is treated
    as continuous over its observed ``[min, max]``.

    Args:
        feature_matrix (np.ndarray): 2-D matrix of shape ``(n_samples, n_features)``.
        target_array (np.ndarray): 1-D target of shape ``(n_samples,)``.
        domains (Sequence[ContinuousDomain | CategoricalDomain] | None): One domain per feature.
        max_depth (int | None): Maximum depth; defaults to the settings.
        min_samples_leaf (int | None): Minimum samples per leaf; defaults to the settings.
        random_state (int | None): Random seed; defaults to the settings.
        lower_cutoff (float | None): Lower leaf cutoff; defaults to the settings.
        upper_cutoff (float | None): Upper leaf cutoff; defaults to the settings.
        settings (FanovaSettings | None): Overrides the process-wide settings.

    Returns:
        FanovaTree: The fitted tree with caches ready for queries.

    Raises:
        FeatureCountMismatchError: If ``domains`` does not have one entry per column.
        ValueError: If the feature matrix is not 2-D or contains NaN.
    """
    if feature_matrix.ndim != 2:
        raise ValueError(f"feature_matrix must be 2-D, got {feature_matrix.ndim} dimensions")
    if np.isnan(feature_matrix).any():
        raise ValueError("feature_matrix contains NaN values. Drop or impute them before fitting.")
    n_features = feature_matrix.shape[1]
    if domains is None:
        domains = [
            ContinuousDomain(lower=float(column.min()), upper=float(column.max())) for column in feature_matrix.T
        ]
    elif len(domains) != n_features:
        raise FeatureCountMismatchError(argument="domains", expected=n_features, actual=len(domains))

    categorical = {
        feature_index: domain.n_categories
        for feature_index, domain in enumerate(domains)
        if isinstance(domain, CategoricalDomain)
    }
    resolved_settings = settings if settings is not None else get_settings()
    estimator = fit_regressor(
        feature_matrix,
        target_array,
        max_depth=max_depth if max_depth is not None else resolved_settings.max_depth,
        min_samples_leaf=min_samples_leaf if min_samples_leaf is not None else resolved_settings.min_samples_leaf,
        random_state=random_state if random_state is not None else resolved_settings.random_state,
    )
    tree = FanovaTree.from_sklearn(estimator, categorical=categorical, settings=resolved_settings)
    logger.info(
        "Tree fitted",
        node_count=tree.node_count,
        leaf_count=tree.tree.leaf_count,
        depth=tree.tree.depth(),
        n_samples=int(feature_matrix.shape[0]),
    )
    tree.precompute_domains(domains, lower_cutoff=lower_cutoff, upper_cutoff=upper_cutoff)
    return tree


def fit_fanova_tree_from_dataframe(
    df: pl.DataFrame,
    target: str,
    *,
    features: Sequence[str] | None = None,
    max_depth: int | None = None,
    min_samples_leaf: int | None = None,
    random_state: int | None = None,
    lower_cutoff: float | None = None,
    upper_cutoff: float | None = None,
    settings: FanovaSettings | None = None,
) -> FittedFanovaTree:
    """Fit a regression tree on a DataFrame and precompute its fANOVA caches.

    Rows with a null target or a null in any kept feature are dropped.
    Domains are inferred from the remaining data: numeric and temporal columns
    span their observed range; string, categorical and boolean columns span
    their observed categories.

    Args:
        df (pl.DataFrame): The source data.
        target (str): Name of the numeric target column.
        features (Sequence[str] | None): Feature columns; all non-target columns when ``None``.
        max_depth (int | None): Maximum depth; defaults to the settings.
        min_samples_leaf (int | None): Minimum samples per leaf; defaults to the settings.
        random_state (int | None): Random seed; defaults to the settings.
        lower_cutoff (float | None): Lower leaf cutoff; defaults to the settings.
        upper_cutoff (float | None): Upper leaf cutoff; defaults to the settings.
        settings (FanovaSettings | None): Overrides the process-wide settings.

    Returns:
        FittedFanovaTree: The tree together with its encoders and report.

    Raises:
        ValueError: If columns are missing, no feature survives filtering, or
            no rows remain after dropping nulls.
    """
    _validate_columns_exist(df, target, features)
    feature_columns = list(features) if features is not None else [col for col in df.columns if col != target]

    kept_columns, excluded_features = filter_features(df, feature_columns)
    if not kept_columns:
        excluded_labels = [f"{ef.name} ({ef.reason})" for ef in excluded_features]
        raise ValueError(f"No valid feature columns remain after filtering. Excluded: {excluded_labels}")

    df_clean = df.drop_nulls(subset=[target, *kept_columns])
    dropped_rows = len(df) - len(df_clean)
    if dropped_rows:
        logger.debug("Rows with nulls dropped before fitting", dropped_rows=dropped_rows, remaining_rows=len(df_clean))
    if len(df_clean) == 0:
        raise ValueError("No rows remain after dropping rows with null target or feature values.")

    feature_matrix, encoders = encode_features(df_clean, kept_columns)
    target_array = encode_target(df_clean[target])
    domains = [encoder.domain for encoder in encoders]

    tree = fit_fanova_tree(
        feature_matrix,
        target_array,
        domains=domains,
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
        lower_cutoff=lower_cutoff,
        upper_cutoff=upper_cutoff,
        settings=settings,
    )
    return FittedFanovaTree(
        tree=tree,
        target=target,
        encoders=encoders,
        excluded_features=excluded_features,
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _validate_columns_exist(df: pl.DataFrame, target: str, features: Sequence[str] | None) -> None:
    """Raise ``ValueError`` if the target or any requested feature column is missing.

    Args:
        df (pl.DataFrame): The source DataFrame.
        target (str): The target column name.
        features (Sequence[str] | None): Requested feature columns.

    Raises:
        ValueError: If a column is absent or the target is listed as a feature.
    """
    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in DataFrame.")
    if features is None:
        return
    missing_columns = [col for col in features if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Requested feature columns not found in DataFrame: {missing_columns}")
    if target in features:
        raise ValueError(f"Target column '{target}' cannot also be a feature.")
