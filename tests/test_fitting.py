"""Tests for fitting trees on arrays and DataFrames."""

from __future__ import annotations

import math

import numpy as np
import polars as pl
import pytest
from pytest_check import check

from fantree.config import FanovaSettings
from fantree.domain import CategoricalDomain, ContinuousDomain
from fantree.exceptions import FeatureCountMismatchError
from fantree.fitting import fit_fanova_tree, fit_fanova_tree_from_dataframe


@pytest.fixture
def settings() -> FanovaSettings:
    """Open-cutoff settings, independent of the environment."""
    return FanovaSettings(lower_cutoff=-math.inf, upper_cutoff=math.inf, random_state=0)


@pytest.fixture
def pricing_df() -> pl.DataFrame:
    """Price depends only on the plan; the other columns are noise or unusable."""
    return pl.DataFrame(
        {
            "plan": ["basic", "pro", "basic", "pro", "basic", "pro", "basic", "pro"],
            "size": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0],
            "customer_id": [f"c{i}" for i in range(8)],
            "region": ["eu"] * 8,
            "price": [10.0, 30.0, 10.0, 30.0, 10.0, 30.0, 10.0, 30.0],
        }
    )


class TestFitFanovaTree:
    """Tests for `fit_fanova_tree` on encoded arrays."""

    def test_default_domains_use_observed_range(self, settings: FanovaSettings) -> None:
        """Without domains each column should span its observed `[min, max]`.

        Args:
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        feature_matrix = np.array([[0.0], [1.0], [2.0], [3.0]])
        target_array = np.array([1.0, 1.0, 3.0, 3.0])

        # Act
        tree = fit_fanova_tree(feature_matrix, target_array, max_depth=1, settings=settings)

        # Assert
        with check:
            assert tree.caches.domains == (ContinuousDomain(lower=0.0, upper=3.0),)
        with check:
            assert tree.report.total_subspace_size == pytest.approx(3.0)
        with check:
            assert tree.marginalized_mean([math.nan]) == pytest.approx(2.0)

    def test_categorical_domain_and_cutoffs(self, settings: FanovaSettings) -> None:
        """Categorical domains and cutoffs should flow into the caches.

        Args:
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        feature_matrix = np.array([[0.0], [1.0], [2.0], [0.0], [1.0], [2.0]])
        target_array = np.array([1.0, 1.0, 5.0, 1.0, 1.0, 5.0])

        # Act
        tree = fit_fanova_tree(
            feature_matrix,
            target_array,
            domains=[CategoricalDomain(n_categories=3)],
            max_depth=1,
            lower_cutoff=0.0,
            upper_cutoff=2.0,
            settings=settings,
        )

        # Assert
        with check:
            assert tree.report.excluded_leaf_count == 1
        with check:
            assert tree.marginalized_mean([math.nan]) == pytest.approx(1.0)
        with check:
            assert math.isnan(tree.marginalized_mean([2.0]))

    def test_domain_count_mismatch_rejected(self, settings: FanovaSettings) -> None:
        """`domains` must have one entry per column.

        Args:
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        feature_matrix = np.zeros((4, 2))

        # Act / Assert
        with pytest.raises(FeatureCountMismatchError, match="domains"):
            fit_fanova_tree(
                feature_matrix, np.zeros(4), domains=[ContinuousDomain(lower=0.0, upper=1.0)], settings=settings
            )

    def test_nan_features_rejected(self, settings: FanovaSettings) -> None:
        """NaN in the feature matrix should be rejected before fitting.

        Args:
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        feature_matrix = np.array([[0.0], [np.nan]])

        # Act / Assert
        with pytest.raises(ValueError, match="NaN"):
            fit_fanova_tree(feature_matrix, np.array([1.0, 2.0]), settings=settings)


class TestFitFanovaTreeFromDataframe:
    """Tests for `fit_fanova_tree_from_dataframe`."""

    def test_marginals_by_column_name(self, pricing_df: pl.DataFrame, settings: FanovaSettings) -> None:
        """Queries by raw column values should marginalize the unspecified columns.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange / Act
        fitted = fit_fanova_tree_from_dataframe(pricing_df, "price", max_depth=1, settings=settings)

        # Assert
        with check:
            assert fitted.feature_names == ["plan", "size"]
        with check:
            assert {feature.name for feature in fitted.excluded_features} == {"customer_id", "region"}
        with check:
            assert fitted.marginalized_mean({}) == pytest.approx(20.0)
        with check:
            assert fitted.marginalized_mean({"plan": "basic"}) == pytest.approx(10.0)
        with check:
            assert fitted.marginalized_mean({"plan": "pro", "size": 3.0}) == pytest.approx(30.0)
        with check:
            assert fitted.report.active_features == [0]

    def test_domains_inferred_from_data(self, pricing_df: pl.DataFrame, settings: FanovaSettings) -> None:
        """Domains should follow the encoded column types.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange / Act
        fitted = fit_fanova_tree_from_dataframe(pricing_df, "price", features=["plan", "size"], settings=settings)

        # Assert
        assert fitted.domains == [CategoricalDomain(n_categories=2), ContinuousDomain(lower=1.0, upper=8.0)]

    def test_split_values_keyed_by_column(self, pricing_df: pl.DataFrame, settings: FanovaSettings) -> None:
        """A categorical split should list every code, and an unused column no values.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        fitted = fit_fanova_tree_from_dataframe(pricing_df, "price", max_depth=1, settings=settings)

        # Act
        values = fitted.split_values()

        # Assert
        assert values == {"plan": (0.0, 1.0), "size": ()}

    def test_rows_with_nulls_dropped(self, pricing_df: pl.DataFrame, settings: FanovaSettings) -> None:
        """Rows with a null target should be dropped rather than fail the fit.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        df = pricing_df.with_columns(
            pl.when(pl.col("size") == 1.0).then(None).otherwise(pl.col("price")).alias("price")
        )

        # Act
        fitted = fit_fanova_tree_from_dataframe(df, "price", features=["plan", "size"], max_depth=1, settings=settings)

        # Assert
        with check:
            assert fitted.domains[1] == ContinuousDomain(lower=2.0, upper=8.0)
        with check:
            assert fitted.marginalized_mean({"plan": "basic"}) == pytest.approx(10.0)

    def test_unknown_query_column_rejected(self, pricing_df: pl.DataFrame, settings: FanovaSettings) -> None:
        """Queries naming a column the tree was not fitted on should fail.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
        """
        # Arrange
        fitted = fit_fanova_tree_from_dataframe(pricing_df, "price", max_depth=1, settings=settings)

        # Act / Assert
        with pytest.raises(ValueError, match="Not feature columns"):
            fitted.encode_query({"region": "eu"})

    @pytest.mark.parametrize(
        ("target", "features", "message"),
        [
            ("cost", None, "Target column 'cost' not found"),
            ("price", ["plan", "colour"], "not found"),
            ("price", ["plan", "price"], "cannot also be a feature"),
            ("price", ["region", "customer_id"], "No valid feature columns"),
        ],
    )
    def test_invalid_columns_rejected(
        self,
        pricing_df: pl.DataFrame,
        settings: FanovaSettings,
        target: str,
        features: list[str] | None,
        message: str,
    ) -> None:
        """Missing, conflicting or unusable columns should raise ValueError.

        Args:
            pricing_df (pl.DataFrame): Pricing data.
            settings (FanovaSettings): Open-cutoff settings.
            target (str): Target column name.
            features (list[str] | None): Requested features.
            message (str): Expected error fragment.
        """
        # Arrange / Act / Assert
        with pytest.raises(ValueError, match=message):
            fit_fanova_tree_from_dataframe(pricing_df, target, features=features, settings=settings)
