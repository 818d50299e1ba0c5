"""Tests for feature domains, raw bounds conversion and subspace cardinality."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError
from pytest_check import check

from fantree.domain import (
    CategoricalDomain,
    ContinuousDomain,
    domain_types,
    domains_from_bounds,
    entry_size,
    initial_subspace,
    subspace_cardinality,
    validate_domain_count,
)
from fantree.exceptions import FeatureCountMismatchError, InvalidDomainError


class TestContinuousDomain:
    """Tests for `ContinuousDomain` validation and sizing."""

    def test_size_is_range_length(self) -> None:
        """The size of a continuous domain should be `upper - lower`."""
        # Arrange / Act
        domain = ContinuousDomain(lower=-1.0, upper=3.0)

        # Assert
        with check:
            assert domain.size == 4.0
        with check:
            assert domain.to_entry() == (-1.0, 3.0)

    def test_reversed_bounds_raise_validation_error(self) -> None:
        """A lower bound above the upper bound should be rejected."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            ContinuousDomain(lower=2.0, upper=1.0)

    @pytest.mark.parametrize("bad_value", [math.inf, -math.inf, math.nan])
    def test_non_finite_bounds_raise_validation_error(self, bad_value: float) -> None:
        """Infinite or NaN bounds should be rejected because the range length would be undefined.

        Args:
            bad_value (float): A non-finite bound.
        """
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            ContinuousDomain(lower=0.0, upper=bad_value)

    def test_domain_is_frozen(self) -> None:
        """Domains should be immutable once created."""
        # Arrange
        domain = ContinuousDomain(lower=0.0, upper=1.0)

        # Act / Assert
        with pytest.raises(ValidationError):
            domain.upper = 5.0  # type: ignore[misc]


class TestCategoricalDomain:
    """Tests for `CategoricalDomain`."""

    def test_entry_holds_every_code(self) -> None:
        """The full entry should contain codes 0 through n - 1."""
        # Arrange / Act
        domain = CategoricalDomain(n_categories=4)

        # Assert
        with check:
            assert domain.to_entry() == frozenset({0, 1, 2, 3})
        with check:
            assert domain.size == 4.0

    def test_zero_categories_rejected(self) -> None:
        """A categorical feature needs at least one category."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            CategoricalDomain(n_categories=0)


class TestDomainsFromBounds:
    """Tests for `domains_from_bounds`: the raw `(bounds, types)` conversion."""

    def test_mixed_types_produce_matching_domains(self) -> None:
        """Type tag 0 should yield a continuous domain and n > 0 a categorical one."""
        # Arrange
        bounds = [(0.0, 2.0), (0.0, 5.0)]
        types = [0, 5]

        # Act
        domains = domains_from_bounds(bounds, types)

        # Assert
        with check:
            assert domains[0] == ContinuousDomain(lower=0.0, upper=2.0)
        with check:
            assert domains[1] == CategoricalDomain(n_categories=5)

    def test_categorical_bounds_are_ignored(self) -> None:
        """NaN bounds for a categorical feature should not cause an error."""
        # Arrange / Act
        domains = domains_from_bounds([(math.nan, math.nan)], [2])

        # Assert
        assert domains == [CategoricalDomain(n_categories=2)]

    def test_length_mismatch_raises_feature_count_error(self) -> None:
        """Bounds and types of different length should raise `FeatureCountMismatchError`."""
        # Arrange / Act / Assert
        with pytest.raises(FeatureCountMismatchError) as exc_info:
            domains_from_bounds([(0.0, 1.0)], [0, 0])

        with check:
            assert exc_info.value.expected == 2
        with check:
            assert exc_info.value.actual == 1
        with check:
            assert isinstance(exc_info.value, ValueError)

    @pytest.mark.parametrize(
        ("bound", "reason_fragment"),
        [
            ((1.0,), "exactly 2 values"),
            ((0.0, math.inf), "finite"),
            ((3.0, 1.0), "exceeds"),
        ],
    )
    def test_malformed_continuous_bounds_raise_invalid_domain(
        self, bound: tuple[float, ...], reason_fragment: str
    ) -> None:
        """Malformed continuous bounds should raise `InvalidDomainError` naming the feature.

        Args:
            bound (tuple[float, ...]): The malformed bound.
            reason_fragment (str): Text expected in the error reason.
        """
        # Arrange / Act / Assert
        with pytest.raises(InvalidDomainError) as exc_info:
            domains_from_bounds([(0.0, 1.0), bound], [0, 0])

        with check:
            assert exc_info.value.feature_index == 1
        with check:
            assert reason_fragment in exc_info.value.reason

    def test_negative_type_tag_raises_invalid_domain(self) -> None:
        """A negative type tag has no meaning and should be rejected."""
        # Arrange / Act / Assert
        with pytest.raises(InvalidDomainError):
            domains_from_bounds([(0.0, 1.0)], [-1])


class TestSubspaceCardinality:
    """Tests for `subspace_cardinality` and `entry_size`."""

    def test_cardinality_is_product_of_domain_sizes(self) -> None:
        """The full subspace cardinality should equal the product of every domain size."""
        # Arrange
        domains = [ContinuousDomain(lower=0.0, upper=2.5), CategoricalDomain(n_categories=4)]

        # Act
        cardinality = subspace_cardinality(initial_subspace(domains))

        # Assert
        assert cardinality == pytest.approx(10.0)

    def test_empty_category_set_gives_zero(self) -> None:
        """An empty category set should collapse the cardinality to zero."""
        # Arrange / Act / Assert
        assert subspace_cardinality(((0.0, 1.0), frozenset())) == 0.0

    def test_inverted_range_counts_as_empty(self) -> None:
        """A range whose upper end is below its lower end should have size zero."""
        # Arrange / Act / Assert
        assert entry_size((2.0, 1.0)) == 0.0

    def test_no_features_gives_unit_cardinality(self) -> None:
        """A zero-feature space is a single point with cardinality 1."""
        # Arrange / Act / Assert
        assert subspace_cardinality(()) == 1.0


class TestDomainHelpers:
    """Tests for `domain_types` and `validate_domain_count`."""

    def test_domain_types_round_trips_type_tags(self) -> None:
        """`domain_types` should return 0 for continuous and n for categorical domains."""
        # Arrange
        domains = domains_from_bounds([(0.0, 1.0), (0.0, 0.0)], [0, 3])

        # Act / Assert
        assert domain_types(domains) == [0, 3]

    def test_validate_domain_count_rejects_wrong_length(self) -> None:
        """A domain list of the wrong length should raise `FeatureCountMismatchError`."""
        # Arrange / Act / Assert
        with pytest.raises(FeatureCountMismatchError):
            validate_domain_count([ContinuousDomain(lower=0.0, upper=1.0)], 2)
