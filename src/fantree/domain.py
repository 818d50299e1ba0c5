"""Feature domains and the bounding descriptions ("subspaces") derived from them.

A subspace holds one entry per feature: a ``(lower, upper)`` float pair for a
continuous feature, or a frozenset of integer category codes for a categorical
feature. Its cardinality is the product of the range lengths and category
counts.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fantree.exceptions import FeatureCountMismatchError, InvalidDomainError

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type ContinuousRange = tuple[float, float]

type CategorySet = frozenset[int]

type SubspaceEntry = ContinuousRange | CategorySet

type Subspace = tuple[SubspaceEntry, ...]

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class ContinuousDomain(BaseModel):
    """A continuous feature ranging over ``[lower, upper]``.

    Attributes:
        kind (Literal["continuous"]): Discriminator field.
        lower (float): Smallest value of the feature.
        upper (float): Largest value of the feature.

    Examples:
        >>> ContinuousDomain(lower=0.0, upper=2.5).size
        2.5
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["continuous"] = Field(default="continuous", description='Discriminator. Always "continuous".')
    lower: float = Field(allow_inf_nan=False, description="Smallest value of the feature.")
    upper: float = Field(allow_inf_nan=False, description="Largest value of the feature.")

    @model_validator(mode="after")
    def _validate_ordered_bounds(self) -> ContinuousDomain:
        """Validate that ``lower <= upper``.

        Returns:
            ContinuousDomain: The validated model instance.

        Raises:
            ValueError: If ``lower`` exceeds ``upper``.
        """
        if self.lower > self.upper:
            raise ValueError(f"lower ({self.lower}) must not exceed upper ({self.upper})")
        return self

    @property
    def size(self) -> float:
        """Length of the range."""
        return self.upper - self.lower

    def to_entry(self) -> ContinuousRange:
        """Return the subspace entry covering the whole domain."""
        return (self.lower, self.upper)


class CategoricalDomain(BaseModel):
    """A categorical feature with codes ``0 .. n_categories - 1``.

    Attributes:
        kind (Literal["categorical"]): Discriminator field.
        n_categories (int): Number of categories.

    Examples:
        >>> sorted(CategoricalDomain(n_categories=3).to_entry())
        [0, 1, 2]
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["categorical"] = Field(default="categorical", description='Discriminator. Always "categorical".')
    n_categories: int = Field(ge=1, description="Number of categories; codes run from 0 to n_categories - 1.")

    @property
    def size(self) -> float:
        """Number of categories as a float."""
        return float(self.n_categories)

    def to_entry(self) -> CategorySet:
        """Return the subspace entry covering every category."""
        return frozenset(range(self.n_categories))


type FeatureDomain = Annotated[
    ContinuousDomain | CategoricalDomain,
    Field(discriminator="kind"),
]

# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def domains_from_bounds(
    bounds: Sequence[Sequence[float]],
    types: Sequence[int],
) -> list[ContinuousDomain | CategoricalDomain]:
    """Build typed domains from the raw ``(bounds, types)`` pair.

    ``types[i] == 0`` marks feature ``i`` as continuous with
    ``bounds[i] == (lower, upper)``. ``types[i] == n > 0`` marks it as
    categorical with ``n`` categories; ``bounds[i]`` is ignored in that case.

    Args:
        bounds (Sequence[Sequence[float]]): One bound pair per feature.
        types (Sequence[int]): One type tag per feature.

    Returns:
        list[ContinuousDomain | CategoricalDomain]: One domain per feature.

    Raises:
        FeatureCountMismatchError: If ``bounds`` and ``types`` differ in length.
        InvalidDomainError: If a type tag is negative or a continuous bound is
            not a finite, ordered pair.
    """
    if len(bounds) != len(types):
        raise FeatureCountMismatchError(argument="bounds", expected=len(types), actual=len(bounds))

    domains: list[ContinuousDomain | CategoricalDomain] = []
    for feature_index, (bound, type_tag) in enumerate(zip(bounds, types, strict=True)):
        if type_tag < 0:
            raise InvalidDomainError(feature_index=feature_index, reason=f"type tag must be >= 0, got {type_tag}")
        if type_tag > 0:
            domains.append(CategoricalDomain(n_categories=int(type_tag)))
            continue
        domains.append(_continuous_domain(feature_index, bound))
    return domains


def validate_domain_count(domains: Sequence[ContinuousDomain | CategoricalDomain], num_features: int) -> None:
    """Raise if ``domains`` does not hold exactly one entry per feature.

    Args:
        domains (Sequence[ContinuousDomain | CategoricalDomain]): Domains to check.
        num_features (int): Number of features the tree was fit on.

    Raises:
        FeatureCountMismatchError: If the counts differ.
    """
    if len(domains) != num_features:
        raise FeatureCountMismatchError(argument="domains", expected=num_features, actual=len(domains))


def initial_subspace(domains: Sequence[ContinuousDomain | CategoricalDomain]) -> Subspace:
    """Return the subspace covering the full declared input space.

    Args:
        domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.

    Returns:
        Subspace: The root bounding description.
    """
    return tuple(domain.to_entry() for domain in domains)


def entry_size(entry: SubspaceEntry) -> float:
    """Return the length of a range or the number of categories in a set.

    Args:
        entry (SubspaceEntry): One feature's bounding description.

    Returns:
        float: Non-negative size of the entry.
    """
    if isinstance(entry, frozenset):
        return float(len(entry))
    lower, upper = entry
    return max(upper - lower, 0.0)


def subspace_cardinality(subspace: Subspace) -> float:
    """Return the product of per-feature sizes.

    An empty subspace tuple (a tree with no features) has cardinality 1.

    Args:
        subspace (Subspace): A bounding description.

    Returns:
        float: The cardinality, zero if any feature is empty.
    """
    return math.prod(entry_size(entry) for entry in subspace)


def domain_types(domains: Sequence[ContinuousDomain | CategoricalDomain]) -> list[int]:
    """Return the raw type tags (0 or category count) for ``domains``.

    Args:
        domains (Sequence[ContinuousDomain | CategoricalDomain]): One domain per feature.

    Returns:
        list[int]: ``0`` for continuous features, ``n_categories`` otherwise.
    """
    return [domain.n_categories if isinstance(domain, CategoricalDomain) else 0 for domain in domains]


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _continuous_domain(feature_index: int, bound: Sequence[float]) -> ContinuousDomain:
    """Validate one continuous bound pair and wrap it in a ``ContinuousDomain``.

    Args:
        feature_index (int): Index of the feature, used in error messages.
        bound (Sequence[float]): The ``(lower, upper)`` pair.

    Returns:
        ContinuousDomain: The validated domain.

    Raises:
        InvalidDomainError: If the pair is malformed.
    """
    if len(bound) != 2:
        raise InvalidDomainError(
            feature_index=feature_index, reason=f"continuous bounds need exactly 2 values, got {len(bound)}"
        )
    lower, upper = float(bound[0]), float(bound[1])
    if not (math.isfinite(lower) and math.isfinite(upper)):
        raise InvalidDomainError(feature_index=feature_index, reason="continuous bounds must be finite")
    if lower > upper:
        raise InvalidDomainError(feature_index=feature_index, reason="lower bound exceeds upper bound")
    return ContinuousDomain(lower=lower, upper=upper)
