"""Pydantic models for fANOVA precompute arguments and reports."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CutoffInterval(BaseModel):
    """Closed interval of admissible leaf predictions.

    Leaves whose mean prediction lies outside ``[lower, upper]`` are excluded
    from every marginalization.

    Attributes:
        lower (float): Lower cutoff; may be ``-inf``.
        upper (float): Upper cutoff; may be ``+inf``.

    Examples:
        >>> interval = CutoffInterval(lower=2.0, upper=4.0)
        >>> interval.contains(1.0), interval.contains(3.0)
        (False, True)
    """

    model_config = ConfigDict(frozen=True)

    lower: float = Field(default=-math.inf, description="Lower cutoff for leaf predictions (inclusive).")
    upper: float = Field(default=math.inf, description="Upper cutoff for leaf predictions (inclusive).")

    @model_validator(mode="after")
    def _validate_interval(self) -> CutoffInterval:
        """Validate that the interval is not NaN and not reversed.

        Returns:
            CutoffInterval: The validated model instance.

        Raises:
            ValueError: If a bound is NaN or ``lower > upper``.
        """
        if math.isnan(self.lower) or math.isnan(self.upper):
            raise ValueError("cutoffs must not be NaN")
        if self.lower > self.upper:
            raise ValueError(f"lower cutoff ({self.lower}) must not exceed upper cutoff ({self.upper})")
        return self

    def contains(self, value: float) -> bool:
        """Return True if ``value`` lies inside the closed interval."""
        return self.lower <= value <= self.upper


class PrecomputeReport(BaseModel):
    """Summary of one ``FanovaTree.precompute`` call.

    Attributes:
        node_count (int): Number of nodes in the tree.
        leaf_count (int): Number of leaves in the tree.
        excluded_leaf_count (int): Leaves dropped by the cutoffs or with an
            empty subspace.
        total_subspace_size (float): Cardinality of the declared input space.
        root_subspace_size (float): Root cardinality after cutoff exclusion.
        root_marginal_prediction (float): Mean prediction over the whole space;
            NaN if every leaf was excluded.
        active_features (list[int]): Features the tree splits on anywhere.
    """

    node_count: int = Field(ge=1, description="Number of nodes in the tree.")
    leaf_count: int = Field(ge=1, description="Number of leaves in the tree.")
    excluded_leaf_count: int = Field(ge=0, description="Leaves excluded by the cutoffs or an empty subspace.")
    total_subspace_size: float = Field(ge=0.0, description="Cardinality of the declared input space.")
    root_subspace_size: float = Field(ge=0.0, description="Root cardinality after cutoff exclusion.")
    root_marginal_prediction: float = Field(description="Mean prediction over the space; NaN if all excluded.")
    active_features: list[int] = Field(description="Sorted features the tree splits on.")

    @model_validator(mode="after")
    def _validate_counts(self) -> PrecomputeReport:
        """Validate that the leaf counts are consistent.

        Returns:
            PrecomputeReport: The validated model instance.

        Raises:
            ValueError: If there are more leaves than nodes or more excluded
                leaves than leaves.
        """
        if self.leaf_count > self.node_count:
            raise ValueError(f"leaf_count ({self.leaf_count}) must not exceed node_count ({self.node_count})")
        if self.excluded_leaf_count > self.leaf_count:
            raise ValueError(
                f"excluded_leaf_count ({self.excluded_leaf_count}) must not exceed leaf_count ({self.leaf_count})"
            )
        return self

    @property
    def all_leaves_excluded(self) -> bool:
        """Whether every leaf was excluded, making all marginal predictions NaN."""
        return self.excluded_leaf_count == self.leaf_count
