"""Runtime settings for fantree, read from the environment or a ``.env`` file."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type CacheDType = Literal["float64", "float32"]


class FanovaSettings(BaseSettings):
    """Defaults used by ``FanovaTree`` and the fitting helpers.

    Every field can be overridden with a ``FANTREE_``-prefixed environment
    variable, e.g. ``FANTREE_CACHE_DTYPE=float32``.

    Attributes:
        lower_cutoff (float): Default lower cutoff; leaves with a smaller mean
            prediction are excluded from marginalization.
        upper_cutoff (float): Default upper cutoff; leaves with a larger mean
            prediction are excluded from marginalization.
        cache_dtype (CacheDType): Floating dtype of the per-node cache arrays.
        max_depth (int | None): Default maximum depth when fitting a tree.
        min_samples_leaf (int): Default minimum samples per leaf when fitting.
        random_state (int | None): Default random seed when fitting.
    """

    model_config = SettingsConfigDict(
        env_prefix="FANTREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    lower_cutoff: float = Field(default=-math.inf, description="Default lower cutoff for leaf exclusion.")
    upper_cutoff: float = Field(default=math.inf, description="Default upper cutoff for leaf exclusion.")
    cache_dtype: CacheDType = Field(default="float64", description="Floating dtype of the per-node caches.")
    max_depth: int | None = Field(default=None, ge=1, description="Default maximum tree depth when fitting.")
    min_samples_leaf: int = Field(default=1, ge=1, description="Default minimum samples per leaf when fitting.")
    random_state: int | None = Field(default=None, description="Default random seed when fitting.")

    @model_validator(mode="after")
    def _validate_cutoff_order(self) -> FanovaSettings:
        """Validate that the default cutoffs form a non-empty interval.

        Returns:
            FanovaSettings: The validated settings.

        Raises:
            ValueError: If ``lower_cutoff`` exceeds ``upper_cutoff``.
        """
        if self.lower_cutoff > self.upper_cutoff:
            raise ValueError(
                f"lower_cutoff ({self.lower_cutoff}) must not exceed upper_cutoff ({self.upper_cutoff})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> FanovaSettings:
    """Return the process-wide settings, loading them on first use.

    Call ``get_settings.cache_clear()`` after changing the environment to
    reload.

    Returns:
        FanovaSettings: The cached settings instance.
    """
    return FanovaSettings()
