"""Tests for environment-driven settings."""

from __future__ import annotations

import math
from collections.abc import Generator

import pytest
from pydantic import ValidationError
from pytest_check import check

from fantree.config import FanovaSettings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Reset the cached settings before and after each test.

    Yields:
        None: Nothing; used only for setup/teardown side effects.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestFanovaSettings:
    """Tests for `FanovaSettings` and `get_settings`."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without overrides the cutoffs should be open and caches float64.

        Args:
            monkeypatch (pytest.MonkeyPatch): Used to clear FANTREE_ variables.
        """
        # Arrange
        for name in ("LOWER_CUTOFF", "UPPER_CUTOFF", "CACHE_DTYPE", "MAX_DEPTH", "MIN_SAMPLES_LEAF"):
            monkeypatch.delenv(f"FANTREE_{name}", raising=False)

        # Act
        settings = FanovaSettings(_env_file=None)

        # Assert
        with check:
            assert settings.lower_cutoff == -math.inf
        with check:
            assert settings.upper_cutoff == math.inf
        with check:
            assert settings.cache_dtype == "float64"
        with check:
            assert settings.max_depth is None
        with check:
            assert settings.min_samples_leaf == 1

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """`FANTREE_`-prefixed variables should override the defaults.

        Args:
            monkeypatch (pytest.MonkeyPatch): Used to set FANTREE_ variables.
        """
        # Arrange
        monkeypatch.setenv("FANTREE_CACHE_DTYPE", "float32")
        monkeypatch.setenv("FANTREE_LOWER_CUTOFF", "1.5")
        monkeypatch.setenv("FANTREE_MAX_DEPTH", "4")

        # Act
        settings = get_settings()

        # Assert
        with check:
            assert settings.cache_dtype == "float32"
        with check:
            assert settings.lower_cutoff == 1.5
        with check:
            assert settings.max_depth == 4

    def test_get_settings_is_cached(self) -> None:
        """Repeated calls should return the same instance until the cache is cleared."""
        # Arrange / Act
        first = get_settings()
        second = get_settings()
        get_settings.cache_clear()
        third = get_settings()

        # Assert
        with check:
            assert first is second
        with check:
            assert third is not first

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"lower_cutoff": 5.0, "upper_cutoff": 1.0},
            {"cache_dtype": "float16"},
            {"max_depth": 0},
            {"min_samples_leaf": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, object]) -> None:
        """Reversed cutoffs, unknown dtypes and non-positive tree sizes should fail validation.

        Args:
            kwargs (dict[str, object]): Invalid field values.
        """
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            FanovaSettings(**kwargs)
