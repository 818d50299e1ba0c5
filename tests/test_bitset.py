"""Tests for packed feature masks."""

from __future__ import annotations

import pytest
from pytest_check import check

from fantree.bitset import EMPTY_MASK, feature_bit, mask_from_indices, mask_to_indices


class TestFeatureMasks:
    """Tests for packing and unpacking masks."""

    def test_pack_and_unpack_indices(self) -> None:
        """Packing indices and unpacking the mask should give back the same set."""
        # Arrange
        indices = [0, 3, 3, 70]

        # Act
        mask = mask_from_indices(indices)

        # Assert
        with check:
            assert mask_to_indices(mask) == frozenset({0, 3, 70})
        with check:
            assert mask & feature_bit(70)

    def test_empty_mask_unpacks_to_empty_set(self) -> None:
        """The empty mask should hold no features."""
        # Arrange / Act / Assert
        assert mask_to_indices(EMPTY_MASK) == frozenset()

    def test_negative_index_rejected(self) -> None:
        """Feature indices are non-negative."""
        # Arrange / Act / Assert
        with pytest.raises(ValueError, match=">= 0"):
            feature_bit(-1)
