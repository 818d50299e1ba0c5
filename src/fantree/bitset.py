"""Packed feature sets stored as Python integers (bit ``i`` set = feature ``i`` present)."""

from __future__ import annotations

from collections.abc import Iterable

type FeatureMask = int

EMPTY_MASK: FeatureMask = 0


def feature_bit(feature_index: int) -> FeatureMask:
    """Return the mask holding only ``feature_index``.

    Args:
        feature_index (int): A non-negative feature index.

    Returns:
        FeatureMask: ``1 << feature_index``.

    Raises:
        ValueError: If ``feature_index`` is negative.
    """
    if feature_index < 0:
        raise ValueError(f"feature_index must be >= 0, got {feature_index}")
    return 1 << feature_index


def mask_from_indices(indices: Iterable[int]) -> FeatureMask:
    """Pack feature indices into a mask.

    Args:
        indices (Iterable[int]): Feature indices; duplicates are allowed.

    Returns:
        FeatureMask: The packed mask.
    """
    mask = EMPTY_MASK
    for index in indices:
        mask |= feature_bit(index)
    return mask


def mask_to_indices(mask: FeatureMask) -> frozenset[int]:
    """Unpack a mask into the set of feature indices it contains.

    Args:
        mask (FeatureMask): A packed mask.

    Returns:
        frozenset[int]: Indices of the set bits.
    """
    indices: set[int] = set()
    while mask:
        lowest = mask & -mask
        indices.add(lowest.bit_length() - 1)
        mask ^= lowest
    return frozenset(indices)
