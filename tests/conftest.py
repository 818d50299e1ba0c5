"""Shared hand-built trees for the fantree test suite.

``two_leaf_tree``: one continuous feature split at 0.5 with leaf means 1.0 / 3.0.

``mixed_tree``: three features (continuous ``[0, 10]``, categorical with 3
codes, continuous ``[0, 1]`` never split on)::

    0: x0 <= 4 ──┬── 1: x1 in {0} ──┬── 3: leaf 2.0
                 │                  └── 4: x0 <= 2 ──┬── 5: leaf 4.0
                 │                                   └── 6: leaf 6.0
                 └── 2: leaf 10.0
"""

from __future__ import annotations

import math

import pytest

from fantree.nodes import BinaryTree, Node, Split

MIXED_BOUNDS: list[tuple[float, float]] = [(0.0, 10.0), (math.nan, math.nan), (0.0, 1.0)]
MIXED_TYPES: list[int] = [0, 3, 0]


def build_two_leaf_tree() -> BinaryTree:
    """Build the single-split tree with leaf means 1.0 and 3.0.

    Returns:
        BinaryTree: The three-node tree.
    """
    return BinaryTree(
        nodes=(
            Node(index=0, parent=None, children=(1, 2), split=Split(feature_index=0, threshold=0.5), mean=2.0),
            Node(index=1, parent=0, children=None, split=None, mean=1.0),
            Node(index=2, parent=0, children=None, split=None, mean=3.0),
        ),
        num_features=1,
    )


def build_mixed_tree() -> BinaryTree:
    """Build the seven-node tree over one categorical and two continuous features.

    Returns:
        BinaryTree: The seven-node tree.
    """
    return BinaryTree(
        nodes=(
            Node(index=0, parent=None, children=(1, 2), split=Split(feature_index=0, threshold=4.0), mean=7.0),
            Node(
                index=1,
                parent=0,
                children=(3, 4),
                split=Split(feature_index=1, left_categories=frozenset({0})),
                mean=4.0,
            ),
            Node(index=2, parent=0, children=None, split=None, mean=10.0),
            Node(index=3, parent=1, children=None, split=None, mean=2.0),
            Node(index=4, parent=1, children=(5, 6), split=Split(feature_index=0, threshold=2.0), mean=5.0),
            Node(index=5, parent=4, children=None, split=None, mean=4.0),
            Node(index=6, parent=4, children=None, split=None, mean=6.0),
        ),
        num_features=3,
    )


@pytest.fixture
def two_leaf_tree() -> BinaryTree:
    """Provide the single-split tree.

    Returns:
        BinaryTree: A fresh two-leaf tree.
    """
    return build_two_leaf_tree()


@pytest.fixture
def mixed_tree() -> BinaryTree:
    """Provide the seven-node mixed-feature tree.

    Returns:
        BinaryTree: A fresh mixed tree.
    """
    return build_mixed_tree()


@pytest.fixture
def mixed_bounds() -> list[tuple[float, float]]:
    """Provide raw bounds for `mixed_tree`; the categorical entry is ignored.

    Returns:
        list[tuple[float, float]]: One bound pair per feature.
    """
    return list(MIXED_BOUNDS)


@pytest.fixture
def mixed_types() -> list[int]:
    """Provide raw type tags for `mixed_tree`.

    Returns:
        list[int]: ``[0, 3, 0]``.
    """
    return list(MIXED_TYPES)
