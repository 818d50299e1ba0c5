"""fantree: functional ANOVA caches and marginal queries for binary regression trees."""

from loguru import logger

from fantree.domain import CategoricalDomain, ContinuousDomain, FeatureDomain
from fantree.exceptions import CachesNotComputedError, FeatureCountMismatchError, InvalidDomainError
from fantree.fitting import FittedFanovaTree, fit_fanova_tree, fit_fanova_tree_from_dataframe
from fantree.logging import PACKAGE_NAME, enable_logging
from fantree.models import CutoffInterval, PrecomputeReport
from fantree.nodes import BinaryTree, Node, Split
from fantree.tree import FanovaTree

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the fantree package by default

__all__ = [
    "BinaryTree",
    "CachesNotComputedError",
    "CategoricalDomain",
    "ContinuousDomain",
    "CutoffInterval",
    "FanovaTree",
    "FeatureCountMismatchError",
    "FeatureDomain",
    "FittedFanovaTree",
    "InvalidDomainError",
    "Node",
    "PrecomputeReport",
    "Split",
    "enable_logging",
    "fit_fanova_tree",
    "fit_fanova_tree_from_dataframe",
]
