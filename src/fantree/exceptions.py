"""Custom exceptions for fantree.

Argument validation exceptions (subclass ValueError):
- FeatureCountMismatchError: A per-feature argument has the wrong length.
- InvalidDomainError: A feature domain description is malformed.

State exceptions (subclass RuntimeError):
- CachesNotComputedError: Cached fANOVA state was read before ``precompute``
  or after the tree topology changed.

Undefined numeric outcomes (every leaf excluded by the cutoffs, empty
subspaces) are reported as NaN, not raised.
"""

from __future__ import annotations


class FeatureCountMismatchError(ValueError):
    """Raised when a per-feature argument does not match the feature count.

    Attributes:
        argument (str): Name of the offending argument, e.g. ``"bounds"``.
        expected (int): Number of entries required.
        actual (int): Number of entries received.

    Examples:
        >>> err = FeatureCountMismatchError(argument="types", expected=3, actual=2)
        >>> err.expected, err.actual
        (3, 2)
    """

    argument: str
    expected: int
    actual: int

    def __init__(self, *, argument: str, expected: int, actual: int) -> None:
        """Initialize FeatureCountMismatchError.

        Args:
            argument (str): Name of the offending argument.
            expected (int): Number of entries required.
            actual (int): Number of entries received.
        """
        super().__init__(f"'{argument}' has {actual} entries but {expected} features are expected")
        self.argument = argument
        self.expected = expected
        self.actual = actual

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the argument name and both counts.
        """
        return (
            f"{self.__class__.__name__}("
            f"argument={self.argument!r}, expected={self.expected!r}, actual={self.actual!r})"
        )


class InvalidDomainError(ValueError):
    """Raised when a feature's bounds or type tag cannot describe a domain.

    Attributes:
        feature_index (int): Index of the feature with the bad description.
        reason (str): Human-readable explanation.

    Examples:
        >>> err = InvalidDomainError(feature_index=1, reason="lower bound exceeds upper bound")
        >>> str(err)
        'Invalid domain for feature 1: lower bound exceeds upper bound'
    """

    feature_index: int
    reason: str

    def __init__(self, *, feature_index: int, reason: str) -> None:
        """Initialize InvalidDomainError.

        Args:
            feature_index (int): Index of the feature with the bad description.
            reason (str): Human-readable explanation.
        """
        super().__init__(f"Invalid domain for feature {feature_index}: {reason}")
        self.feature_index = feature_index
        self.reason = reason

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the feature index and reason.
        """
        return f"{self.__class__.__name__}(feature_index={self.feature_index!r}, reason={self.reason!r})"


class CachesNotComputedError(RuntimeError):
    """Raised when fANOVA caches are read before they exist or after they went stale.

    Attributes:
        stale (bool): True when caches existed but the tree was refit since.
    """

    stale: bool

    def __init__(self, *, stale: bool = False) -> None:
        """Initialize CachesNotComputedError.

        Args:
            stale (bool): True when caches existed but belong to an older topology.
        """
        if stale:
            message = "fANOVA caches are stale because the tree was refit; call precompute() again"
        else:
            message = "fANOVA caches have not been computed; call precompute() first"
        super().__init__(message)
        self.stale = stale

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the stale flag.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, stale={self.stale!r})"
