"""
Exception types raised by the comparison pipeline.

All errors derive from ``ComparisonError`` (a ``ValueError``) so callers that
already guard pandas/scipy input errors with ``except ValueError`` keep working.
"""


class ComparisonError(ValueError):
    """Base class for pipeline errors."""


class ConfigurationError(ComparisonError):
    """Invalid or unrecognized configuration, raised before any computation."""


class InsufficientGroupsError(ComparisonError):
    """Fewer than two non-empty groups remain after sample matching."""


class EmptyFeatureMatrixError(ComparisonError):
    """No features (or no samples) remain to be tested."""


class DuplicateIdentifierError(ComparisonError):
    """Sample or feature identifiers are not unique."""
