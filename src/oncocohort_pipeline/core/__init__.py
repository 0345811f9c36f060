"""
Core infrastructure for oncocohort-pipeline.

Provides:
- Configuration management
- Exception types
"""

from oncocohort_pipeline.core.config import (
    ANALYSIS_KINDS,
    TEST_KINDS,
    AnalysisConfig,
    ComparisonConfig,
    Config,
)
from oncocohort_pipeline.core.exceptions import (
    ComparisonError,
    ConfigurationError,
    DuplicateIdentifierError,
    EmptyFeatureMatrixError,
    InsufficientGroupsError,
)

__all__ = [
    "ANALYSIS_KINDS",
    "TEST_KINDS",
    "AnalysisConfig",
    "ComparisonConfig",
    "Config",
    "ComparisonError",
    "ConfigurationError",
    "DuplicateIdentifierError",
    "EmptyFeatureMatrixError",
    "InsufficientGroupsError",
]
