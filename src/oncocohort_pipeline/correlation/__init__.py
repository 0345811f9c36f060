"""
Correlation analysis between feature tables (e.g. microbes vs immune cells).
"""

from oncocohort_pipeline.correlation.spearman import (
    SpearmanCorrelator,
    correlate_features,
)

__all__ = [
    "SpearmanCorrelator",
    "correlate_features",
]
