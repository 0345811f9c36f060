"""
Microbiome abundance and diversity metrics.
"""

from oncocohort_pipeline.microbiome.diversity import (
    ALPHA_METRICS,
    alpha_diversity,
    beta_diversity,
    compare_diversity,
    filter_prevalence,
    relative_abundance,
)

__all__ = [
    "ALPHA_METRICS",
    "alpha_diversity",
    "beta_diversity",
    "compare_diversity",
    "filter_prevalence",
    "relative_abundance",
]
