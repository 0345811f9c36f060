"""
Output generation.

CSV tables and PDF/PNG plots of comparison results.
"""

from oncocohort_pipeline.export.csv_writer import CSVWriter
from oncocohort_pipeline.export.plots import (
    DEFAULT_PALETTE,
    plot_forest,
    plot_group_frequencies,
    plot_pvalue_bars,
)

__all__ = [
    "CSVWriter",
    "DEFAULT_PALETTE",
    "plot_forest",
    "plot_group_frequencies",
    "plot_pvalue_bars",
]
