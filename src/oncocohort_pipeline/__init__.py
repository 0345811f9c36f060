"""
oncocohort-pipeline - group-wise comparison analyses for tumor cohort studies.

This package provides:
- Group comparison of per-sample features (Fisher, chi-square, Wilcoxon,
  Kruskal-Wallis, t-test) with batch multiple-testing correction
- Mutation burden, per-group frequencies and gene interactions
- Microbiome abundance and diversity metrics
- Feature-feature correlation (e.g. microbes vs immune cells)
- CSV and plot export

Example:
    >>> from oncocohort_pipeline import ComparisonConfig, compare_groups
    >>> from oncocohort_pipeline.ingest import load_mutation_calls, mutation_matrix
    >>>
    >>> calls = load_mutation_calls("cohort.maf", barcode_length=12)
    >>> result = compare_groups(
    ...     mutation_matrix(calls),
    ...     clusters,
    ...     ComparisonConfig(test_kind="fisher", multiple_testing_correction="fdr_bh"),
    ... )
    >>> result.significant_dataframe()
"""

__version__ = "0.1.0"

# Core infrastructure
from oncocohort_pipeline.core.config import AnalysisConfig, ComparisonConfig, Config
from oncocohort_pipeline.core.exceptions import (
    ComparisonError,
    ConfigurationError,
    DuplicateIdentifierError,
    EmptyFeatureMatrixError,
    InsufficientGroupsError,
)

# Subpackages are imported as needed:
#   from oncocohort_pipeline.ingest import load_mutation_calls
#   from oncocohort_pipeline.mutation import somatic_interactions
#   from oncocohort_pipeline.microbiome import alpha_diversity
#   from oncocohort_pipeline.correlation import correlate_features
#   from oncocohort_pipeline.export import CSVWriter

from oncocohort_pipeline.differential.comparison import (
    ComparisonResult,
    FeatureTestResult,
    GroupComparison,
    compare_groups,
    compare_many,
)
from oncocohort_pipeline.pipeline import PipelineResult, StudyPipeline, create_pipeline

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "StudyPipeline",
    "PipelineResult",
    "create_pipeline",
    # Comparison
    "GroupComparison",
    "ComparisonResult",
    "FeatureTestResult",
    "compare_groups",
    "compare_many",
    # Core
    "AnalysisConfig",
    "ComparisonConfig",
    "Config",
    "ComparisonError",
    "ConfigurationError",
    "DuplicateIdentifierError",
    "EmptyFeatureMatrixError",
    "InsufficientGroupsError",
]
