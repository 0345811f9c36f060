"""
Differential analysis pipeline.

Group-wise comparison of per-sample features with batch p-value correction.
"""

from oncocohort_pipeline.differential.base import FeatureTest
from oncocohort_pipeline.differential.categorical import (
    ChiSquareTest,
    FisherExactTest,
)
from oncocohort_pipeline.differential.wilcoxon import (
    KruskalWallisTest,
    WilcoxonRankSumTest,
)
from oncocohort_pipeline.differential.ttest import WelchTTest
from oncocohort_pipeline.differential.registry import (
    FEATURE_TESTS,
    get_feature_test,
)
from oncocohort_pipeline.differential.effect_size import (
    cohens_d,
    cramers_v,
    mean_difference,
    odds_ratio,
)
from oncocohort_pipeline.differential.fdr import (
    apply_fdr,
    FDRCorrector,
)
from oncocohort_pipeline.differential.significance import (
    format_pvalue,
    significance_tier,
    star_label,
)
from oncocohort_pipeline.differential.comparison import (
    apply_top_n,
    compare_groups,
    compare_many,
    ComparisonResult,
    FeatureTestResult,
    GroupComparison,
)

__all__ = [
    # Tests
    "FeatureTest",
    "FisherExactTest",
    "ChiSquareTest",
    "WilcoxonRankSumTest",
    "KruskalWallisTest",
    "WelchTTest",
    "FEATURE_TESTS",
    "get_feature_test",
    # Effect size
    "cohens_d",
    "cramers_v",
    "mean_difference",
    "odds_ratio",
    # FDR
    "apply_fdr",
    "FDRCorrector",
    # Tiers
    "format_pvalue",
    "significance_tier",
    "star_label",
    # Comparison
    "apply_top_n",
    "compare_groups",
    "compare_many",
    "ComparisonResult",
    "FeatureTestResult",
    "GroupComparison",
]
