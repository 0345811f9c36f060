"""
Lookup of per-feature tests by name.
"""

from __future__ import annotations

from oncocohort_pipeline.core.exceptions import ConfigurationError
from oncocohort_pipeline.differential.base import FeatureTest
from oncocohort_pipeline.differential.categorical import ChiSquareTest, FisherExactTest
from oncocohort_pipeline.differential.ttest import WelchTTest
from oncocohort_pipeline.differential.wilcoxon import KruskalWallisTest, WilcoxonRankSumTest

FEATURE_TESTS: dict[str, type[FeatureTest]] = {
    "fisher": FisherExactTest,
    "chi2": ChiSquareTest,
    "wilcoxon": WilcoxonRankSumTest,
    "kruskal": KruskalWallisTest,
    "ttest": WelchTTest,
}


def get_feature_test(kind: str, **kwargs) -> FeatureTest:
    """
    Instantiate the test registered under ``kind``.

    Raises:
        ConfigurationError: Unknown test kind.
    """
    try:
        cls = FEATURE_TESTS[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown test_kind: {kind!r}. Available: {sorted(FEATURE_TESTS)}"
        ) from None
    return cls(**kwargs)
