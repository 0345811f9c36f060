"""
Rank-based tests for continuous features (Wilcoxon rank-sum, Kruskal-Wallis).
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from scipy import stats

from oncocohort_pipeline.differential.base import FeatureTest
from oncocohort_pipeline.differential.effect_size import eta_squared_h, mean_difference


class WilcoxonRankSumTest(FeatureTest):
    """
    Wilcoxon rank-sum (Mann-Whitney U) test.

    Non-parametric test for comparing two groups. The effect size is the
    difference of group means (first group minus second).

    Example:
        >>> test = WilcoxonRankSumTest()
        >>> statistic, pvalue = test({"C1": cluster1_scores, "C2": cluster2_scores})
    """

    kind = "wilcoxon"
    max_groups = 2
    summary_name = "median"

    def __init__(
        self,
        alternative: Literal["two-sided", "greater", "less"] = "two-sided",
    ):
        """
        Initialize Wilcoxon test.

        Args:
            alternative: Alternative hypothesis.
        """
        self.alternative = alternative

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        x, y = self._two(groups)
        if len(x) == 0 or len(y) == 0:
            raise ValueError("both groups need at least one value")
        statistic, pvalue = stats.mannwhitneyu(x, y, alternative=self.alternative)
        return float(statistic), float(pvalue)

    def effect_size(self, groups: dict[str, np.ndarray]) -> float:
        x, y = self._two(groups)
        return mean_difference(x, y)

    def summarize(self, values: np.ndarray) -> float:
        if len(values) == 0:
            return float("nan")
        return float(np.median(values))


class KruskalWallisTest(FeatureTest):
    """
    Kruskal-Wallis H test for two or more groups.

    scipy rejects features whose values are all identical; those surface as
    failed features rather than aborting the scan.
    """

    kind = "kruskal"
    summary_name = "median"

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        samples = [np.asarray(v, dtype=float) for v in groups.values()]
        if len(samples) < 2:
            raise ValueError("need at least two groups")
        statistic, pvalue = stats.kruskal(*samples)
        return float(statistic), float(pvalue)

    def effect_size(self, groups: dict[str, np.ndarray]) -> float:
        h, _ = self.test(groups)
        n_total = sum(len(v) for v in groups.values())
        return eta_squared_h(h, n_total, len(groups))

    def summarize(self, values: np.ndarray) -> float:
        if len(values) == 0:
            return float("nan")
        return float(np.median(values))
