"""
T-test variants for differential analysis.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from scipy import stats

from oncocohort_pipeline.differential.base import FeatureTest
from oncocohort_pipeline.differential.effect_size import cohens_d


class WelchTTest(FeatureTest):
    """
    T-test for comparing two groups.

    Supports independent samples t-test and Welch's t-test.

    Example:
        >>> test = WelchTTest(equal_var=False)  # Welch's t-test
        >>> statistic, pvalue = test({"C1": group1, "C2": group2})
    """

    kind = "ttest"
    max_groups = 2
    summary_name = "mean"

    def __init__(
        self,
        equal_var: bool = False,
        alternative: Literal["two-sided", "greater", "less"] = "two-sided",
    ):
        """
        Initialize t-test.

        Args:
            equal_var: Assume equal variance (False = Welch's).
            alternative: Alternative hypothesis.
        """
        self.equal_var = equal_var
        self.alternative = alternative

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        x, y = self._two(groups)
        if len(x) < 2 or len(y) < 2:
            raise ValueError("t-test needs at least two values per group")
        statistic, pvalue = stats.ttest_ind(
            x, y, equal_var=self.equal_var, alternative=self.alternative
        )
        return float(statistic), float(pvalue)

    def effect_size(self, groups: dict[str, np.ndarray]) -> float:
        x, y = self._two(groups)
        return cohens_d(x, y)
