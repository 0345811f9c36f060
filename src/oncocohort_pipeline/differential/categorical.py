"""
Categorical association tests (mutation status, clinical categories).
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy import stats

from oncocohort_pipeline.differential.base import FeatureTest
from oncocohort_pipeline.differential.effect_size import cramers_v, odds_ratio


def binary_table(groups: dict[str, np.ndarray]) -> np.ndarray:
    """
    Groups x (present, absent) contingency table.

    A value counts as present (mutated) when it is > 0.
    """
    rows = []
    for values in groups.values():
        values = np.asarray(values, dtype=float)
        present = int((values > 0).sum())
        rows.append([present, len(values) - present])
    return np.array(rows, dtype=int)


def category_table(groups: dict[str, np.ndarray]) -> pd.DataFrame:
    """Groups x categories contingency table."""
    labels = np.concatenate([[g] * len(v) for g, v in groups.items()])
    values = np.concatenate([np.asarray(v, dtype=object) for v in groups.values()])
    table = pd.crosstab(pd.Series(labels, name="group"), pd.Series(values, name="value"))
    return table.reindex(list(groups.keys()), fill_value=0)


class FisherExactTest(FeatureTest):
    """
    Fisher's exact test on mutated / not-mutated counts in two groups.

    The statistic is scipy's sample odds ratio, which is also the effect size.

    Example:
        >>> test = FisherExactTest()
        >>> odds, pvalue = test({"C1": np.array([1, 0]), "C2": np.array([1, 0])})
    """

    kind = "fisher"
    max_groups = 2
    summary_name = "frequency"

    def __init__(self, alternative: str = "two-sided"):
        self.alternative = alternative

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        self._two(groups)
        table = binary_table(groups)
        statistic, pvalue = stats.fisher_exact(table, alternative=self.alternative)
        return float(statistic), float(pvalue)

    def effect_size(self, groups: dict[str, np.ndarray]) -> float:
        return odds_ratio(binary_table(groups))

    def summarize(self, values: np.ndarray) -> float:
        if len(values) == 0:
            return float("nan")
        return float((np.asarray(values, dtype=float) > 0).mean())


class ChiSquareTest(FeatureTest):
    """
    Chi-square test of independence between group and category.

    Works for any number of groups and categories. Tables with an empty
    row or column are rejected by scipy and surface as failed features.
    """

    kind = "chi2"
    summary_name = "frequency"

    def __init__(self, correction: bool = True):
        self.correction = correction

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        table = category_table(groups)
        if table.shape[1] < 2:
            raise ValueError("feature has a single category")
        chi2, pvalue, _, _ = stats.chi2_contingency(table.values, correction=self.correction)
        return float(chi2), float(pvalue)

    def effect_size(self, groups: dict[str, np.ndarray]) -> float:
        table = category_table(groups)
        if table.shape == (2, 2):
            # Column order from crosstab is ascending; put "present" first
            return odds_ratio(table.values[:, ::-1])
        if table.shape[1] < 2:
            return float("nan")
        chi2, _, _, _ = stats.chi2_contingency(table.values, correction=False)
        return cramers_v(chi2, table.values)

    def summarize(self, values: np.ndarray) -> float:
        if len(values) == 0:
            return float("nan")
        values = pd.to_numeric(pd.Series(values), errors="coerce")
        return float((values > 0).mean())
