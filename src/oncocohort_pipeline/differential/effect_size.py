"""
Effect size computation for group comparisons.

Effect sizes are reported next to p-values; they are never used for ranking.
Odds ratios can legitimately be infinite (a zero cell) or undefined (0/0).
"""

from __future__ import annotations

import numpy as np


def mean_difference(group1: np.ndarray, group2: np.ndarray) -> float:
    """
    Difference of group means.

    diff = mean(group1) - mean(group2)
    """
    return float(np.nanmean(group1) - np.nanmean(group2))


def cohens_d(group1: np.ndarray, group2: np.ndarray, pooled: bool = True) -> float:
    """
    Compute Cohen's d effect size.

    d = (mean1 - mean2) / pooled_std

    Args:
        group1: First group.
        group2: Second group.
        pooled: Use pooled standard deviation.

    Returns:
        Cohen's d (NaN when both groups have zero variance).
    """
    n1 = len(group1)
    n2 = len(group2)
    if n1 < 2 or n2 < 2:
        return float("nan")

    var1 = np.nanvar(group1, ddof=1)
    var2 = np.nanvar(group2, ddof=1)

    if pooled:
        pooled_std = np.sqrt(((n1 - 1) * var1 + (n2 - 1) * var2) / (n1 + n2 - 2))
    else:
        pooled_std = np.sqrt((var1 + var2) / 2)

    if pooled_std == 0:
        return float("nan")
    return float((np.nanmean(group1) - np.nanmean(group2)) / pooled_std)


def odds_ratio(table: np.ndarray) -> float:
    """
    Sample odds ratio of a 2x2 table ``[[a, b], [c, d]]``.

    OR = (a * d) / (b * c); infinite when only b * c is zero, NaN for 0/0.
    """
    table = np.asarray(table, dtype=float)
    if table.shape != (2, 2):
        raise ValueError(f"odds ratio needs a 2x2 table, got shape {table.shape}")
    num = table[0, 0] * table[1, 1]
    den = table[0, 1] * table[1, 0]
    if den == 0:
        return float("nan") if num == 0 else float("inf")
    return float(num / den)


def cramers_v(chi2: float, table: np.ndarray) -> float:
    """Cramer's V from a chi-square statistic and its contingency table."""
    table = np.asarray(table, dtype=float)
    n = table.sum()
    k = min(table.shape) - 1
    if n == 0 or k == 0:
        return float("nan")
    return float(np.sqrt(chi2 / (n * k)))


def eta_squared_h(h: float, n_total: int, n_groups: int) -> float:
    """
    Eta-squared for the Kruskal-Wallis H statistic.

    eta2 = (H - k + 1) / (n - k)
    """
    if n_total <= n_groups:
        return float("nan")
    return float((h - n_groups + 1) / (n_total - n_groups))
