"""
Significance tiers and p-value labels.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

NOT_SIGNIFICANT = "ns"
FAILED = "failed"


def significance_tier(
    pvalue: Optional[float],
    alpha: float = 0.05,
    thresholds: Sequence[float] = (0.05, 0.01, 0.001),
) -> str:
    """
    Discretize a p-value into a star tier.

    "ns" when p >= alpha; otherwise one star per threshold the p-value falls
    below. Missing p-values (failed tests) map to "failed".

    Example:
        >>> significance_tier(0.004)
        '**'
    """
    if pvalue is None or (isinstance(pvalue, float) and math.isnan(pvalue)):
        return FAILED
    if pvalue >= alpha:
        return NOT_SIGNIFICANT
    n_stars = sum(1 for t in thresholds if pvalue < t)
    if n_stars == 0:
        # Below alpha but above every configured cutoff
        return "*"
    return "*" * n_stars


def is_significant(tier: str) -> bool:
    return tier not in (NOT_SIGNIFICANT, FAILED)


def star_label(tier: str) -> str:
    """Plot annotation for a tier: the stars, or an empty string."""
    return tier if is_significant(tier) else ""


def format_pvalue(pvalue: Optional[float], floor: float = 0.001) -> str:
    """
    Format a p-value for plot labels.

    Example:
        >>> format_pvalue(0.0123)
        'p = 0.012'
        >>> format_pvalue(1e-6)
        'p < 0.001'
    """
    if pvalue is None or (isinstance(pvalue, float) and math.isnan(pvalue)):
        return "p = NA"
    if pvalue < floor:
        return f"p < {floor:g}"
    return f"p = {pvalue:.2g}" if pvalue < 0.01 else f"p = {pvalue:.3f}".rstrip("0").rstrip(".")
