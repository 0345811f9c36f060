"""
Microbiome abundance and diversity metrics.

Count tables are samples x taxa.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
from scipy.spatial import distance

from oncocohort_pipeline.core.config import ComparisonConfig
from oncocohort_pipeline.differential.comparison import (
    ComparisonResult,
    GroupInput,
    compare_groups,
)

ALPHA_METRICS = ("shannon", "simpson", "inverse_simpson", "richness", "pielou")


def relative_abundance(counts: pd.DataFrame) -> pd.DataFrame:
    """Scale each sample to sum to 1 (samples with no reads stay all zero)."""
    if (counts.values < 0).any():
        raise ValueError("Counts must be non-negative")
    totals = counts.sum(axis=1)
    return counts.div(totals.where(totals > 0, 1), axis=0)


def filter_prevalence(
    abundance: pd.DataFrame,
    min_prevalence: float = 0.1,
    min_abundance: float = 0.0,
) -> pd.DataFrame:
    """
    Keep taxa present in at least ``min_prevalence`` of samples.

    A taxon is present in a sample when its abundance is > ``min_abundance``.
    """
    if not 0 <= min_prevalence <= 1:
        raise ValueError(f"min_prevalence must be in [0, 1], got {min_prevalence}")
    prevalence = (abundance > min_abundance).mean(axis=0)
    return abundance.loc[:, prevalence >= min_prevalence]


def _alpha(row: np.ndarray, metric: str) -> float:
    total = row.sum()
    richness = int((row > 0).sum())
    if metric == "richness":
        return float(richness)
    if total == 0:
        return float("nan")
    p = row / total
    if metric == "shannon":
        return float(stats.entropy(p))
    if metric == "simpson":
        return float(1.0 - np.sum(p ** 2))
    if metric == "inverse_simpson":
        return float(1.0 / np.sum(p ** 2))
    if metric == "pielou":
        if richness < 2:
            return float("nan")
        return float(stats.entropy(p) / np.log(richness))
    raise ValueError(f"Unknown alpha diversity metric: {metric}. Available: {list(ALPHA_METRICS)}")


def alpha_diversity(
    counts: pd.DataFrame,
    metrics: Sequence[str] = ("shannon", "simpson", "richness"),
) -> pd.DataFrame:
    """
    Within-sample diversity.

    Args:
        counts: Samples x taxa counts (or relative abundances).
        metrics: Any of shannon, simpson, inverse_simpson, richness, pielou.

    Returns:
        DataFrame (samples x metrics).
    """
    unknown = [m for m in metrics if m not in ALPHA_METRICS]
    if unknown:
        raise ValueError(f"Unknown alpha diversity metric(s): {unknown}. Available: {list(ALPHA_METRICS)}")
    values = counts.to_numpy(dtype=float)
    out = pd.DataFrame(
        {m: [_alpha(row, m) for row in values] for m in metrics},
        index=counts.index,
    )
    out.index.name = counts.index.name or "sample"
    return out


def beta_diversity(
    counts: pd.DataFrame,
    metric: str = "braycurtis",
    relative: bool = True,
) -> pd.DataFrame:
    """
    Between-sample dissimilarity matrix.

    Args:
        counts: Samples x taxa counts.
        metric: Any ``scipy.spatial.distance.pdist`` metric.
        relative: Convert to relative abundance first.

    Returns:
        Square DataFrame (samples x samples).
    """
    data = relative_abundance(counts) if relative else counts
    condensed = distance.pdist(data.to_numpy(dtype=float), metric=metric)
    return pd.DataFrame(
        distance.squareform(condensed), index=counts.index, columns=counts.index
    )


def compare_diversity(
    counts: pd.DataFrame,
    groups: GroupInput,
    config: Optional[ComparisonConfig] = None,
    metrics: Sequence[str] = ("shannon", "simpson", "richness"),
) -> ComparisonResult:
    """Compare alpha diversity between groups (Kruskal-Wallis by default)."""
    config = config or ComparisonConfig(test_kind="kruskal")
    return compare_groups(alpha_diversity(counts, metrics), groups, config)
