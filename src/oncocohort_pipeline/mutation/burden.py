"""
Mutation burden per sample and per group.
"""

from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

from oncocohort_pipeline.core.config import ComparisonConfig
from oncocohort_pipeline.differential.comparison import (
    ComparisonResult,
    GroupInput,
    compare_groups,
)

DEFAULT_EXOME_SIZE_MB = 38.0


def mutation_burden(
    calls: pd.DataFrame,
    exome_size_mb: float = DEFAULT_EXOME_SIZE_MB,
    samples: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Count mutations per sample.

    Args:
        calls: Mutation calls with ``sample`` and ``gene`` columns.
        exome_size_mb: Captured territory in megabases for TMB.
        samples: Samples to report; samples without calls get zero burden.

    Returns:
        DataFrame indexed by sample with ``n_mutations``, ``n_genes`` and
        ``tmb`` (mutations per Mb).
    """
    if exome_size_mb <= 0:
        raise ValueError(f"exome_size_mb must be positive, got {exome_size_mb}")

    grouped = calls.groupby("sample")
    burden = pd.DataFrame({
        "n_mutations": grouped.size(),
        "n_genes": grouped["gene"].nunique(),
    })
    if samples is not None:
        burden = burden.reindex(pd.Index(list(samples)), fill_value=0)
    burden = burden.astype(int)
    burden["tmb"] = burden["n_mutations"] / exome_size_mb
    burden.index.name = "sample"
    return burden


def burden_by_group(burden: pd.DataFrame, groups: pd.Series) -> pd.DataFrame:
    """
    Summarize burden columns within each group.

    Returns:
        DataFrame (group x statistic) with n, mean, median, min and max TMB.
    """
    joined = burden.join(groups.rename("group"), how="inner")
    summary = joined.groupby("group")["tmb"].agg(["count", "mean", "median", "min", "max"])
    return summary.rename(columns={"count": "n"})


def compare_burden(
    calls: pd.DataFrame,
    groups: GroupInput,
    config: Optional[ComparisonConfig] = None,
    exome_size_mb: float = DEFAULT_EXOME_SIZE_MB,
    include_unmutated: bool = True,
) -> ComparisonResult:
    """
    Compare mutation burden between groups.

    Samples in ``groups`` with no calls count as zero burden when
    ``include_unmutated`` is set.

    Args:
        calls: Mutation calls.
        groups: Sample -> group label.
        config: Comparison options (Kruskal-Wallis by default).
        exome_size_mb: Captured territory in megabases.
        include_unmutated: Report grouped samples without calls as zero.

    Returns:
        ComparisonResult over the burden columns.
    """
    config = config or ComparisonConfig(test_kind="kruskal")
    samples = None
    if include_unmutated:
        group_index = groups.index if isinstance(groups, pd.Series) else list(groups)
        samples = sorted(set(calls["sample"]) | set(map(str, group_index)))
    burden = mutation_burden(calls, exome_size_mb=exome_size_mb, samples=samples)
    return compare_groups(burden[["n_mutations", "tmb"]], groups, config)
