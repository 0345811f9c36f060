"""
Per-group mutation frequencies.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from oncocohort_pipeline.core.config import ComparisonConfig
from oncocohort_pipeline.differential.comparison import (
    ComparisonResult,
    GroupInput,
    compare_groups,
)


def gene_frequencies(matrix: pd.DataFrame, groups: pd.Series) -> pd.DataFrame:
    """
    Fraction of samples mutated per gene within each group.

    Returns:
        DataFrame (gene x group) of fractions in [0, 1], plus an ``all``
        column over the matched samples.
    """
    groups = groups.dropna().astype(str)
    common = [s for s in matrix.index if s in groups.index]
    mutated = (matrix.loc[common] > 0).astype(float)
    freq = mutated.groupby(groups.loc[common].values).mean().T
    freq["all"] = mutated.mean(axis=0)
    freq.index.name = "gene"
    return freq


def compare_mutation_frequency(
    matrix: pd.DataFrame,
    groups: GroupInput,
    config: Optional[ComparisonConfig] = None,
    min_mutated: int = 1,
) -> ComparisonResult:
    """
    Differential mutation frequency between two groups (Fisher's exact test).

    Genes mutated in fewer than ``min_mutated`` samples overall are skipped.
    Use ``test_kind="chi2"`` for more than two groups.
    """
    config = config or ComparisonConfig(
        test_kind="fisher", multiple_testing_correction="fdr_bh"
    )
    counts = (matrix > 0).sum(axis=0)
    keep = counts[counts >= min_mutated].index
    return compare_groups(matrix[keep], groups, config)
