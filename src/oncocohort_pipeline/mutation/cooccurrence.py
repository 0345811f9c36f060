"""
Pairwise somatic interactions (co-occurrence and mutual exclusivity).

Each gene pair gets a Fisher's exact test on the 2x2 table of samples
mutated in both, either one, or neither gene.
"""

from __future__ import annotations

from itertools import combinations
from typing import Iterable, Optional

import numpy as np
import pandas as pd
from scipy import stats

from oncocohort_pipeline.differential.effect_size import odds_ratio
from oncocohort_pipeline.differential.fdr import FDRCorrector

COLUMNS = [
    "gene1", "gene2", "n_both", "n_gene1_only", "n_gene2_only", "n_neither",
    "odds_ratio", "pvalue", "qvalue", "event",
]


def pair_table(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """2x2 table ``[[both, x only], [y only, neither]]`` for two 0/1 vectors."""
    x = np.asarray(x) > 0
    y = np.asarray(y) > 0
    return np.array([
        [int((x & y).sum()), int((x & ~y).sum())],
        [int((~x & y).sum()), int((~x & ~y).sum())],
    ])


def top_mutated_genes(matrix: pd.DataFrame, top_n: int = 25) -> list[str]:
    """Genes ordered by mutated-sample count (ties by name)."""
    counts = (matrix > 0).sum(axis=0)
    counts = counts[counts > 0]
    order = sorted(counts.index, key=lambda g: (-counts[g], g))
    return order[:top_n]


def somatic_interactions(
    matrix: pd.DataFrame,
    genes: Optional[Iterable[str]] = None,
    top_n: int = 25,
    correction: Optional[str] = "fdr_bh",
) -> pd.DataFrame:
    """
    Test every gene pair for co-occurrence or mutual exclusivity.

    Args:
        matrix: Binary samples x genes mutation matrix.
        genes: Genes to test; the ``top_n`` most mutated genes when None.
        top_n: Number of genes used when ``genes`` is None.
        correction: Correction method applied across all pairs.

    Returns:
        DataFrame with one row per pair, sorted by p-value.
    """
    if genes is None:
        genes = top_mutated_genes(matrix, top_n)
    else:
        genes = [g for g in genes if g in matrix.columns]

    rows = []
    for g1, g2 in combinations(genes, 2):
        table = pair_table(matrix[g1].values, matrix[g2].values)
        _, pvalue = stats.fisher_exact(table)
        ratio = odds_ratio(table)
        rows.append({
            "gene1": g1,
            "gene2": g2,
            "n_both": table[0, 0],
            "n_gene1_only": table[0, 1],
            "n_gene2_only": table[1, 0],
            "n_neither": table[1, 1],
            "odds_ratio": ratio,
            "pvalue": float(pvalue),
            "event": "co_occurrence" if ratio > 1 else "mutual_exclusivity",
        })

    if not rows:
        return pd.DataFrame(columns=COLUMNS)

    df = pd.DataFrame(rows)
    df["qvalue"] = FDRCorrector(method=correction).correct(df["pvalue"].values)
    # NaN odds ratio (0/0) carries no direction
    df.loc[df["odds_ratio"].isna(), "event"] = "undetermined"
    return df.sort_values(["pvalue", "gene1", "gene2"]).reset_index(drop=True)[COLUMNS]


def groupwise_interactions(
    matrix: pd.DataFrame,
    groups: pd.Series,
    genes: Optional[Iterable[str]] = None,
    top_n: int = 25,
    correction: Optional[str] = "fdr_bh",
) -> dict[str, pd.DataFrame]:
    """Run ``somatic_interactions`` separately within each group."""
    groups = groups.dropna().astype(str)
    common = [s for s in matrix.index if s in groups.index]
    results = {}
    for label in sorted(groups.loc[common].unique()):
        members = [s for s in common if groups[s] == label]
        results[label] = somatic_interactions(
            matrix.loc[members], genes=genes, top_n=top_n, correction=correction
        )
    return results
