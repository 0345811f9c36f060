"""
Rank correlation between two sample-aligned feature tables.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats

from oncocohort_pipeline.differential.fdr import FDRCorrector


class SpearmanCorrelator:
    """
    Spearman rank correlation.

    Converts data to ranks and computes Pearson correlation on ranks.
    With ``method="pearson"`` the ranking step is skipped.

    Example:
        >>> correlator = SpearmanCorrelator()
        >>> rho, pval = correlator.correlate(taxa, immune_fractions)
    """

    def __init__(self, method: Literal["spearman", "pearson"] = "spearman"):
        if method not in ("spearman", "pearson"):
            raise ValueError(f"Unknown method: {method}. Available: ['spearman', 'pearson']")
        self.method = method

    def correlate(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        Y: Union[np.ndarray, pd.DataFrame],
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Compute correlation between the columns of X and Y.

        Args:
            X: First matrix (samples x features).
            Y: Second matrix (samples x features), same samples as X.

        Returns:
            Tuple of (correlation, pvalue) matrices, X features x Y features.
        """
        if isinstance(X, pd.DataFrame):
            X = X.values
        if isinstance(Y, pd.DataFrame):
            Y = Y.values

        X = np.asarray(X, dtype=float)
        Y = np.asarray(Y, dtype=float)

        # Ensure 2D
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)

        if X.shape[0] != Y.shape[0]:
            raise ValueError(f"Sample counts differ: {X.shape[0]} vs {Y.shape[0]}")

        if self.method == "spearman":
            X = self._rank_data(X)
            Y = self._rank_data(Y)

        return self._pearson(X, Y)

    def _rank_data(self, X: np.ndarray) -> np.ndarray:
        """Convert to ranks (average for ties)."""
        return stats.rankdata(X, axis=0, method="average")

    def _pearson(
        self,
        X: np.ndarray,
        Y: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        n_samples = X.shape[0]
        if n_samples < 3:
            raise ValueError(f"Need at least 3 samples, got {n_samples}")

        X_centered = X - X.mean(axis=0, keepdims=True)
        Y_centered = Y - Y.mean(axis=0, keepdims=True)

        X_std = X.std(axis=0, ddof=1, keepdims=True)
        Y_std = Y.std(axis=0, ddof=1, keepdims=True)

        # Constant columns have undefined correlation
        with np.errstate(divide="ignore", invalid="ignore"):
            rho = (X_centered.T @ Y_centered) / (n_samples - 1) / (X_std.T @ Y_std)
        rho = np.where(np.isfinite(rho), np.clip(rho, -1.0, 1.0), np.nan)

        with np.errstate(divide="ignore", invalid="ignore"):
            t_stat = rho * np.sqrt((n_samples - 2) / (1 - rho**2 + 1e-10))
        pval = 2 * stats.t.sf(np.abs(t_stat), df=n_samples - 2)

        return rho, pval


def correlate_features(
    x: pd.DataFrame,
    y: pd.DataFrame,
    method: Literal["spearman", "pearson"] = "spearman",
    correction: Optional[str] = "fdr_bh",
) -> pd.DataFrame:
    """
    Correlate every column of ``x`` with every column of ``y``.

    Samples are aligned on the shared index; samples with any missing value
    in either table are dropped.

    Args:
        x: Samples x features (e.g. taxa abundances).
        y: Samples x features (e.g. immune-cell fractions).
        method: spearman or pearson.
        correction: Correction applied across all pairs.

    Returns:
        Long DataFrame with feature_x, feature_y, rho, pvalue, qvalue, n,
        sorted by p-value.
    """
    common = [s for s in x.index if s in set(y.index)]
    joined = pd.concat(
        [x.loc[common].add_prefix("x::"), y.loc[common].add_prefix("y::")], axis=1
    ).dropna()
    xs = joined[[c for c in joined.columns if c.startswith("x::")]]
    ys = joined[[c for c in joined.columns if c.startswith("y::")]]

    rho, pval = SpearmanCorrelator(method=method).correlate(xs, ys)

    long = pd.DataFrame({
        "feature_x": np.repeat(list(x.columns), len(y.columns)),
        "feature_y": np.tile(list(y.columns), len(x.columns)),
        "rho": rho.ravel(),
        "pvalue": pval.ravel(),
    })
    long["qvalue"] = FDRCorrector(method=correction).correct(long["pvalue"].values)
    long["n"] = len(joined)
    return long.sort_values(["pvalue", "feature_x", "feature_y"]).reset_index(drop=True)
