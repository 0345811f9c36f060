"""
FDR correction for multiple testing.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from oncocohort_pipeline.core.exceptions import ConfigurationError


METHODS = [
    "bonferroni",
    "sidak",
    "holm-sidak",
    "holm",
    "simes-hochberg",
    "hommel",
    "fdr_bh",  # Benjamini-Hochberg
    "fdr_by",  # Benjamini-Yekutieli
    "fdr_tsbh",  # Two-stage BH
    "fdr_tsbky",  # Two-stage BY
]

ALIASES = {
    "bh": "fdr_bh",
    "benjamini-hochberg": "fdr_bh",
    "by": "fdr_by",
    "benjamini-yekutieli": "fdr_by",
}


def resolve_method(method: Optional[str]) -> Optional[str]:
    """
    Map a method name (or alias) to its statsmodels name.

    Returns None for "no correction".

    Raises:
        ConfigurationError: Unknown method.
    """
    if method is None:
        return None
    key = str(method).strip()
    if key.lower() in ("", "none"):
        return None
    key = ALIASES.get(key.lower(), key)
    if key not in METHODS:
        raise ConfigurationError(
            f"Unknown correction method: {method}. Available: {METHODS}"
        )
    return key


class FDRCorrector:
    """
    Multiple-testing correction over a batch of p-values.

    Supports the correction methods from statsmodels. With ``method=None``
    the corrector is the identity.

    Example:
        >>> corrector = FDRCorrector(method="fdr_bh")
        >>> qvalues = corrector.correct(pvalues)
    """

    METHODS = METHODS

    def __init__(
        self,
        method: Optional[str] = "fdr_bh",
        alpha: float = 0.05,
    ):
        """
        Initialize FDR corrector.

        Args:
            method: Correction method, or None for no correction.
            alpha: Significance threshold.
        """
        self.method = resolve_method(method)
        self.alpha = alpha

    def __call__(self, pvalues):
        return self.correct(pvalues)

    def _correct_flat(self, flat_pvals: np.ndarray) -> np.ndarray:
        """Correct a 1-D array; NaN entries are left out and kept as NaN."""
        flat_pvals = np.asarray(flat_pvals, dtype=float)
        if self.method is None:
            return flat_pvals.copy()

        qvals = np.full(flat_pvals.shape, np.nan)
        valid = ~np.isnan(flat_pvals)
        if valid.any():
            _, qvals[valid], _, _ = multipletests(
                flat_pvals[valid], alpha=self.alpha, method=self.method
            )
        return qvals

    def correct(
        self,
        pvalues: Union[np.ndarray, pd.DataFrame, pd.Series, list],
    ) -> Union[np.ndarray, pd.DataFrame, pd.Series]:
        """
        Apply correction.

        Args:
            pvalues: P-values (any shape).

        Returns:
            Corrected q-values (same shape as input).
        """
        if isinstance(pvalues, pd.DataFrame):
            flat_qvals = self._correct_flat(pvalues.values.ravel())
            return pd.DataFrame(
                flat_qvals.reshape(pvalues.shape),
                index=pvalues.index,
                columns=pvalues.columns,
            )

        elif isinstance(pvalues, pd.Series):
            return pd.Series(self._correct_flat(pvalues.values), index=pvalues.index)

        else:
            pvalues = np.asarray(pvalues, dtype=float)
            original_shape = pvalues.shape
            return self._correct_flat(pvalues.ravel()).reshape(original_shape)


def apply_fdr(
    pvalues: Union[np.ndarray, pd.DataFrame, pd.Series],
    method: Optional[str] = "fdr_bh",
    alpha: float = 0.05,
) -> Union[np.ndarray, pd.DataFrame, pd.Series]:
    """
    Apply FDR correction to p-values.

    Convenience function for FDRCorrector.

    Args:
        pvalues: P-values.
        method: Correction method.
        alpha: Significance threshold.

    Returns:
        Corrected q-values.
    """
    corrector = FDRCorrector(method=method, alpha=alpha)
    return corrector.correct(pvalues)
