"""
Base class for per-feature test capabilities.

A test capability maps the per-group value vectors of one feature to a
``(statistic, pvalue)`` pair. The statistics themselves come from scipy;
this layer only shapes the inputs.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class FeatureTest:
    """
    Base per-feature test.

    Subclasses implement ``test``; ``effect_size`` and ``summarize`` have
    neutral defaults.

    Example:
        >>> test = WilcoxonRankSumTest()
        >>> statistic, pvalue = test({"C1": values1, "C2": values2})
    """

    kind: str = ""
    """Name used in ComparisonConfig.test_kind."""

    max_groups: Optional[int] = None
    """Maximum number of groups accepted (None = unlimited)."""

    summary_name: str = "mean"
    """Label of the per-group summary statistic."""

    def __call__(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        return self.test(groups)

    def test(self, groups: dict[str, np.ndarray]) -> tuple[float, float]:
        """
        Run the test for one feature.

        Args:
            groups: Group label -> 1-D array of non-missing values, in
                deterministic label order.

        Returns:
            Tuple of (statistic, pvalue).
        """
        raise NotImplementedError

    def effect_size(self, groups: dict[str, np.ndarray]) -> Optional[float]:
        """Effect size for one feature (None when the test defines none)."""
        return None

    def summarize(self, values: np.ndarray) -> float:
        """Per-group summary statistic."""
        if len(values) == 0:
            return float("nan")
        return float(np.mean(values))

    @staticmethod
    def _two(groups: dict[str, np.ndarray]) -> tuple[np.ndarray, np.ndarray]:
        if len(groups) != 2:
            raise ValueError(f"expected exactly 2 groups, got {len(groups)}")
        first, second = groups.values()
        return np.asarray(first, dtype=float), np.asarray(second, dtype=float)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
