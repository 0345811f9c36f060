"""
Plots for comparison results.

Every function takes the figure path and an explicit palette and returns
the written path. Nothing here reads module state besides the defaults.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional, Sequence, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from oncocohort_pipeline.differential.comparison import ComparisonResult, FeatureTestResult
from oncocohort_pipeline.differential.significance import format_pvalue, star_label

logger = logging.getLogger(__name__)

DEFAULT_PALETTE = {
    "significant": "#DC2626",   # red
    "neutral": "#6B7280",       # gray
    "reference": "#111827",     # near black
    "groups": ["#2563EB", "#D97706", "#059669", "#8B5CF6", "#EC4899"],
}

STYLE = {
    "font.family": "sans-serif",
    "font.size": 9,
    "axes.spines.top": False,
    "axes.spines.right": False,
    "savefig.dpi": 300,
    "savefig.bbox": "tight",
    "savefig.facecolor": "white",
}


def _palette(palette: Optional[dict]) -> dict:
    merged = dict(DEFAULT_PALETTE)
    if palette:
        merged.update(palette)
    return merged


def _records(result: Union[ComparisonResult, Sequence[FeatureTestResult]]) -> list[FeatureTestResult]:
    if isinstance(result, ComparisonResult):
        result = result.top if result.top is not None else result.ranked
    return [r for r in result if not r.test_failed]


def _save(fig, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    logger.debug("Saved figure %s", path)
    return path


def plot_forest(
    result: Union[ComparisonResult, Sequence[FeatureTestResult]],
    path: Union[str, Path],
    palette: Optional[dict] = None,
    title: str = "",
    log_scale: bool = True,
) -> Path:
    """
    Forest plot of effect sizes (odds ratios on a log axis by default).

    Records with a missing or non-finite effect size are left out.
    """
    colors = _palette(palette)
    records = [
        r for r in _records(result)
        if r.effect_size is not None and math.isfinite(r.effect_size)
        and (not log_scale or r.effect_size > 0)
    ]

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(5, max(1.5, 0.3 * len(records) + 1)))
        if not records:
            ax.text(0.5, 0.5, "No finite effect sizes", ha="center", va="center",
                    transform=ax.transAxes)
            ax.set_axis_off()
            return _save(fig, path)

        y = np.arange(len(records))[::-1]
        effects = [r.effect_size for r in records]
        point_colors = [colors["significant"] if r.significant else colors["neutral"]
                        for r in records]
        ax.scatter(effects, y, c=point_colors, marker="s", zorder=3)
        ax.axvline(1.0 if log_scale else 0.0, color=colors["reference"], lw=0.8, ls="--")
        if log_scale:
            ax.set_xscale("log")
        ax.set_yticks(y)
        ax.set_yticklabels([f"{r.feature} ({format_pvalue(r.pvalue)})" for r in records])
        ax.set_xlabel("Odds ratio" if log_scale else "Effect size")
        if title:
            ax.set_title(title)
        return _save(fig, path)


def plot_pvalue_bars(
    result: Union[ComparisonResult, Sequence[FeatureTestResult]],
    path: Union[str, Path],
    palette: Optional[dict] = None,
    title: str = "",
) -> Path:
    """Horizontal bars of -log10(p) with tier stars."""
    colors = _palette(palette)
    records = _records(result)

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(5, max(1.5, 0.3 * len(records) + 1)))
        y = np.arange(len(records))[::-1]
        heights = [-math.log10(max(r.pvalue, 1e-300)) for r in records]
        bar_colors = [colors["significant"] if r.significant else colors["neutral"]
                      for r in records]
        ax.barh(y, heights, color=bar_colors)
        for yi, h, r in zip(y, heights, records):
            label = star_label(r.tier)
            if label:
                ax.text(h, yi, f" {label}", va="center")
        ax.set_yticks(y)
        ax.set_yticklabels([r.feature for r in records])
        ax.set_xlabel("-log10(p)")
        if title:
            ax.set_title(title)
        return _save(fig, path)


def plot_group_frequencies(
    frequencies: pd.DataFrame,
    path: Union[str, Path],
    palette: Optional[dict] = None,
    title: str = "",
    percent: bool = True,
) -> Path:
    """
    Grouped bar chart of per-group values (feature x group table).

    Typically the output of ``gene_frequencies`` without its ``all`` column.
    """
    colors = _palette(palette)
    data = frequencies.drop(columns=["all"], errors="ignore")
    if percent:
        data = data * 100

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(max(4, 0.5 * len(data) + 2), 4))
        data.plot(kind="bar", ax=ax, width=0.85,
                  color=colors["groups"][: max(1, data.shape[1])])
        ax.set_ylabel("Samples with mutation (%)" if percent else "Value")
        ax.set_xlabel("")
        ax.tick_params(axis="x", rotation=45)
        for label in ax.get_xticklabels():
            label.set_ha("right")
        if title:
            ax.set_title(title)
        return _save(fig, path)
