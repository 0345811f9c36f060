"""
Group-wise comparison of per-sample features.

Joins samples to groups, runs one test per feature, corrects all p-values in
a single batch, then ranks and optionally truncates the result. The module
is side-effect free: it neither logs nor writes files.
"""

from __future__ import annotations

import concurrent.futures
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from oncocohort_pipeline.core.config import ComparisonConfig
from oncocohort_pipeline.core.exceptions import (
    ConfigurationError,
    DuplicateIdentifierError,
    EmptyFeatureMatrixError,
    InsufficientGroupsError,
)
from oncocohort_pipeline.differential.fdr import FDRCorrector
from oncocohort_pipeline.differential.registry import get_feature_test
from oncocohort_pipeline.differential.significance import is_significant, significance_tier

FeatureInput = Union[pd.DataFrame, Mapping[str, Mapping[str, Any]]]
GroupInput = Union[pd.Series, Mapping[str, Any]]
TestCallable = Callable[[dict[str, np.ndarray]], tuple[float, float]]


@dataclass(frozen=True)
class FeatureTestResult:
    """Between-group comparison of one feature."""

    feature: str
    group_summary: dict[str, float]
    group_sizes: dict[str, int]
    statistic: Optional[float] = None
    pvalue: Optional[float] = None
    adjusted_pvalue: Optional[float] = None
    effect_size: Optional[float] = None
    tier: str = "failed"
    test_failed: bool = False
    error: Optional[str] = None
    rank: Optional[int] = None

    @property
    def significant(self) -> bool:
        return is_significant(self.tier)

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {"feature": self.feature, "rank": self.rank}
        for label, value in self.group_summary.items():
            row[f"summary_{label}"] = value
        for label, n in self.group_sizes.items():
            row[f"n_{label}"] = n
        row.update({
            "statistic": self.statistic,
            "effect_size": self.effect_size,
            "pvalue": self.pvalue,
            "adjusted_pvalue": self.adjusted_pvalue,
            "tier": self.tier,
            "test_failed": self.test_failed,
            "error": self.error,
        })
        return row


@dataclass
class ComparisonResult:
    """Result of a group-wise comparison."""

    records: list[FeatureTestResult]
    """Ranked successful records followed by failed records."""

    config: ComparisonConfig
    """Options the comparison ran with."""

    group_sizes: dict[str, int] = field(default_factory=dict)
    """Matched samples per group."""

    matched_samples: list[str] = field(default_factory=list)
    """Samples present in both inputs."""

    unmatched_feature_samples: list[str] = field(default_factory=list)
    """Samples with features but no group."""

    unmatched_group_samples: list[str] = field(default_factory=list)
    """Samples with a group but no features."""

    excluded_features: list[str] = field(default_factory=list)
    """Features dropped for a non-finite effect size."""

    top: Optional[list[FeatureTestResult]] = None
    """Truncated view (top_n plus required features), if requested."""

    missing_required_features: list[str] = field(default_factory=list)
    """Required features with no record to append."""

    test_name: str = ""
    """Name of the per-feature test."""

    @property
    def ranked(self) -> list[FeatureTestResult]:
        return [r for r in self.records if not r.test_failed]

    @property
    def failed(self) -> list[FeatureTestResult]:
        return [r for r in self.records if r.test_failed]

    def get(self, feature: str) -> Optional[FeatureTestResult]:
        for record in self.records:
            if record.feature == feature:
                return record
        return None

    def significant(self) -> list[FeatureTestResult]:
        """Ranked records whose tier is significant."""
        return [r for r in self.ranked if r.significant]

    def to_dataframe(self, records: Optional[Sequence[FeatureTestResult]] = None) -> pd.DataFrame:
        """Convert records (all by default) to a tidy DataFrame indexed by feature."""
        records = self.records if records is None else records
        if not records:
            return pd.DataFrame(
                columns=["rank", "statistic", "effect_size", "pvalue",
                         "adjusted_pvalue", "tier", "test_failed", "error"]
            ).rename_axis("feature")
        df = pd.DataFrame([r.to_dict() for r in records]).set_index("feature")
        df["neg_log10_pval"] = -np.log10(
            pd.to_numeric(df["pvalue"], errors="coerce").clip(lower=1e-300)
        )
        return df

    def significant_dataframe(self) -> pd.DataFrame:
        return self.to_dataframe(self.significant())

    def top_dataframe(self) -> pd.DataFrame:
        """Truncated view as a DataFrame (full ranking if no top_n was set)."""
        return self.to_dataframe(self.top if self.top is not None else self.ranked)


def apply_top_n(
    records: Sequence[FeatureTestResult],
    top_n: Optional[int],
    required_features: Iterable[str] = (),
    pool: Optional[Sequence[FeatureTestResult]] = None,
) -> tuple[list[FeatureTestResult], list[str]]:
    """
    Take the first ``top_n`` ranked records and append required features.

    Required features already in the cut are not repeated; the others are
    appended once, in the order given, using their existing records from
    ``pool`` (defaults to ``records``). Applying this to its own output with
    the same arguments returns the same list.

    Returns:
        Tuple of (view, required features with no record).
    """
    records = list(records)
    view = records if top_n is None else records[:top_n]
    pool = records if pool is None else list(pool)
    by_feature = {r.feature: r for r in pool}
    present = {r.feature for r in view}

    view = list(view)
    missing = []
    for feature in required_features:
        if feature in present:
            continue
        record = by_feature.get(feature)
        if record is None:
            missing.append(feature)
            continue
        view.append(record)
        present.add(feature)
    return view, missing


def _to_feature_frame(features: FeatureInput) -> pd.DataFrame:
    if isinstance(features, pd.DataFrame):
        frame = features
    else:
        frame = pd.DataFrame.from_dict(dict(features), orient="index")
    if frame.index.has_duplicates:
        dupes = sorted(map(str, frame.index[frame.index.duplicated()].unique()))
        raise DuplicateIdentifierError(f"Duplicate sample identifiers: {dupes[:10]}")
    if frame.columns.has_duplicates:
        dupes = sorted(map(str, frame.columns[frame.columns.duplicated()].unique()))
        raise DuplicateIdentifierError(f"Duplicate feature identifiers: {dupes[:10]}")
    frame = frame.copy()
    frame.index = frame.index.map(str)
    frame.columns = frame.columns.map(str)
    return frame


def _to_group_series(groups: GroupInput) -> pd.Series:
    if isinstance(groups, pd.DataFrame):
        if groups.shape[1] != 1:
            raise ConfigurationError("Group assignment must have exactly one label column")
        groups = groups.iloc[:, 0]
    series = groups if isinstance(groups, pd.Series) else pd.Series(dict(groups), dtype=object)
    if series.index.has_duplicates:
        dupes = sorted(map(str, series.index[series.index.duplicated()].unique()))
        raise DuplicateIdentifierError(f"Duplicate sample identifiers in groups: {dupes[:10]}")
    series = series.dropna().astype(str)
    series.index = series.index.map(str)
    return series


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


class GroupComparison:
    """
    Compares every feature between sample groups.

    The statistical test and the correction are injected; by default they
    are resolved from the config (``test_kind`` and
    ``multiple_testing_correction``).

    Example:
        >>> comparison = GroupComparison(ComparisonConfig(test_kind="fisher",
        ...                                               multiple_testing_correction="fdr_bh"))
        >>> result = comparison.compare(mutation_matrix, clusters)
        >>> result.to_dataframe().head()
    """

    def __init__(
        self,
        config: Optional[ComparisonConfig] = None,
        test: Optional[TestCallable] = None,
        corrector: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ):
        """
        Initialize comparison.

        Args:
            config: Comparison options.
            test: Callable mapping per-group values to (statistic, pvalue).
            corrector: Callable mapping raw p-values to adjusted p-values.
        """
        self.config = config or ComparisonConfig()
        self.test = test if test is not None else get_feature_test(self.config.test_kind)
        self.corrector = corrector if corrector is not None else FDRCorrector(
            method=self.config.multiple_testing_correction, alpha=self.config.alpha
        )

    def compare(self, features: FeatureInput, groups: GroupInput) -> ComparisonResult:
        """
        Run the comparison.

        Args:
            features: Samples x features table (or sample -> feature -> value).
            groups: Sample -> group label.

        Returns:
            ComparisonResult with ranked records and the optional top-N view.

        Raises:
            EmptyFeatureMatrixError: No features or samples to test.
            InsufficientGroupsError: Fewer than two non-empty groups.
            ConfigurationError: Test limited to two groups given more.
        """
        config = self.config
        frame = _to_feature_frame(features)
        labels = _to_group_series(groups)

        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise EmptyFeatureMatrixError(
                f"Feature matrix is empty ({frame.shape[0]} samples x {frame.shape[1]} features)"
            )

        # Intersect samples, preserving feature-table order
        group_set = set(labels.index)
        feature_set = set(frame.index)
        matched = [s for s in frame.index if s in group_set]
        unmatched_features = sorted(s for s in frame.index if s not in group_set)
        unmatched_groups = sorted(s for s in labels.index if s not in feature_set)

        labels = labels.loc[matched]
        counts = labels.value_counts()
        kept_groups = sorted(g for g, n in counts.items() if n >= config.min_group_size)
        if len(kept_groups) < 2:
            raise InsufficientGroupsError(
                f"Need at least 2 groups with >= {config.min_group_size} matched samples, "
                f"got {dict(counts)} from {len(matched)} matched samples"
            )

        max_groups = getattr(self.test, "max_groups", None)
        if max_groups is not None and len(kept_groups) > max_groups:
            raise ConfigurationError(
                f"{type(self.test).__name__} compares at most {max_groups} groups, "
                f"got {len(kept_groups)}: {kept_groups}"
            )

        labels = labels[labels.isin(kept_groups)]
        frame = frame.loc[labels.index]
        frame = frame.loc[:, frame.notna().any(axis=0)]
        if frame.shape[1] == 0:
            raise EmptyFeatureMatrixError("No feature has a value in the matched samples")

        members = {g: labels.index[labels == g] for g in kept_groups}
        feature_names = sorted(frame.columns)

        # Per-feature tests are independent; correction waits for all of them
        if config.n_workers > 1 and len(feature_names) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=config.n_workers) as executor:
                raw = list(executor.map(
                    lambda name: self._test_feature(name, frame[name], members),
                    feature_names,
                ))
        else:
            raw = [self._test_feature(name, frame[name], members) for name in feature_names]

        ok = [r for r in raw if not r["test_failed"]]
        failed = [r for r in raw if r["test_failed"]]

        if ok:
            adjusted = np.asarray(
                self.corrector(np.array([r["pvalue"] for r in ok], dtype=float)),
                dtype=float,
            )
            for r, q in zip(ok, adjusted):
                r["adjusted_pvalue"] = float(min(q, 1.0))

        excluded = []
        if config.exclude_infinite_effect:
            excluded = sorted(
                r["feature"] for r in raw
                if r["effect_size"] is not None and not _is_finite(r["effect_size"])
            )
            ok = [r for r in ok if r["feature"] not in excluded]
            failed = [r for r in failed if r["feature"] not in excluded]

        ok.sort(key=lambda r: (r["pvalue"], r["feature"]))

        records = []
        for i, r in enumerate(ok, start=1):
            basis = r["adjusted_pvalue"] if config.significance_basis == "adjusted" else r["pvalue"]
            records.append(FeatureTestResult(
                **r,
                tier=significance_tier(basis, config.alpha, config.tier_thresholds),
                rank=i,
            ))
        records.extend(FeatureTestResult(**r, tier="failed") for r in failed)

        result = ComparisonResult(
            records=records,
            config=config,
            group_sizes={g: len(members[g]) for g in kept_groups},
            matched_samples=list(labels.index),
            unmatched_feature_samples=unmatched_features,
            unmatched_group_samples=unmatched_groups,
            excluded_features=excluded,
            test_name=type(self.test).__name__,
        )

        if config.top_n is not None or config.required_features:
            result.top, result.missing_required_features = apply_top_n(
                result.ranked, config.top_n, config.required_features
            )

        return result

    def _test_feature(
        self,
        name: str,
        column: pd.Series,
        members: dict[str, pd.Index],
    ) -> dict[str, Any]:
        """Partition one feature by group and run the injected test."""
        partitions = {}
        for g, idx in members.items():
            values = column.loc[idx].dropna()
            partitions[g] = values.to_numpy()

        summarize = getattr(self.test, "summarize", None)
        record: dict[str, Any] = {
            "feature": name,
            "group_summary": {g: float("nan") for g in partitions},
            "group_sizes": {g: len(v) for g, v in partitions.items()},
            "statistic": None,
            "pvalue": None,
            "adjusted_pvalue": None,
            "effect_size": None,
            "test_failed": False,
            "error": None,
        }

        try:
            if summarize is not None:
                record["group_summary"] = {g: summarize(v) for g, v in partitions.items()}
            statistic, pvalue = self.test(partitions)
            pvalue = float(pvalue)
            if not math.isfinite(pvalue):
                raise ValueError(f"non-finite p-value ({pvalue})")
            effect = getattr(self.test, "effect_size", None)
            effect_value = effect(partitions) if effect is not None else None
        except Exception as e:
            # Any failure in the injected test flags this feature only
            record["test_failed"] = True
            record["error"] = f"{type(e).__name__}: {e}"
            return record

        record["statistic"] = None if statistic is None else float(statistic)
        record["pvalue"] = pvalue
        record["effect_size"] = None if effect_value is None else float(effect_value)
        return record


def compare_groups(
    features: FeatureInput,
    groups: GroupInput,
    config: Optional[ComparisonConfig] = None,
    test: Optional[TestCallable] = None,
    corrector: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> ComparisonResult:
    """
    Convenience function for GroupComparison.

    Args:
        features: Samples x features table.
        groups: Sample -> group label.
        config: Comparison options.
        test: Optional injected per-feature test.
        corrector: Optional injected p-value correction.

    Returns:
        ComparisonResult.
    """
    return GroupComparison(config, test=test, corrector=corrector).compare(features, groups)


def compare_many(
    jobs: Iterable[tuple[FeatureInput, GroupInput, Optional[ComparisonConfig]]],
) -> list[ComparisonResult]:
    """Run one comparison per (features, groups, config) tuple."""
    return [compare_groups(features, groups, config) for features, groups, config in jobs]
