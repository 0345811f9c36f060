"""
Pipeline configuration management.

Provides dataclass-based configuration with validation and serialization.
Unknown keys are rejected instead of being silently ignored.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional
import json
import os

import yaml

from oncocohort_pipeline.core.exceptions import ConfigurationError


TEST_KINDS = ("fisher", "chi2", "wilcoxon", "kruskal", "ttest")
"""Per-feature tests understood by ``get_feature_test``."""

ANALYSIS_KINDS = ("table", "mutations", "burden", "diversity")
"""Input kinds understood by the study pipeline."""

KIND_DEFAULT_TESTS = {
    "mutations": "fisher",
    "burden": "kruskal",
    "diversity": "kruskal",
}


def _check_keys(cls: type, d: dict[str, Any]) -> None:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(d) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} option(s): {unknown}. Known: {sorted(known)}"
        )


@dataclass
class ComparisonConfig:
    """
    Options for one group-wise comparison.

    Example:
        >>> config = ComparisonConfig(
        ...     test_kind="fisher",
        ...     multiple_testing_correction="fdr_bh",
        ...     top_n=20,
        ...     required_features=("TP53",),
        ... )
    """

    test_kind: str = "wilcoxon"
    """Per-feature test: fisher, chi2, wilcoxon, kruskal or ttest."""

    multiple_testing_correction: Optional[str] = None
    """statsmodels correction method (e.g. fdr_bh); None applies no correction."""

    alpha: float = 0.05
    """Significance threshold."""

    tier_thresholds: tuple[float, ...] = (0.05, 0.01, 0.001)
    """Descending p-value cutoffs for the *, **, *** tiers."""

    significance_basis: Literal["adjusted", "raw"] = "adjusted"
    """Which p-value drives tiers and the significant subset."""

    top_n: Optional[int] = None
    """Size of the truncated ranked view."""

    required_features: tuple[str, ...] = ()
    """Features always kept in the truncated view."""

    exclude_infinite_effect: bool = False
    """Drop features with non-finite effect size before ranking."""

    min_group_size: int = 1
    """Groups with fewer matched samples are dropped."""

    n_workers: int = 1
    """Worker threads for per-feature tests."""

    def __post_init__(self):
        """Validate eagerly so bad options fail before any scan starts."""
        from oncocohort_pipeline.differential.fdr import resolve_method

        if self.test_kind not in TEST_KINDS:
            raise ConfigurationError(
                f"Unknown test_kind: {self.test_kind!r}. Available: {list(TEST_KINDS)}"
            )
        self.multiple_testing_correction = resolve_method(
            self.multiple_testing_correction
        )

        if not 0 < self.alpha < 1:
            raise ConfigurationError(f"alpha must be in (0, 1), got {self.alpha}")

        thresholds = tuple(float(t) for t in self.tier_thresholds)
        if not thresholds or any(not 0 < t < 1 for t in thresholds):
            raise ConfigurationError(
                f"tier_thresholds must be values in (0, 1), got {self.tier_thresholds}"
            )
        if list(thresholds) != sorted(thresholds, reverse=True) or len(set(thresholds)) != len(thresholds):
            raise ConfigurationError(
                f"tier_thresholds must be strictly descending, got {self.tier_thresholds}"
            )
        self.tier_thresholds = thresholds

        if self.significance_basis not in ("adjusted", "raw"):
            raise ConfigurationError(
                f"significance_basis must be 'adjusted' or 'raw', got {self.significance_basis!r}"
            )

        if self.top_n is not None:
            if isinstance(self.top_n, bool) or int(self.top_n) != self.top_n or self.top_n < 1:
                raise ConfigurationError(f"top_n must be a positive integer, got {self.top_n}")
            self.top_n = int(self.top_n)

        if isinstance(self.required_features, str):
            self.required_features = (self.required_features,)
        # Keep first occurrence order, drop repeats
        self.required_features = tuple(dict.fromkeys(str(f) for f in self.required_features))

        if self.min_group_size < 1:
            raise ConfigurationError(f"min_group_size must be >= 1, got {self.min_group_size}")
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {self.n_workers}")

    def replace(self, **overrides: Any) -> "ComparisonConfig":
        """Return a copy with some options changed."""
        d = self.to_dict()
        _check_keys(ComparisonConfig, overrides)
        d.update(overrides)
        return ComparisonConfig(**d)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["tier_thresholds"] = list(self.tier_thresholds)
        d["required_features"] = list(self.required_features)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ComparisonConfig":
        """Create from dictionary, rejecting unknown keys."""
        _check_keys(cls, d)
        d = dict(d)
        if "tier_thresholds" in d:
            d["tier_thresholds"] = tuple(d["tier_thresholds"])
        if "required_features" in d and d["required_features"] is not None:
            rf = d["required_features"]
            d["required_features"] = (rf,) if isinstance(rf, str) else tuple(rf)
        return cls(**d)


@dataclass
class AnalysisConfig:
    """One analysis in a batch run."""

    name: str
    """Analysis name, used for output file names."""

    features: Path
    """Feature table, mutation calls or count table."""

    groups: Path
    """Group assignment table."""

    kind: str = "table"
    """Input kind: table, mutations, burden or diversity."""

    sample_col: Optional[str] = None
    """Sample id column of the feature table (index column if None)."""

    group_sample_col: str = "sample"
    """Sample id column of the group table."""

    group_col: str = "group"
    """Group label column of the group table."""

    transpose: bool = False
    """Feature table is stored features x samples."""

    comparison: dict[str, Any] = field(default_factory=dict)
    """Overrides applied on top of the default ComparisonConfig."""

    def __post_init__(self):
        if self.kind not in ANALYSIS_KINDS:
            raise ConfigurationError(
                f"Unknown analysis kind: {self.kind!r}. Available: {list(ANALYSIS_KINDS)}"
            )
        self.features = Path(self.features)
        self.groups = Path(self.groups)
        _check_keys(ComparisonConfig, self.comparison)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "AnalysisConfig":
        _check_keys(cls, d)
        return cls(**d)


@dataclass
class Config:
    """
    Main study configuration.

    Example:
        >>> config = Config(output_dir="results", barcode_length=12)
        >>> pipeline = StudyPipeline(config)
    """

    output_dir: Optional[Path] = None
    """Base output directory."""

    barcode_length: Optional[int] = None
    """Truncate sample identifiers to this prefix length (12 for TCGA patients)."""

    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    """Default comparison options."""

    analyses: list[AnalysisConfig] = field(default_factory=list)
    """Analyses for a batch run."""

    write_plots: bool = True
    """Render PDF plots next to CSV tables."""

    # Logging
    verbose: bool = False
    """Enable verbose logging."""

    log_file: Optional[Path] = None
    """Log file path."""

    def __post_init__(self):
        """Convert paths and nested dicts."""
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        if isinstance(self.comparison, dict):
            self.comparison = ComparisonConfig.from_dict(self.comparison)
        self.analyses = [
            AnalysisConfig.from_dict(a) if isinstance(a, dict) else a
            for a in self.analyses
        ]
        if self.barcode_length is not None and self.barcode_length < 1:
            raise ConfigurationError(
                f"barcode_length must be >= 1, got {self.barcode_length}"
            )

    def comparison_for(self, analysis: AnalysisConfig) -> ComparisonConfig:
        """Default comparison options with the analysis overrides applied.

        Analyses that do not name a test get the usual one for their kind.
        """
        overrides = dict(analysis.comparison)
        if "test_kind" not in overrides and analysis.kind in KIND_DEFAULT_TESTS:
            overrides["test_kind"] = KIND_DEFAULT_TESTS[analysis.kind]
        if not overrides:
            return self.comparison
        return self.comparison.replace(**overrides)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["comparison"] = self.comparison.to_dict()
        for key in ("output_dir", "log_file"):
            if d[key] is not None:
                d[key] = str(d[key])
        for a in d["analyses"]:
            a["features"] = str(a["features"])
            a["groups"] = str(a["groups"])
        return d

    def to_json(self, path: Path | str) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Config":
        """Create from dictionary."""
        _check_keys(cls, d)
        return cls(**d)

    @classmethod
    def from_json(cls, path: Path | str) -> "Config":
        """Load configuration from JSON file."""
        path = Path(path)
        with open(path) as f:
            d = json.load(f)
        return cls.from_dict(d)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from YAML file."""
        path = Path(path)
        with open(path) as f:
            d = yaml.safe_load(f) or {}
        return cls.from_dict(d)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        barcode_length = os.getenv("ONCOCOHORT_BARCODE_LENGTH")
        correction = os.getenv("ONCOCOHORT_CORRECTION") or None
        return cls(
            output_dir=os.getenv("ONCOCOHORT_OUTPUT_DIR") or None,
            barcode_length=int(barcode_length) if barcode_length else None,
            comparison=ComparisonConfig(
                alpha=float(os.getenv("ONCOCOHORT_ALPHA", "0.05")),
                multiple_testing_correction=correction,
                n_workers=int(os.getenv("ONCOCOHORT_WORKERS", "1")),
            ),
            verbose=os.getenv("ONCOCOHORT_VERBOSE", "").lower() in ("1", "true", "yes"),
        )
