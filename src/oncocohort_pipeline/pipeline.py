"""
Study pipeline that runs configured analyses end to end.

Each analysis loads its inputs, runs the group comparison, and writes the
tables and plots. Analyses are independent; one failing does not stop the
others unless ``fail_fast`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import logging
import time

import pandas as pd

from oncocohort_pipeline.core.config import AnalysisConfig, ComparisonConfig, Config
from oncocohort_pipeline.differential.comparison import ComparisonResult, compare_groups
from oncocohort_pipeline.export.csv_writer import CSVWriter
from oncocohort_pipeline.export.plots import plot_forest, plot_group_frequencies, plot_pvalue_bars
from oncocohort_pipeline.ingest.tables import (
    load_feature_matrix,
    load_group_assignment,
    load_mutation_calls,
    mutation_matrix,
)
from oncocohort_pipeline.microbiome.diversity import alpha_diversity
from oncocohort_pipeline.mutation.burden import mutation_burden
from oncocohort_pipeline.mutation.frequency import gene_frequencies

logger = logging.getLogger(__name__)

# Tests whose effect size is an odds ratio
ODDS_RATIO_TESTS = ("fisher",)


@dataclass
class PipelineResult:
    """Result of one analysis."""

    name: str
    comparison: Optional[ComparisonResult] = None
    output_paths: dict[str, Path] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class StudyPipeline:
    """Runs the analyses of a study configuration.

    Example:
        >>> config = Config.from_yaml("study.yaml")
        >>> pipeline = StudyPipeline(config)
        >>> results = pipeline.run()
        >>> [r.metrics for r in results]
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        output_dir: Optional[Path] = None,
        palette: Optional[dict] = None,
    ):
        """Initialize pipeline.

        Parameters
        ----------
        config : Config, optional
            Study configuration
        output_dir : Path, optional
            Output directory (overrides config.output_dir)
        palette : dict, optional
            Plot colors passed through to the plotting functions
        """
        self.config = config or Config()
        self.output_dir = Path(output_dir) if output_dir else self.config.output_dir
        self.palette = palette

    def run(
        self,
        analyses: Optional[list[AnalysisConfig]] = None,
        fail_fast: bool = False,
    ) -> list[PipelineResult]:
        """Run every analysis (the configured ones by default)."""
        analyses = self.config.analyses if analyses is None else analyses
        results = []
        for i, analysis in enumerate(analyses, start=1):
            logger.info("[%d/%d] Running analysis '%s' (%s)",
                        i, len(analyses), analysis.name, analysis.kind)
            try:
                results.append(self.run_analysis(analysis))
            except Exception as e:
                logger.error("Analysis '%s' failed: %s", analysis.name, e)
                if fail_fast:
                    raise
                results.append(PipelineResult(name=analysis.name, error=str(e)))
        n_ok = sum(r.success for r in results)
        logger.info("Completed %d of %d analyses", n_ok, len(results))
        return results

    def run_analysis(self, analysis: AnalysisConfig) -> PipelineResult:
        """Load, compare and export one analysis."""
        start = time.time()
        comparison_config = self.config.comparison_for(analysis)
        groups = load_group_assignment(
            analysis.groups,
            sample_col=analysis.group_sample_col,
            group_col=analysis.group_col,
            barcode_length=self.config.barcode_length,
        )
        features, extra = self._load_features(analysis, groups)

        comparison = compare_groups(features, groups, comparison_config)
        result = PipelineResult(name=analysis.name, comparison=comparison)

        if comparison.unmatched_feature_samples or comparison.unmatched_group_samples:
            logger.info(
                "'%s': %d matched samples; %d without group, %d without features",
                analysis.name, len(comparison.matched_samples),
                len(comparison.unmatched_feature_samples),
                len(comparison.unmatched_group_samples),
            )
        if comparison.failed:
            logger.warning("'%s': %d feature tests failed",
                           analysis.name, len(comparison.failed))
        if comparison.missing_required_features:
            logger.warning("'%s': required features not found: %s",
                           analysis.name, comparison.missing_required_features)

        if self.output_dir is not None:
            result.output_paths = self._export(analysis, comparison_config, comparison, extra)

        result.metrics = {
            "n_samples": len(comparison.matched_samples),
            "n_features": len(comparison.records),
            "n_significant": len(comparison.significant()),
            "n_failed": len(comparison.failed),
            "groups": comparison.group_sizes,
            "time_seconds": round(time.time() - start, 3),
        }
        logger.info("'%s' complete: %s", analysis.name, result.metrics)
        return result

    def _load_features(
        self,
        analysis: AnalysisConfig,
        groups: pd.Series,
    ) -> tuple[pd.DataFrame, dict[str, pd.DataFrame]]:
        """Build the samples x features table for an analysis kind."""
        extra: dict[str, pd.DataFrame] = {}
        barcode_length = self.config.barcode_length

        if analysis.kind in ("mutations", "burden"):
            calls = load_mutation_calls(
                analysis.features,
                sample_col=analysis.sample_col or "Tumor_Sample_Barcode",
                barcode_length=barcode_length,
            )
            # Grouped samples without calls are unmutated, not missing
            samples = sorted(set(calls["sample"]) | set(groups.index))
            if analysis.kind == "burden":
                features = mutation_burden(calls, samples=samples)[["n_mutations", "tmb"]]
            else:
                features = mutation_matrix(calls, samples=samples)
                extra["frequencies"] = gene_frequencies(features, groups)
            return features, extra

        features = load_feature_matrix(
            analysis.features,
            sample_col=analysis.sample_col,
            transpose=analysis.transpose,
            barcode_length=barcode_length,
        )
        if analysis.kind == "diversity":
            features = alpha_diversity(features)
        return features, extra

    def _export(
        self,
        analysis: AnalysisConfig,
        comparison_config: ComparisonConfig,
        comparison: ComparisonResult,
        extra: dict[str, pd.DataFrame],
    ) -> dict[str, Path]:
        out_dir = self.output_dir / analysis.name
        writer = CSVWriter(out_dir)
        paths = writer.write_comparison(comparison, prefix=analysis.name)

        if "frequencies" in extra:
            freq = extra["frequencies"]
            paths["frequencies"] = writer.write_matrix(
                freq, f"{analysis.name}_frequencies.csv", index_label="gene"
            )

        if self.config.write_plots and comparison.ranked:
            paths["pvalue_plot"] = plot_pvalue_bars(
                comparison, out_dir / f"{analysis.name}_pvalues.pdf",
                palette=self.palette, title=analysis.name,
            )
            if comparison_config.test_kind in ODDS_RATIO_TESTS:
                paths["forest_plot"] = plot_forest(
                    comparison, out_dir / f"{analysis.name}_forest.pdf",
                    palette=self.palette, title=analysis.name,
                )
            if "frequencies" in extra:
                shown = [r.feature for r in (comparison.top or comparison.ranked[:20])]
                paths["frequency_plot"] = plot_group_frequencies(
                    extra["frequencies"].loc[shown], out_dir / f"{analysis.name}_frequencies.pdf",
                    palette=self.palette, title=analysis.name,
                )

        logger.info("Wrote %d outputs to %s", len(paths), out_dir)
        return paths


def create_pipeline(
    config: Optional[Config] = None,
    output_dir: Optional[Path] = None,
    **kwargs,
) -> StudyPipeline:
    """Factory for StudyPipeline."""
    return StudyPipeline(config=config, output_dir=output_dir, **kwargs)
