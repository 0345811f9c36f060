"""
Command-line interface for oncocohort-pipeline.

Usage:
    oncocohort-pipeline run --config study.yaml
    oncocohort-pipeline compare --features scores.csv --groups clusters.csv --test wilcoxon
    oncocohort-pipeline compare --mutations calls.maf --groups clusters.csv --test fisher
    oncocohort-pipeline burden --mutations calls.maf --groups clusters.csv
    oncocohort-pipeline interactions --mutations calls.maf --top-n 20
    oncocohort-pipeline diversity --counts taxa_counts.csv --groups clusters.csv
    oncocohort-pipeline correlate --x taxa.csv --y immune.csv --method spearman
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger("oncocohort_pipeline")


def _setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=fmt, handlers=handlers)


def _apply_config_logging(config) -> None:
    """Apply the study config's verbose and log_file settings."""
    if config.verbose:
        logger.setLevel(logging.DEBUG)
    elif config.log_file and logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    if config.log_file:
        log_file = os.path.abspath(config.log_file)
        if not any(getattr(h, "baseFilename", None) == log_file for h in logger.handlers):
            handler = logging.FileHandler(log_file)
            handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
            logger.addHandler(handler)


def _comparison_config(args: argparse.Namespace, test_kind: str):
    from oncocohort_pipeline.core.config import ComparisonConfig

    return ComparisonConfig(
        test_kind=test_kind,
        multiple_testing_correction=args.correction,
        alpha=args.alpha,
        top_n=args.top_n,
        required_features=tuple(args.require or ()),
        exclude_infinite_effect=args.exclude_infinite,
        min_group_size=args.min_group_size,
        n_workers=args.workers,
    )


def _load_groups(args: argparse.Namespace):
    from oncocohort_pipeline.ingest import load_group_assignment

    return load_group_assignment(
        args.groups,
        sample_col=args.group_sample_col,
        group_col=args.group_col,
        barcode_length=args.barcode_length,
    )


def _write_result(result, args: argparse.Namespace, prefix: str) -> None:
    from oncocohort_pipeline.export import CSVWriter

    writer = CSVWriter(Path(args.output or "."))
    paths = writer.write_comparison(result, prefix=prefix)
    logger.info(
        "%s: %d features, %d significant, %d failed -> %s",
        prefix, len(result.records), len(result.significant()),
        len(result.failed), paths["all"],
    )


def cmd_run(args: argparse.Namespace) -> int:
    """Run every analysis of a YAML study config."""
    from oncocohort_pipeline.core.config import Config
    from oncocohort_pipeline.pipeline import StudyPipeline

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Config file not found: %s", config_path)
        return 1

    config = Config.from_yaml(config_path)
    _apply_config_logging(config)
    if args.output:
        config.output_dir = Path(args.output)
    if config.output_dir is None:
        config.output_dir = Path(".")

    if not config.analyses:
        logger.warning("No analyses defined in %s", config_path)
        return 0

    results = StudyPipeline(config=config).run(fail_fast=args.fail_fast)
    return 0 if all(r.success for r in results) else 1


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare features between groups."""
    from oncocohort_pipeline.differential import compare_groups
    from oncocohort_pipeline.ingest import (
        load_feature_matrix,
        load_mutation_calls,
        mutation_matrix,
    )

    groups = _load_groups(args)
    if args.mutations:
        calls = load_mutation_calls(args.mutations, barcode_length=args.barcode_length)
        features = mutation_matrix(calls, samples=sorted(set(calls["sample"]) | set(groups.index)))
    else:
        features = load_feature_matrix(
            args.features,
            sample_col=args.sample_col,
            transpose=args.transpose,
            barcode_length=args.barcode_length,
        )

    result = compare_groups(features, groups, _comparison_config(args, args.test))
    _write_result(result, args, prefix=args.prefix)
    return 0


def cmd_burden(args: argparse.Namespace) -> int:
    """Compare tumor mutation burden between groups."""
    from oncocohort_pipeline.export import CSVWriter
    from oncocohort_pipeline.ingest import load_mutation_calls
    from oncocohort_pipeline.mutation import burden_by_group, compare_burden, mutation_burden

    groups = _load_groups(args)
    calls = load_mutation_calls(args.mutations, barcode_length=args.barcode_length)

    result = compare_burden(
        calls, groups, _comparison_config(args, args.test), exome_size_mb=args.exome_size
    )
    _write_result(result, args, prefix="burden")

    writer = CSVWriter(Path(args.output or "."))
    samples = sorted(set(calls["sample"]) | set(groups.index))
    burden = mutation_burden(calls, exome_size_mb=args.exome_size, samples=samples)
    writer.write_matrix(burden, "burden_per_sample.csv", index_label="sample")
    writer.write_matrix(burden_by_group(burden, groups), "burden_by_group.csv", index_label="group")
    return 0


def cmd_interactions(args: argparse.Namespace) -> int:
    """Pairwise co-occurrence / mutual exclusivity of mutated genes."""
    from oncocohort_pipeline.export import CSVWriter
    from oncocohort_pipeline.ingest import load_mutation_calls, mutation_matrix
    from oncocohort_pipeline.mutation import groupwise_interactions, somatic_interactions

    calls = load_mutation_calls(args.mutations, barcode_length=args.barcode_length)
    matrix = mutation_matrix(calls)
    writer = CSVWriter(Path(args.output or "."))

    if args.groups:
        groups = _load_groups(args)
        for label, table in groupwise_interactions(
            matrix, groups, genes=args.genes, top_n=args.top_n, correction=args.correction
        ).items():
            path = writer.write_table(table, f"interactions_{label}.csv")
            logger.info("Group %s: %d gene pairs -> %s", label, len(table), path)
    else:
        table = somatic_interactions(
            matrix, genes=args.genes, top_n=args.top_n, correction=args.correction
        )
        path = writer.write_table(table, "interactions.csv")
        logger.info("%d gene pairs -> %s", len(table), path)
    return 0


def cmd_diversity(args: argparse.Namespace) -> int:
    """Alpha diversity per sample and between groups."""
    from oncocohort_pipeline.export import CSVWriter
    from oncocohort_pipeline.ingest import load_feature_matrix
    from oncocohort_pipeline.microbiome import alpha_diversity, beta_diversity, compare_diversity

    counts = load_feature_matrix(
        args.counts,
        sample_col=args.sample_col,
        transpose=args.transpose,
        barcode_length=args.barcode_length,
    )
    writer = CSVWriter(Path(args.output or "."))
    writer.write_matrix(alpha_diversity(counts, args.metrics), "alpha_diversity.csv",
                        index_label="sample")
    if args.beta:
        writer.write_matrix(beta_diversity(counts, metric=args.beta), f"beta_{args.beta}.csv",
                            index_label="sample")

    if args.groups:
        groups = _load_groups(args)
        result = compare_diversity(
            counts, groups, _comparison_config(args, args.test), metrics=args.metrics
        )
        _write_result(result, args, prefix="diversity")
    return 0


def cmd_correlate(args: argparse.Namespace) -> int:
    """Correlate two feature tables (e.g. taxa vs immune cells)."""
    from oncocohort_pipeline.correlation import correlate_features
    from oncocohort_pipeline.export import CSVWriter
    from oncocohort_pipeline.ingest import load_feature_matrix

    x = load_feature_matrix(args.x, barcode_length=args.barcode_length)
    y = load_feature_matrix(args.y, barcode_length=args.barcode_length)
    table = correlate_features(x, y, method=args.method, correction=args.correction)
    if args.max_q is not None:
        table = table[table["qvalue"] < args.max_q]

    path = CSVWriter(Path(args.output or ".")).write_table(table, "correlations.csv")
    logger.info("%d feature pairs -> %s", len(table), path)
    return 0


def _add_group_args(p: argparse.ArgumentParser, required: bool = True) -> None:
    p.add_argument("--groups", "-g", required=required, help="Group assignment table")
    p.add_argument("--group-col", default="group", help="Group label column")
    p.add_argument("--group-sample-col", default="sample", help="Sample id column of the group table")


def _add_comparison_args(p: argparse.ArgumentParser, test: str, tests: list[str]) -> None:
    p.add_argument("--test", default=test, choices=tests, help="Per-feature test")
    p.add_argument("--correction", default="fdr_bh",
                   help="Multiple-testing correction (statsmodels name or 'none')")
    p.add_argument("--alpha", type=float, default=0.05)
    p.add_argument("--top-n", type=int, help="Also write the top-N ranked features")
    p.add_argument("--require", nargs="+", help="Features always kept in the top-N view")
    p.add_argument("--exclude-infinite", action="store_true",
                   help="Drop features with non-finite effect size")
    p.add_argument("--min-group-size", type=int, default=1)
    p.add_argument("--workers", type=int, default=1, help="Threads for per-feature tests")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    from oncocohort_pipeline.core.config import TEST_KINDS

    tests = list(TEST_KINDS)

    parser = argparse.ArgumentParser(
        prog="oncocohort-pipeline",
        description="Group-wise comparison analyses for tumor cohort studies",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Log file path")
    parser.add_argument("--barcode-length", type=int,
                        help="Truncate sample ids to this many characters (12 for TCGA patients)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run all analyses from a YAML config")
    p_run.add_argument("--config", required=True, help="Study YAML config file")
    p_run.add_argument("--output", "-o", help="Output directory")
    p_run.add_argument("--fail-fast", action="store_true", help="Stop at the first failed analysis")
    p_run.set_defaults(func=cmd_run)

    # --- compare ---
    p_cmp = subparsers.add_parser("compare", help="Compare features between groups")
    source = p_cmp.add_mutually_exclusive_group(required=True)
    source.add_argument("--features", "-f", help="Samples x features table")
    source.add_argument("--mutations", "-m", help="MAF-like mutation calls")
    p_cmp.add_argument("--sample-col", help="Sample id column of the feature table")
    p_cmp.add_argument("--transpose", action="store_true", help="Feature table is features x samples")
    p_cmp.add_argument("--prefix", default="comparison", help="Output file prefix")
    _add_group_args(p_cmp)
    _add_comparison_args(p_cmp, "wilcoxon", tests)
    p_cmp.add_argument("--output", "-o", help="Output directory")
    p_cmp.set_defaults(func=cmd_compare)

    # --- burden ---
    p_bur = subparsers.add_parser("burden", help="Compare mutation burden between groups")
    p_bur.add_argument("--mutations", "-m", required=True, help="MAF-like mutation calls")
    p_bur.add_argument("--exome-size", type=float, default=38.0, help="Captured territory (Mb)")
    _add_group_args(p_bur)
    _add_comparison_args(p_bur, "kruskal", tests)
    p_bur.add_argument("--output", "-o", help="Output directory")
    p_bur.set_defaults(func=cmd_burden)

    # --- interactions ---
    p_int = subparsers.add_parser("interactions", help="Gene co-occurrence / mutual exclusivity")
    p_int.add_argument("--mutations", "-m", required=True, help="MAF-like mutation calls")
    p_int.add_argument("--genes", nargs="+", help="Genes to test (default: most mutated)")
    p_int.add_argument("--top-n", type=int, default=25, help="Number of most mutated genes")
    p_int.add_argument("--correction", default="fdr_bh")
    _add_group_args(p_int, required=False)
    p_int.add_argument("--output", "-o", help="Output directory")
    p_int.set_defaults(func=cmd_interactions)

    # --- diversity ---
    p_div = subparsers.add_parser("diversity", help="Microbiome diversity")
    p_div.add_argument("--counts", "-c", required=True, help="Samples x taxa count table")
    p_div.add_argument("--sample-col", help="Sample id column of the count table")
    p_div.add_argument("--transpose", action="store_true", help="Count table is taxa x samples")
    p_div.add_argument("--metrics", nargs="+", default=["shannon", "simpson", "richness"])
    p_div.add_argument("--beta", help="Also write a beta diversity matrix (e.g. braycurtis)")
    _add_group_args(p_div, required=False)
    _add_comparison_args(p_div, "kruskal", tests)
    p_div.add_argument("--output", "-o", help="Output directory")
    p_div.set_defaults(func=cmd_diversity)

    # --- correlate ---
    p_cor = subparsers.add_parser("correlate", help="Correlate two feature tables")
    p_cor.add_argument("--x", required=True, help="First samples x features table")
    p_cor.add_argument("--y", required=True, help="Second samples x features table")
    p_cor.add_argument("--method", default="spearman", choices=["spearman", "pearson"])
    p_cor.add_argument("--correction", default="fdr_bh")
    p_cor.add_argument("--max-q", type=float, help="Only keep pairs with q below this")
    p_cor.add_argument("--output", "-o", help="Output directory")
    p_cor.set_defaults(func=cmd_correlate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    from oncocohort_pipeline.core.exceptions import ComparisonError

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return args.func(args)
    except (ComparisonError, FileNotFoundError, KeyError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
