"""
Delimited-table loaders.

Turn study tables (feature tables, cluster/clinical assignments, MAF-like
mutation calls) into the samples x features frames and sample -> group
series consumed by the comparison pipeline. Identifier normalization
happens here, never in the pipeline.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TAB_SUFFIXES = {".tsv", ".txt", ".maf", ".tab"}

# Variant classifications that change the protein (maftools defaults)
NONSILENT_CLASSIFICATIONS = (
    "Frame_Shift_Del",
    "Frame_Shift_Ins",
    "Splice_Site",
    "Translation_Start_Site",
    "Nonsense_Mutation",
    "Nonstop_Mutation",
    "In_Frame_Del",
    "In_Frame_Ins",
    "Missense_Mutation",
)


def _infer_sep(path: Path) -> str:
    suffixes = [s.lower() for s in path.suffixes if s.lower() not in (".gz", ".bz2", ".zip")]
    return "\t" if suffixes and suffixes[-1] in TAB_SUFFIXES else ","


def read_table(
    path: Union[str, Path],
    sep: Optional[str] = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Read a delimited text table.

    Args:
        path: Table path (.csv, .tsv, .txt, .maf, optionally gzipped).
        sep: Delimiter; inferred from the suffix when None.
        **kwargs: Passed to ``pandas.read_csv``.

    Returns:
        DataFrame.

    Raises:
        FileNotFoundError: Path does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    sep = sep or _infer_sep(path)
    kwargs.setdefault("comment", "#")
    kwargs.setdefault("low_memory", False)
    df = pd.read_csv(path, sep=sep, **kwargs)
    logger.debug("Read %s: %d rows x %d columns", path, *df.shape)
    return df


def normalize_barcode(
    ids: Union[pd.Index, pd.Series, Sequence[str]],
    length: Optional[int] = None,
) -> pd.Index:
    """
    Normalize sample identifiers.

    Strips whitespace, upper-cases, and truncates to ``length`` characters
    (12 maps TCGA aliquot barcodes to patient barcodes).

    Example:
        >>> list(normalize_barcode(["tcga-ab-1234-01A-11D"], 12))
        ['TCGA-AB-1234']
    """
    normalized = pd.Index([str(x).strip().upper() for x in ids])
    if length is not None:
        normalized = pd.Index([x[:length] for x in normalized])
    return normalized


def _require_columns(df: pd.DataFrame, columns: Iterable[str], path: Path) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(f"{path}: missing column(s) {missing}; available: {list(df.columns)}")


def _collapse_duplicates(df: pd.DataFrame, what: str) -> pd.DataFrame:
    """Merge rows sharing a sample id (numeric: mean, otherwise first)."""
    if not df.index.has_duplicates:
        return df
    n_dup = int(df.index.duplicated().sum())
    logger.warning("Collapsing %d duplicate sample rows in %s", n_dup, what)
    numeric = df.select_dtypes(include=[np.number])
    if numeric.shape[1] == df.shape[1]:
        return df.groupby(level=0, sort=False).mean()
    return df[~df.index.duplicated(keep="first")]


def load_feature_matrix(
    path: Union[str, Path],
    sample_col: Optional[str] = None,
    transpose: bool = False,
    barcode_length: Optional[int] = None,
    sep: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load a samples x features table.

    Args:
        path: Table path.
        sample_col: Sample id column; the first column is used when None.
        transpose: Table is stored features x samples (genes in rows).
        barcode_length: Truncate sample ids to this length.
        sep: Delimiter.

    Returns:
        DataFrame indexed by sample id.
    """
    path = Path(path)
    df = read_table(path, sep=sep)
    if transpose:
        df = df.set_index(df.columns[0]).T
    else:
        if sample_col is not None:
            _require_columns(df, [sample_col], path)
            df = df.set_index(sample_col)
        else:
            df = df.set_index(df.columns[0])
    df.index = normalize_barcode(df.index, barcode_length)
    df.index.name = "sample"
    df.columns = df.columns.map(str)
    df = _collapse_duplicates(df, str(path))
    logger.info("Loaded feature matrix %s: %d samples x %d features", path.name, *df.shape)
    return df


def load_group_assignment(
    path: Union[str, Path],
    sample_col: str = "sample",
    group_col: str = "group",
    barcode_length: Optional[int] = None,
    sep: Optional[str] = None,
) -> pd.Series:
    """
    Load a sample -> group label series from a cluster/clinical table.

    Rows with a missing label are dropped. Conflicting labels for the same
    (normalized) sample keep the first.
    """
    path = Path(path)
    df = read_table(path, sep=sep, dtype={sample_col: str, group_col: str})
    _require_columns(df, [sample_col, group_col], path)
    df = df[[sample_col, group_col]].dropna(subset=[group_col])
    groups = pd.Series(
        df[group_col].astype(str).values,
        index=normalize_barcode(df[sample_col], barcode_length),
        name=group_col,
    )
    groups.index.name = "sample"
    if groups.index.has_duplicates:
        logger.warning(
            "%s: %d duplicate samples in group table, keeping first label",
            path.name, int(groups.index.duplicated().sum()),
        )
        groups = groups[~groups.index.duplicated(keep="first")]
    logger.info(
        "Loaded %d group assignments from %s: %s",
        len(groups), path.name, groups.value_counts().to_dict(),
    )
    return groups


def load_mutation_calls(
    path: Union[str, Path],
    sample_col: str = "Tumor_Sample_Barcode",
    gene_col: str = "Hugo_Symbol",
    classification_col: Optional[str] = "Variant_Classification",
    nonsilent_only: bool = True,
    classifications: Sequence[str] = NONSILENT_CLASSIFICATIONS,
    barcode_length: Optional[int] = None,
    sep: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load somatic mutation calls (MAF or any long table of sample/gene rows).

    Returns:
        DataFrame with columns ``sample``, ``gene`` and, when available,
        ``classification``.
    """
    path = Path(path)
    df = read_table(path, sep=sep)
    columns = [sample_col, gene_col]
    if classification_col is not None and classification_col in df.columns:
        columns.append(classification_col)
    elif nonsilent_only and classification_col is not None:
        raise KeyError(
            f"{path}: column {classification_col!r} needed to keep non-silent calls"
        )
    _require_columns(df, columns, path)

    calls = df[columns].rename(columns={
        sample_col: "sample",
        gene_col: "gene",
        classification_col: "classification",
    })
    n_all = len(calls)
    if nonsilent_only and "classification" in calls.columns:
        calls = calls[calls["classification"].isin(set(classifications))]
    calls = calls.dropna(subset=["sample", "gene"]).copy()
    calls["sample"] = normalize_barcode(calls["sample"], barcode_length)
    calls["gene"] = calls["gene"].astype(str)
    calls = calls.reset_index(drop=True)
    logger.info(
        "Loaded %d of %d mutation calls from %s (%d samples, %d genes)",
        len(calls), n_all, path.name, calls["sample"].nunique(), calls["gene"].nunique(),
    )
    return calls


def mutation_matrix(
    calls: pd.DataFrame,
    samples: Optional[Iterable[str]] = None,
    genes: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Binary samples x genes mutation status.

    Args:
        calls: Output of ``load_mutation_calls``.
        samples: Samples to include; samples without calls get all zeros.
        genes: Genes to include; absent genes get all zeros.

    Returns:
        Integer DataFrame of 0/1.
    """
    matrix = pd.crosstab(calls["sample"], calls["gene"]).clip(upper=1)
    if samples is not None:
        matrix = matrix.reindex(pd.Index(list(samples), name="sample"), fill_value=0)
    if genes is not None:
        matrix = matrix.reindex(columns=pd.Index(list(genes), name="gene"), fill_value=0)
    matrix.index.name = "sample"
    matrix.columns.name = None
    return matrix.astype(int)
