"""Pytest configuration and fixtures."""

import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def sample_scores():
    """Continuous features (40 samples x 6 features), first feature shifted in group A."""
    np.random.seed(42)
    samples = [f"S{i:02d}" for i in range(40)]
    df = pd.DataFrame(
        np.random.randn(40, 6),
        index=samples,
        columns=[f"feat_{i}" for i in range(6)],
    )
    df.iloc[:20, 0] += 3
    return df


@pytest.fixture
def sample_groups():
    """Two groups of 20 samples."""
    samples = [f"S{i:02d}" for i in range(40)]
    return pd.Series(["A"] * 20 + ["B"] * 20, index=samples)


@pytest.fixture
def mutation_calls():
    """Small MAF-like table with one silent call."""
    return pd.DataFrame({
        "Tumor_Sample_Barcode": [
            "TCGA-AA-0001-01A", "TCGA-AA-0001-01A", "TCGA-AA-0002-01A",
            "TCGA-AA-0003-01A", "TCGA-AA-0004-01A", "TCGA-AA-0004-01A",
        ],
        "Hugo_Symbol": ["TP53", "KRAS", "TP53", "KRAS", "TP53", "APC"],
        "Variant_Classification": [
            "Missense_Mutation", "Missense_Mutation", "Nonsense_Mutation",
            "Silent", "Frame_Shift_Del", "Missense_Mutation",
        ],
    })


@pytest.fixture
def taxa_counts():
    """Samples x taxa count table."""
    return pd.DataFrame(
        {
            "Bacteroides": [10, 0, 5, 5],
            "Prevotella": [10, 0, 5, 0],
            "Fusobacterium": [0, 20, 5, 0],
            "Escherichia": [0, 0, 5, 0],
        },
        index=["S1", "S2", "S3", "S4"],
    )
