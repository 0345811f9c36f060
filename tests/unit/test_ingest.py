"""Tests for table loaders."""

import pytest
import numpy as np
import pandas as pd


class TestReadTable:
    """Test delimited table reading."""

    def test_separator_from_suffix(self, tmp_path):
        from oncocohort_pipeline.ingest import read_table

        (tmp_path / "a.tsv").write_text("x\ty\n1\t2\n")
        (tmp_path / "a.csv").write_text("x,y\n1,2\n")

        assert list(read_table(tmp_path / "a.tsv").columns) == ["x", "y"]
        assert list(read_table(tmp_path / "a.csv").columns) == ["x", "y"]

    def test_comment_lines_skipped(self, tmp_path):
        from oncocohort_pipeline.ingest import read_table

        (tmp_path / "calls.maf").write_text("#version 2.4\nHugo_Symbol\tTumor_Sample_Barcode\nTP53\tS1\n")
        df = read_table(tmp_path / "calls.maf")
        assert df.shape == (1, 2)

    def test_missing_file(self, tmp_path):
        from oncocohort_pipeline.ingest import read_table

        with pytest.raises(FileNotFoundError):
            read_table(tmp_path / "nope.csv")


class TestNormalizeBarcode:
    """Test sample identifier normalization."""

    def test_truncate_and_upper(self):
        from oncocohort_pipeline.ingest import normalize_barcode

        ids = normalize_barcode([" tcga-ab-1234-01A-11D ", "TCGA-AB-5678-01A"], 12)
        assert list(ids) == ["TCGA-AB-1234", "TCGA-AB-5678"]

    def test_no_truncation(self):
        from oncocohort_pipeline.ingest import normalize_barcode

        assert list(normalize_barcode(["s1"])) == ["S1"]


class TestLoadFeatureMatrix:
    """Test feature table loading."""

    def test_sample_rows(self, tmp_path):
        from oncocohort_pipeline.ingest import load_feature_matrix

        path = tmp_path / "scores.csv"
        path.write_text("id,IFNG,TNF\nTCGA-AA-0001-01A,1.0,2.0\nTCGA-AA-0002-01A,3.0,4.0\n")

        df = load_feature_matrix(path, sample_col="id", barcode_length=12)
        assert list(df.index) == ["TCGA-AA-0001", "TCGA-AA-0002"]
        assert list(df.columns) == ["IFNG", "TNF"]
        assert df.loc["TCGA-AA-0002", "TNF"] == 4.0

    def test_transposed(self, tmp_path):
        from oncocohort_pipeline.ingest import load_feature_matrix

        path = tmp_path / "expr.tsv"
        path.write_text("gene\ts1\ts2\ts3\nCD8A\t1\t2\t3\nGZMB\t4\t5\t6\n")

        df = load_feature_matrix(path, transpose=True)
        assert df.shape == (3, 2)
        assert df.loc["S3", "GZMB"] == 6

    def test_duplicates_collapsed(self, tmp_path):
        from oncocohort_pipeline.ingest import load_feature_matrix

        path = tmp_path / "scores.csv"
        path.write_text(
            "sample,f\nTCGA-AA-0001-01A,1.0\nTCGA-AA-0001-11A,3.0\nTCGA-AA-0002-01A,5.0\n"
        )
        df = load_feature_matrix(path, barcode_length=12)
        assert df.index.is_unique
        assert df.loc["TCGA-AA-0001", "f"] == pytest.approx(2.0)

    def test_missing_sample_column(self, tmp_path):
        from oncocohort_pipeline.ingest import load_feature_matrix

        path = tmp_path / "scores.csv"
        path.write_text("a,b\n1,2\n")
        with pytest.raises(KeyError):
            load_feature_matrix(path, sample_col="sample")


class TestLoadGroupAssignment:
    """Test group table loading."""

    def test_load(self, tmp_path):
        from oncocohort_pipeline.ingest import load_group_assignment

        path = tmp_path / "clusters.csv"
        path.write_text("sample,cluster\nS1,1\nS2,2\nS3,\nS1,2\n")

        groups = load_group_assignment(path, group_col="cluster")
        assert groups.to_dict() == {"S1": "1", "S2": "2"}

    def test_missing_columns(self, tmp_path):
        from oncocohort_pipeline.ingest import load_group_assignment

        path = tmp_path / "clusters.csv"
        path.write_text("sample,label\nS1,a\n")
        with pytest.raises(KeyError):
            load_group_assignment(path)


class TestMutationCalls:
    """Test MAF loading and the binary mutation matrix."""

    def test_nonsilent_filter(self, tmp_path, mutation_calls):
        from oncocohort_pipeline.ingest import load_mutation_calls

        path = tmp_path / "cohort.maf"
        mutation_calls.to_csv(path, sep="\t", index=False)

        calls = load_mutation_calls(path, barcode_length=12)
        assert list(calls.columns) == ["sample", "gene", "classification"]
        assert len(calls) == 5
        assert "TCGA-AA-0003" not in set(calls["sample"])

    def test_keep_silent(self, tmp_path, mutation_calls):
        from oncocohort_pipeline.ingest import load_mutation_calls

        path = tmp_path / "cohort.maf"
        mutation_calls.to_csv(path, sep="\t", index=False)

        calls = load_mutation_calls(path, nonsilent_only=False)
        assert len(calls) == 6

    def test_classification_required_for_filter(self, tmp_path, mutation_calls):
        from oncocohort_pipeline.ingest import load_mutation_calls

        path = tmp_path / "cohort.maf"
        mutation_calls.drop(columns="Variant_Classification").to_csv(path, sep="\t", index=False)
        with pytest.raises(KeyError):
            load_mutation_calls(path)

    def test_mutation_matrix(self):
        from oncocohort_pipeline.ingest import mutation_matrix

        calls = pd.DataFrame({
            "sample": ["S1", "S1", "S1", "S2"],
            "gene": ["TP53", "TP53", "KRAS", "APC"],
        })
        matrix = mutation_matrix(calls, samples=["S1", "S2", "S3"], genes=["TP53", "KRAS", "EGFR"])

        assert matrix.shape == (3, 3)
        assert matrix.loc["S1", "TP53"] == 1
        assert matrix.loc["S3"].sum() == 0
        assert matrix["EGFR"].sum() == 0
        assert matrix.values.max() == 1
        assert matrix.dtypes.apply(lambda d: np.issubdtype(d, np.integer)).all()
