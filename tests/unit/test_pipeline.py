"""Tests for the study pipeline."""

import pytest
import pandas as pd


@pytest.fixture
def study_files(tmp_path, mutation_calls, sample_scores, sample_groups):
    """Mutation calls, a feature table and two group tables on disk."""
    maf = tmp_path / "cohort.maf"
    mutation_calls.to_csv(maf, sep="\t", index=False)

    clusters = tmp_path / "clusters.csv"
    clusters.write_text(
        "sample,cluster\n"
        "TCGA-AA-0001-01A,C1\nTCGA-AA-0002-01A,C1\n"
        "TCGA-AA-0003-01A,C2\nTCGA-AA-0004-01A,C2\n"
    )

    scores = tmp_path / "scores.csv"
    sample_scores.to_csv(scores, index_label="sample")
    groups = tmp_path / "groups.csv"
    sample_groups.rename("group").to_csv(groups, index_label="sample")

    return {"maf": maf, "clusters": clusters, "scores": scores, "groups": groups}


def _config(tmp_path, study_files, **kwargs):
    from oncocohort_pipeline import Config

    return Config.from_dict({
        "output_dir": str(tmp_path / "results"),
        "barcode_length": 12,
        "comparison": {"multiple_testing_correction": "fdr_bh"},
        "analyses": [
            {
                "name": "mutations",
                "kind": "mutations",
                "features": str(study_files["maf"]),
                "groups": str(study_files["clusters"]),
                "group_col": "cluster",
            },
            {
                "name": "burden",
                "kind": "burden",
                "features": str(study_files["maf"]),
                "groups": str(study_files["clusters"]),
                "group_col": "cluster",
            },
            {
                "name": "scores",
                "features": str(study_files["scores"]),
                "groups": str(study_files["groups"]),
                "comparison": {"top_n": 1, "required_features": ["feat_5"]},
            },
        ],
        **kwargs,
    })


class TestStudyPipeline:
    """Test end-to-end analysis runs."""

    def test_run_all(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        results = StudyPipeline(_config(tmp_path, study_files)).run()

        assert [r.name for r in results] == ["mutations", "burden", "scores"]
        assert all(r.success for r in results)

        muts = results[0]
        assert muts.comparison.test_name == "FisherExactTest"
        assert muts.metrics["groups"] == {"C1": 2, "C2": 2}
        assert muts.metrics["n_samples"] == 4
        assert {r.feature for r in muts.comparison.records} == {"TP53", "KRAS", "APC"}
        assert muts.output_paths["forest_plot"].exists()
        assert muts.output_paths["frequency_plot"].exists()
        freq = pd.read_csv(muts.output_paths["frequencies"], index_col="gene")
        assert freq.loc["TP53", "C1"] == 1.0

        burden = results[1]
        assert burden.comparison.test_name == "KruskalWallisTest"

        scores = results[2]
        assert scores.comparison.test_name == "WilcoxonRankSumTest"
        assert [r.feature for r in scores.comparison.top][-1] == "feat_5"
        assert len(scores.comparison.top) == 2
        assert scores.metrics["n_significant"] >= 1
        assert (tmp_path / "results" / "scores" / "scores_top.csv").exists()
        assert "forest_plot" not in scores.output_paths

    def test_failed_analysis_does_not_stop_others(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        config = _config(tmp_path, study_files)
        config.analyses[0].features = tmp_path / "missing.maf"

        results = StudyPipeline(config).run()

        assert not results[0].success
        assert "missing.maf" in results[0].error
        assert results[1].success
        assert results[2].success

    def test_malformed_table_does_not_stop_others(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        malformed = tmp_path / "malformed.csv"
        malformed.write_text("sample,feat_0\nS00,1.0\nS01,2.0,3.0,4.0\n")
        config = _config(tmp_path, study_files)
        config.analyses[2].features = malformed

        results = StudyPipeline(config).run()

        assert results[0].success
        assert results[1].success
        assert not results[2].success
        assert results[2].error

    def test_fail_fast_on_malformed_table(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        malformed = tmp_path / "malformed.csv"
        malformed.write_text("sample,feat_0\nS00,1.0\nS01,2.0,3.0,4.0\n")
        config = _config(tmp_path, study_files)
        config.analyses[0:2] = []
        config.analyses[0].features = malformed

        with pytest.raises(pd.errors.ParserError):
            StudyPipeline(config).run(fail_fast=True)

    def test_fail_fast(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        config = _config(tmp_path, study_files)
        config.analyses[0].features = tmp_path / "missing.maf"

        with pytest.raises(FileNotFoundError):
            StudyPipeline(config).run(fail_fast=True)

    def test_no_output_dir(self, tmp_path, study_files):
        from oncocohort_pipeline import create_pipeline

        config = _config(tmp_path, study_files)
        config.output_dir = None

        results = create_pipeline(config).run(analyses=config.analyses[2:])
        assert results[0].success
        assert results[0].output_paths == {}
        assert not (tmp_path / "results").exists()

    def test_without_plots(self, tmp_path, study_files):
        from oncocohort_pipeline import StudyPipeline

        config = _config(tmp_path, study_files, write_plots=False)
        result = StudyPipeline(config).run_analysis(config.analyses[0])

        assert "pvalue_plot" not in result.output_paths
        assert result.output_paths["all"].exists()
