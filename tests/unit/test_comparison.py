"""Tests for the group comparison pipeline."""

import math

import pytest
import numpy as np
import pandas as pd
from scipy import stats


def _binary_features():
    """8 samples, 4 per group; geneInf perfectly separates the groups."""
    samples = [f"s{i}" for i in range(8)]
    features = pd.DataFrame({
        "geneInf": [1, 1, 1, 1, 0, 0, 0, 0],
        "geneOk": [1, 1, 0, 0, 1, 0, 0, 0],
    }, index=samples)
    groups = pd.Series(["G1"] * 4 + ["G2"] * 4, index=samples)
    return features, groups


class TestScenarios:
    """Reference scenarios for the comparison contract."""

    def test_fisher_single_gene(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features = {"s1": {"GeneX": 1}, "s2": {"GeneX": 0}, "s3": {"GeneX": 1}, "s4": {"GeneX": 0}}
        groups = {"s1": "G1", "s2": "G1", "s3": "G2", "s4": "G2"}

        result = compare_groups(features, groups, ComparisonConfig(test_kind="fisher"))

        assert len(result.records) == 1
        record = result.records[0]
        assert record.feature == "GeneX"
        _, expected = stats.fisher_exact([[1, 1], [1, 1]])
        assert record.pvalue == pytest.approx(expected)
        assert record.group_summary == {"G1": 0.5, "G2": 0.5}
        assert record.group_sizes == {"G1": 2, "G2": 2}

    def test_no_correction_keeps_raw_pvalues(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        np.random.seed(0)
        samples = [f"s{i}" for i in range(30)]
        features = pd.DataFrame(
            np.random.randn(30, 100),
            index=samples,
            columns=[f"f{i:03d}" for i in range(100)],
        )
        groups = pd.Series(["A"] * 15 + ["B"] * 15, index=samples)

        result = compare_groups(features, groups, ComparisonConfig(alpha=0.05))

        df = result.to_dataframe()
        assert len(df) == 100
        np.testing.assert_array_equal(df["adjusted_pvalue"].values, df["pvalue"].values)

    def test_top_n_larger_than_feature_count(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features = sample_scores.iloc[:, :3]
        result = compare_groups(features, sample_groups, ComparisonConfig(top_n=5))

        assert result.top == result.ranked
        assert len(result.top) == 3

    def test_constant_feature_never_significant(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(10)]
        features = pd.DataFrame({"flat": [2.0] * 10}, index=samples)
        groups = pd.Series(["A"] * 5 + ["B"] * 5, index=samples)

        for kind in ("wilcoxon", "kruskal"):
            result = compare_groups(features, groups, ComparisonConfig(test_kind=kind))
            record = result.get("flat")
            assert record.test_failed or record.pvalue == pytest.approx(1.0)
            assert record not in result.significant()

    def test_kruskal_constant_feature_is_flagged(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(10)]
        features = pd.DataFrame({
            "flat": [2.0] * 10,
            "shifted": [0, 1, 2, 3, 4, 10, 11, 12, 13, 14],
        }, index=samples)
        groups = pd.Series(["A"] * 5 + ["B"] * 5, index=samples)

        result = compare_groups(features, groups, ComparisonConfig(test_kind="kruskal"))

        flat = result.get("flat")
        assert flat.test_failed
        assert flat.pvalue is None
        assert flat.rank is None
        assert flat.tier == "failed"
        assert [r.feature for r in result.ranked] == ["shifted"]


class TestRankingAndTopN:
    """Ordering, truncation and required features."""

    def _graded(self):
        # feature k has shift 3 - 0.3k, so p-values increase with k
        np.random.seed(1)
        samples = [f"s{i}" for i in range(40)]
        data = {}
        for k in range(10):
            col = np.random.randn(40)
            col[:20] += 3 - 0.3 * k
            data[f"f{k}"] = col
        groups = pd.Series(["A"] * 20 + ["B"] * 20, index=samples)
        return pd.DataFrame(data, index=samples), groups

    def test_ranked_by_pvalue_then_name(self):
        from oncocohort_pipeline import compare_groups

        features, groups = self._graded()
        result = compare_groups(features, groups)
        keys = [(r.pvalue, r.feature) for r in result.ranked]
        assert keys == sorted(keys)
        assert [r.rank for r in result.ranked] == list(range(1, 11))

    def test_ties_broken_by_feature_name(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(8)]
        col = [1, 2, 3, 4, 5, 6, 7, 8]
        features = pd.DataFrame({"zeta": col, "alpha": col, "mid": col}, index=samples)
        groups = pd.Series(["A"] * 4 + ["B"] * 4, index=samples)

        result = compare_groups(features, groups, ComparisonConfig(test_kind="wilcoxon"))
        assert [r.feature for r in result.ranked] == ["alpha", "mid", "zeta"]

    def test_required_feature_appended_once(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = self._graded()
        full = compare_groups(features, groups)
        last = full.ranked[-1].feature

        config = ComparisonConfig(top_n=3, required_features=(last, full.ranked[0].feature))
        result = compare_groups(features, groups, config)

        names = [r.feature for r in result.top]
        assert len(names) == 4
        assert names.count(last) == 1
        assert names[:3] == [r.feature for r in full.ranked[:3]]
        assert result.top[-1] == result.get(last)

    def test_top_n_is_idempotent(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups
        from oncocohort_pipeline.differential import apply_top_n

        features, groups = self._graded()
        config = ComparisonConfig(top_n=3, required_features=("f9",))
        result = compare_groups(features, groups, config)

        again, missing = apply_top_n(result.top, config.top_n, config.required_features)
        assert again == result.top
        assert missing == []

    def test_missing_required_feature_reported(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = self._graded()
        result = compare_groups(
            features, groups, ComparisonConfig(top_n=2, required_features=("not_a_gene",))
        )
        assert len(result.top) == 2
        assert result.missing_required_features == ["not_a_gene"]

    def test_failed_required_feature_left_out_of_top(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(10)]
        features = pd.DataFrame({
            "flat": [2.0] * 10,
            "shifted": [0, 1, 2, 3, 4, 10, 11, 12, 13, 14],
        }, index=samples)
        groups = pd.Series(["A"] * 5 + ["B"] * 5, index=samples)

        result = compare_groups(
            features, groups,
            ComparisonConfig(test_kind="kruskal", top_n=1, required_features=("flat",)),
        )

        assert [r.feature for r in result.top] == ["shifted"]
        assert result.missing_required_features == ["flat"]
        assert result.get("flat").test_failed

    def test_deterministic(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = self._graded()
        config = ComparisonConfig(multiple_testing_correction="fdr_bh", top_n=4)
        first = compare_groups(features, groups, config)
        second = compare_groups(features.sample(frac=1, axis=1, random_state=3), groups, config)

        pd.testing.assert_frame_equal(first.to_dataframe(), second.to_dataframe())
        assert first.top == second.top

    def test_parallel_matches_serial(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = self._graded()
        serial = compare_groups(features, groups, ComparisonConfig(multiple_testing_correction="fdr_bh"))
        parallel = compare_groups(
            features, groups, ComparisonConfig(multiple_testing_correction="fdr_bh", n_workers=4)
        )
        pd.testing.assert_frame_equal(serial.to_dataframe(), parallel.to_dataframe())


class TestCorrection:
    """Batch p-value correction inside the pipeline."""

    def test_bh_adjusted_not_below_raw(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        result = compare_groups(
            sample_scores, sample_groups,
            ComparisonConfig(multiple_testing_correction="fdr_bh"),
        )
        for r in result.ranked:
            assert r.adjusted_pvalue >= r.pvalue

    def test_correction_sees_all_features(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        seen = []

        def corrector(pvalues):
            seen.append(len(pvalues))
            return np.minimum(np.asarray(pvalues) * len(pvalues), 1.0)

        compare_groups(sample_scores, sample_groups, ComparisonConfig(), corrector=corrector)
        assert seen == [sample_scores.shape[1]]

    def test_failed_features_left_out_of_correction(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(10)]
        features = pd.DataFrame({
            "flat": [1.0] * 10,
            "a": [0, 1, 2, 3, 4, 10, 11, 12, 13, 14],
            "b": [0, 11, 2, 13, 4, 10, 1, 12, 3, 14],
        }, index=samples)
        groups = pd.Series(["A"] * 5 + ["B"] * 5, index=samples)

        result = compare_groups(
            features, groups,
            ComparisonConfig(test_kind="kruskal", multiple_testing_correction="bonferroni"),
        )
        a = result.get("a")
        assert a.adjusted_pvalue == pytest.approx(min(a.pvalue * 2, 1.0))
        assert result.get("flat").adjusted_pvalue is None

    def test_raw_significance_basis(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0, 3.0, 4.0], "g": [4.0, 3.0, 2.0, 1.0]},
                                index=["s1", "s2", "s3", "s4"])
        groups = {"s1": "A", "s2": "A", "s3": "B", "s4": "B"}

        def test(partitions):
            return 0.0, 0.03

        def corrector(pvalues):
            return np.minimum(np.asarray(pvalues) * 10, 1.0)

        raw = compare_groups(features, groups, ComparisonConfig(significance_basis="raw"),
                             test=test, corrector=corrector)
        adjusted = compare_groups(features, groups, ComparisonConfig(),
                                  test=test, corrector=corrector)

        assert [r.tier for r in raw.ranked] == ["*", "*"]
        assert [r.tier for r in adjusted.ranked] == ["ns", "ns"]
        assert len(raw.significant()) == 2
        assert adjusted.significant() == []
        assert raw.get("f").adjusted_pvalue == pytest.approx(0.3)


class TestEffectExclusion:
    """Non-finite effect sizes."""

    def test_infinite_odds_ratio_kept_by_default(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = _binary_features()
        result = compare_groups(features, groups, ComparisonConfig(test_kind="fisher"))
        assert math.isinf(result.get("geneInf").effect_size)

    def test_infinite_odds_ratio_dropped(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        features, groups = _binary_features()
        result = compare_groups(
            features, groups,
            ComparisonConfig(test_kind="fisher", exclude_infinite_effect=True, top_n=5,
                             required_features=("geneInf",)),
        )
        assert [r.feature for r in result.records] == ["geneOk"]
        assert result.excluded_features == ["geneInf"]
        assert all(math.isfinite(r.effect_size) for r in result.records)
        assert [r.feature for r in result.top] == ["geneOk"]
        assert result.get("geneOk").effect_size == pytest.approx(3.0)


class TestSampleMatching:
    """Intersection of feature and group samples."""

    def test_unmatched_samples_excluded(self):
        from oncocohort_pipeline import compare_groups

        features = pd.DataFrame(
            {"f": [1.0, 2.0, 3.0, 4.0, 999.0]},
            index=["s1", "s2", "s3", "s4", "only_features"],
        )
        groups = pd.Series(
            ["A", "A", "B", "B", "B"], index=["s1", "s2", "s3", "s4", "only_groups"]
        )
        seen = []

        def test(partitions):
            seen.append({g: list(v) for g, v in partitions.items()})
            return 0.0, 0.5

        result = compare_groups(features, groups, test=test)

        assert seen == [{"A": [1.0, 2.0], "B": [3.0, 4.0]}]
        assert result.unmatched_feature_samples == ["only_features"]
        assert result.unmatched_group_samples == ["only_groups"]
        assert result.group_sizes == {"A": 2, "B": 2}

    def test_small_groups_dropped(self):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        samples = [f"s{i}" for i in range(7)]
        features = pd.DataFrame({"f": range(7)}, index=samples, dtype=float)
        groups = pd.Series(["A", "A", "A", "B", "B", "B", "C"], index=samples)

        result = compare_groups(
            features, groups, ComparisonConfig(test_kind="kruskal", min_group_size=2)
        )
        assert set(result.group_sizes) == {"A", "B"}

    def test_missing_values_dropped_per_feature(self):
        from oncocohort_pipeline import compare_groups

        samples = ["s1", "s2", "s3", "s4"]
        features = pd.DataFrame({"f": [1.0, np.nan, 3.0, 4.0]}, index=samples)
        groups = pd.Series(["A", "A", "B", "B"], index=samples)

        result = compare_groups(features, groups)
        assert result.get("f").group_sizes == {"A": 1, "B": 2}


class TestErrors:
    """Input and configuration errors."""

    def test_single_group(self):
        from oncocohort_pipeline import InsufficientGroupsError, compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0]}, index=["s1", "s2"])
        with pytest.raises(InsufficientGroupsError):
            compare_groups(features, {"s1": "A", "s2": "A"})

    def test_no_overlap(self):
        from oncocohort_pipeline import InsufficientGroupsError, compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0]}, index=["s1", "s2"])
        with pytest.raises(InsufficientGroupsError):
            compare_groups(features, {"x1": "A", "x2": "B"})

    def test_empty_matrix(self):
        from oncocohort_pipeline import EmptyFeatureMatrixError, compare_groups

        with pytest.raises(EmptyFeatureMatrixError):
            compare_groups(pd.DataFrame(index=["s1", "s2"]), {"s1": "A", "s2": "B"})

    def test_all_missing_features(self):
        from oncocohort_pipeline import EmptyFeatureMatrixError, compare_groups

        features = pd.DataFrame({"f": [np.nan, np.nan]}, index=["s1", "s2"])
        with pytest.raises(EmptyFeatureMatrixError):
            compare_groups(features, {"s1": "A", "s2": "B"})

    def test_duplicate_samples(self):
        from oncocohort_pipeline import DuplicateIdentifierError, compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0, 3.0]}, index=["s1", "s1", "s2"])
        with pytest.raises(DuplicateIdentifierError):
            compare_groups(features, {"s1": "A", "s2": "B"})

    def test_two_group_test_with_three_groups(self):
        from oncocohort_pipeline import ComparisonConfig, ConfigurationError, compare_groups

        samples = [f"s{i}" for i in range(6)]
        features = pd.DataFrame({"f": range(6)}, index=samples, dtype=float)
        groups = pd.Series(["A", "A", "B", "B", "C", "C"], index=samples)
        with pytest.raises(ConfigurationError):
            compare_groups(features, groups, ComparisonConfig(test_kind="wilcoxon"))

    def test_per_feature_failure_does_not_abort(self):
        from oncocohort_pipeline import compare_groups

        samples = ["s1", "s2", "s3", "s4"]
        features = pd.DataFrame({
            "bad": [-1.0, 1.0, 2.0, 3.0],
            "good": [1.0, 2.0, 3.0, 4.0],
        }, index=samples)
        groups = pd.Series(["A", "A", "B", "B"], index=samples)

        def test(partitions):
            if any((v < 0).any() for v in partitions.values()):
                raise ValueError("negative value")
            return 1.0, 0.01

        result = compare_groups(features, groups, test=test)
        bad = result.get("bad")
        assert bad.test_failed
        assert "negative value" in bad.error
        assert result.get("good").rank == 1

    def test_nan_pvalue_is_failure(self):
        from oncocohort_pipeline import compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0, 3.0, 4.0]}, index=["s1", "s2", "s3", "s4"])
        groups = {"s1": "A", "s2": "A", "s3": "B", "s4": "B"}
        result = compare_groups(features, groups, test=lambda parts: (0.0, float("nan")))
        assert result.records[0].test_failed

    def test_non_numeric_column_is_flagged(self):
        from oncocohort_pipeline import compare_groups

        features = pd.DataFrame(
            {"good": [1.0, 2.0, 3.0, 4.0], "stage": ["I", "II", "I", "III"]},
            index=["s1", "s2", "s3", "s4"],
        )
        groups = {"s1": "A", "s2": "A", "s3": "B", "s4": "B"}

        result = compare_groups(features, groups)

        stage = result.get("stage")
        assert stage.test_failed
        assert stage.tier == "failed"
        assert result.get("good").rank == 1

    def test_unexpected_exception_is_flagged(self):
        from oncocohort_pipeline import compare_groups

        features = pd.DataFrame({"f": [1.0, 2.0, 3.0, 4.0], "g": [4.0, 3.0, 2.0, 1.0]},
                                index=["s1", "s2", "s3", "s4"])
        groups = {"s1": "A", "s2": "A", "s3": "B", "s4": "B"}

        def test(partitions):
            raise RuntimeError("boom")

        result = compare_groups(features, groups, test=test)

        assert all(r.test_failed for r in result.records)
        assert "RuntimeError" in result.get("f").error
        assert result.ranked == []


class TestResultTables:
    """DataFrame views of results."""

    def test_to_dataframe_columns(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        result = compare_groups(
            sample_scores, sample_groups, ComparisonConfig(multiple_testing_correction="fdr_bh")
        )
        df = result.to_dataframe()
        for col in ("rank", "summary_A", "summary_B", "n_A", "n_B", "pvalue",
                    "adjusted_pvalue", "effect_size", "tier", "test_failed"):
            assert col in df.columns
        assert df.index[0] == "feat_0"
        assert df.loc["feat_0", "tier"] == "***"

    def test_significant_subset(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_groups

        result = compare_groups(
            sample_scores, sample_groups, ComparisonConfig(multiple_testing_correction="fdr_bh")
        )
        sig = result.significant_dataframe()
        assert "feat_0" in sig.index
        assert (sig["adjusted_pvalue"] < 0.05).all()

    def test_compare_many(self, sample_scores, sample_groups):
        from oncocohort_pipeline import ComparisonConfig, compare_many

        results = compare_many([
            (sample_scores, sample_groups, None),
            (sample_scores.iloc[:, :2], sample_groups, ComparisonConfig(test_kind="ttest")),
        ])
        assert len(results) == 2
        assert len(results[1].records) == 2
        assert results[1].test_name == "WelchTTest"
