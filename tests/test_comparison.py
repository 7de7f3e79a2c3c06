"""Tests for eval_harness.comparison."""

import pytest
from scipy import stats

from eval_harness.aggregation import build_result
from eval_harness.comparison import (
    anova,
    bootstrap_ci,
    compare,
    confidence_intervals,
    critical_value,
    effect_size,
    format_report,
    format_result,
    log_report,
    pairwise_tests,
    result_summary,
)
from eval_harness.errors import InsufficientData
from eval_harness.export import ExportRecord
from eval_harness.models import AggregatedMetric, Result


def make_result(name, values, metric="score"):
    return build_result(name, "ds", [{metric: v} for v in values], duration_ms=1)


class TestCompare:

    def test_rankings(self, result_v1, result_v2, result_v3):
        """v2 dominates v1, which dominates v3."""
        report = compare([result_v1, result_v2, result_v3])
        names = [result.name for result, _ in report.rankings]
        assert names == ["model_v2", "model_v1", "model_v3"]
        assert report.best.name == "model_v2"

    def test_best_scores_one(self, result_v1, result_v2):
        """The result holding every metric maximum has normalized score 1."""
        report = compare([result_v1, result_v2])
        best, score = report.rankings[0]
        assert best.name == "model_v2"
        assert score == pytest.approx(1.0)

    def test_scores_descending(self, result_v1, result_v2, result_v3):
        report = compare([result_v3, result_v1, result_v2])
        scores = [score for _, score in report.rankings]
        assert scores == sorted(scores, reverse=True)

    def test_metric_winners(self, result_v1, result_v2, result_v3):
        report = compare([result_v1, result_v2, result_v3])
        assert set(report.metric_comparisons) == {"accuracy", "f1"}
        assert report.metric_comparisons["accuracy"].winner == "model_v2"
        assert report.metric_comparisons["f1"].winner == "model_v2"
        assert len(report.metric_comparisons["f1"].values) == 3

    def test_tie_broken_by_name(self):
        b = make_result("b", [0.5, 0.7])
        a = make_result("a", [0.5, 0.7])
        report = compare([b, a])
        assert [result.name for result, _ in report.rankings] == ["a", "b"]
        assert report.best.name == "a"

    def test_single_result(self, result_v1):
        report = compare([result_v1])
        assert report.best.name == "model_v1"
        assert report.statistical_tests == {}
        assert report.note is not None

    def test_empty(self):
        with pytest.raises(InsufficientData):
            compare([])

    def test_missing_metric_counts_for_own_metrics_only(self):
        """A result is scored over the metrics it actually has."""
        a = build_result("a", "ds", [{"x": 1.0}, {"x": 1.0}], duration_ms=1)
        b = build_result("b", "ds", [{"x": 0.5, "y": 1.0}, {"x": 0.5, "y": 1.0}], duration_ms=1)
        report = compare([a, b])
        scores = {result.name: score for result, score in report.rankings}
        assert scores["a"] == pytest.approx(1.0)
        assert scores["b"] == pytest.approx(0.75)


class TestPairwiseTests:

    def test_consecutive_pairs(self, result_v1, result_v2, result_v3):
        tests = pairwise_tests([result_v1, result_v2, result_v3])
        assert set(tests) == {"accuracy", "f1"}
        assert [t.pair for t in tests["accuracy"]] == [
            ("model_v1", "model_v2"),
            ("model_v2", "model_v3"),
        ]

    def test_uses_raw_values(self, result_v1, result_v2):
        """The statistic matches scipy's Welch test on the per-sample values."""
        test = pairwise_tests([result_v1, result_v2])["accuracy"][0]
        expected = stats.ttest_ind(
            result_v1.metric_values("accuracy"),
            result_v2.metric_values("accuracy"),
            equal_var=False,
        )
        assert test.method == "welch"
        assert test.t_statistic == pytest.approx(float(expected.statistic))
        assert test.p_value == pytest.approx(float(expected.pvalue))
        assert test.t_statistic < 0
        assert test.significant == (test.p_value < 0.05)

    def test_zero_variance_equal_means(self):
        a = make_result("a", [0.8, 0.8])
        b = make_result("b", [0.8, 0.8])
        test = pairwise_tests([a, b])["score"][0]
        assert test.t_statistic == 0.0
        assert test.p_value == 1.0
        assert not test.significant

    def test_zero_variance_different_means(self):
        a = make_result("a", [0.9, 0.9])
        b = make_result("b", [0.1, 0.1])
        test = pairwise_tests([a, b])["score"][0]
        assert test.t_statistic == float("inf")
        assert test.significant

    def test_too_few_values_skipped(self):
        a = make_result("a", [0.5])
        b = make_result("b", [0.4, 0.6])
        assert pairwise_tests([a, b])["score"] == []

    def test_falls_back_to_aggregates(self, result_v1, result_v2):
        """Results loaded without records are tested from their aggregates."""
        restored_v1 = ExportRecord.from_result(result_v1).to_result()
        restored_v2 = ExportRecord.from_result(result_v2).to_result()
        from_stats = pairwise_tests([restored_v1, restored_v2])["accuracy"][0]
        from_records = pairwise_tests([result_v1, result_v2])["accuracy"][0]
        assert from_stats.method == "welch_from_stats"
        assert from_stats.t_statistic == pytest.approx(from_records.t_statistic)


class TestConfidenceIntervals:

    def test_contains_mean(self, result_v1):
        intervals = confidence_intervals(result_v1)
        for metric, interval in intervals.items():
            assert interval.lower <= interval.mean <= interval.upper
            assert interval.mean == result_v1.aggregated[metric].mean
            assert interval.confidence == 0.95

    def test_custom_level(self, result_v1):
        """Higher confidence gives a wider interval."""
        narrow = confidence_intervals(result_v1, level=0.90)["accuracy"]
        wide = confidence_intervals(result_v1, level=0.99)["accuracy"]
        assert wide.confidence == 0.99
        assert (wide.upper - wide.lower) > (narrow.upper - narrow.lower)

    def test_small_sample_uses_t(self, result_v1):
        """With n=3 the margin uses t(df=2), wider than the normal quantile."""
        interval = confidence_intervals(result_v1)["accuracy"]
        values = result_v1.metric_values("accuracy")
        sem = stats.sem(values)
        assert interval.upper - interval.mean == pytest.approx(stats.t.ppf(0.975, df=2) * sem)

    def test_single_sample(self):
        interval = confidence_intervals(make_result("a", [0.4]))["score"]
        assert interval.lower == interval.upper == interval.mean == 0.4

    def test_critical_value(self):
        assert critical_value(0.95, 100) == pytest.approx(1.959964, abs=1e-5)
        assert critical_value(0.95, 5) == pytest.approx(2.776445, abs=1e-5)
        with pytest.raises(ValueError):
            critical_value(1.5, 10)


class TestEffectSize:

    def test_sign(self, result_v1, result_v2):
        assert effect_size(result_v1, result_v2, "accuracy") < 0
        assert effect_size(result_v2, result_v1, "accuracy") > 0

    def test_antisymmetric(self, result_v1, result_v3):
        d = effect_size(result_v1, result_v3, "f1")
        assert effect_size(result_v3, result_v1, "f1") == pytest.approx(-d)

    def test_missing_metric(self, result_v1, result_v2):
        assert effect_size(result_v1, result_v2, "missing") is None

    def test_zero_pooled_std(self):
        a = make_result("a", [0.5, 0.5])
        b = make_result("b", [0.7, 0.7])
        assert effect_size(a, b, "score") == 0.0


class TestBootstrap:

    VALUES = [0.8, 0.85, 0.82, 0.88, 0.83, 0.9, 0.79, 0.86]

    def test_envelope(self):
        interval = bootstrap_ci(self.VALUES, seed=1)
        assert min(self.VALUES) <= interval.lower <= interval.upper <= max(self.VALUES)
        assert interval.lower <= interval.mean <= interval.upper
        assert interval.mean == pytest.approx(sum(self.VALUES) / len(self.VALUES))
        assert interval.iterations == 1000

    def test_seed_reproducible(self):
        first = bootstrap_ci(self.VALUES, iterations=500, seed=42)
        second = bootstrap_ci(self.VALUES, iterations=500, seed=42)
        assert first == second

    def test_custom_parameters(self):
        interval = bootstrap_ci(self.VALUES, iterations=200, level=0.9, seed=0)
        assert interval.iterations == 200
        assert interval.confidence == 0.9
        assert interval.lower <= interval.upper

    def test_constant_values(self):
        interval = bootstrap_ci([0.5] * 4, seed=3)
        assert interval.lower == interval.upper == interval.mean == 0.5

    def test_empty(self):
        interval = bootstrap_ci([])
        assert (interval.mean, interval.lower, interval.upper) == (0.0, 0.0, 0.0)

    def test_single_iteration(self):
        interval = bootstrap_ci(self.VALUES, iterations=1, seed=0)
        assert interval.lower == interval.upper

    def test_large_input(self):
        """Ten thousand values resampled many times stay reproducible."""
        values = [(i % 97) / 97 for i in range(10_000)]
        first = bootstrap_ci(values, iterations=2000, seed=5)
        second = bootstrap_ci(values, iterations=2000, seed=5)
        assert first == second
        assert first.lower <= first.mean <= first.upper
        assert first.upper - first.lower < 0.05

    def test_invalid_iterations(self):
        with pytest.raises(ValueError):
            bootstrap_ci(self.VALUES, iterations=0)


class TestAnova:

    def test_degrees_of_freedom(self, result_v1, result_v2, result_v3):
        result = anova([result_v1, result_v2, result_v3], "accuracy")
        assert result.groups == 3
        assert result.df_between == 2
        assert result.df_within == 6
        assert result.f_statistic >= 0
        assert 0.0 <= result.p_value <= 1.0
        assert not result.insufficient_data

    def test_distinct_groups_significant(self, result_v1, result_v2, result_v3):
        result = anova([result_v1, result_v2, result_v3], "accuracy")
        assert result.significant
        assert result.p_value < 0.05

    def test_matches_scipy(self, result_v1, result_v2, result_v3):
        result = anova([result_v1, result_v2, result_v3], "f1")
        expected = stats.f_oneway(
            result_v1.metric_values("f1"),
            result_v2.metric_values("f1"),
            result_v3.metric_values("f1"),
        )
        assert result.f_statistic == pytest.approx(float(expected.statistic))
        assert result.p_value == pytest.approx(float(expected.pvalue))

    def test_equal_means(self):
        groups = [make_result(name, [0.5, 0.6, 0.7]) for name in ("a", "b", "c")]
        result = anova(groups, "score")
        assert result.f_statistic == pytest.approx(0.0, abs=1e-9)
        assert not result.significant

    def test_insufficient_groups(self, result_v1):
        result = anova([result_v1], "accuracy")
        assert result.insufficient_data
        assert result.f_statistic is None
        assert result.groups == 1

    def test_metric_absent(self, result_v1, result_v2):
        assert anova([result_v1, result_v2], "missing").insufficient_data

    def test_zero_count_group_skipped(self, result_v1, result_v2):
        """A group with no samples is left out instead of dividing by zero."""
        empty = Result(name="empty", dataset="ds", records=(),
                       aggregated={"accuracy": AggregatedMetric(0.0, 0.0, 0.0, 0.0, 0.0, 0)},
                       samples=0, duration_ms=0)
        with_empty = anova([result_v1, empty, result_v2], "accuracy")
        without = anova([result_v1, result_v2], "accuracy")
        assert with_empty.groups == 2
        assert with_empty.f_statistic == pytest.approx(without.f_statistic)

    def test_single_sample_groups(self):
        """With n=1 everywhere there is no within-group variance to test against."""
        groups = [make_result("a", [0.2]), make_result("b", [0.9]), make_result("c", [0.5])]
        result = anova(groups, "score")
        assert result.insufficient_data
        assert not result.significant
        assert result.f_statistic is None
        assert result.df_within == 0


class TestReport:

    def test_format_report(self, result_v1, result_v2, result_v3):
        text = format_report(compare([result_v1, result_v2, result_v3]))
        assert "Comparison of 3 evaluations" in text
        assert "Best: model_v2" in text
        assert "Rankings:" in text
        assert "Metric Comparisons:" in text
        assert "Statistical Tests:" in text
        assert text.index("1. model_v2") < text.index("2. model_v1")

    def test_format_single(self, result_v1):
        text = format_report(compare([result_v1]))
        assert "Need at least 2 results" in text

    def test_log_report(self, result_v1, result_v2, caplog):
        caplog.set_level("INFO", logger="eval_harness.comparison")
        log_report(compare([result_v1, result_v2]))
        assert "EVALUATION COMPARISON" in caplog.text
        assert "model_v2" in caplog.text

    def test_result_summary(self, result_v1):
        summary = result_summary(result_v1)
        assert summary["name"] == "model_v1"
        assert summary["dataset"] == "test_dataset"
        assert summary["samples"] == 3
        assert summary["duration_ms"] == 100
        assert summary["metrics"]["accuracy"] == pytest.approx(0.823333, abs=1e-6)
        assert summary["timestamp"] == result_v1.timestamp

    def test_format_result(self, result_v1):
        text = format_result(result_v1)
        assert text.startswith("Evaluation: model_v1")
        assert "Dataset: test_dataset" in text
        assert "Samples: 3" in text
        assert "Duration: 100ms" in text
        assert "  accuracy: 0.8233 (±" in text
