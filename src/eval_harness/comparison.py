"""
Statistical comparison of evaluation results.

Provides:
- compare: ranking by normalized score, per-metric winners, pairwise t-tests
- confidence_intervals: t (small n) or normal intervals around metric means
- effect_size: Cohen's d with pooled standard deviation
- bootstrap_ci: empirical interval from resampling with replacement
- anova: one-way ANOVA from aggregated group statistics
- result_summary, format_result, format_report: plain and text summaries

Variance convention: AggregatedMetric.std is the population standard
deviation. Wherever an inferential statistic needs the sample variance it is
recovered as std^2 * n / (n - 1).
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from .errors import InsufficientData
from .models import (
    AggregatedMetric,
    AnovaResult,
    BootstrapInterval,
    ComparisonReport,
    ConfidenceInterval,
    MetricComparison,
    PairwiseTest,
    Result,
)

logger = logging.getLogger(__name__)

# Heuristic critical value used to flag ANOVA significance
ANOVA_F_THRESHOLD = 3.0
SIGNIFICANCE_ALPHA = 0.05
# Below this many samples intervals use Student's t instead of the normal
SMALL_SAMPLE_SIZE = 30


def _sample_variance(agg: AggregatedMetric) -> float:
    if agg.count < 2:
        return 0.0
    return agg.std ** 2 * agg.count / (agg.count - 1)


def _all_metrics(results: Sequence[Result]) -> List[str]:
    """Union of aggregated metric names, in first-seen order."""
    metrics: List[str] = []
    for result in results:
        for metric in result.aggregated:
            if metric not in metrics:
                metrics.append(metric)
    return metrics


def compare_metrics(results: Sequence[Result]) -> Dict[str, MetricComparison]:
    """Each result's mean per metric and the arg-max winner."""
    comparisons = {}
    for metric in _all_metrics(results):
        values = [
            (result.name, result.aggregated[metric].mean)
            for result in results
            if metric in result.aggregated
        ]
        winner = None
        if values:
            # max() keeps the first of equal maxima
            winner = max(values, key=lambda item: item[1])[0]
        comparisons[metric] = MetricComparison(values=values, winner=winner)
    return comparisons


def normalized_score(result: Result, comparisons: Dict[str, MetricComparison]) -> float:
    """Mean over the result's metrics of own mean / best mean across results."""
    scores = []
    for metric, agg in result.aggregated.items():
        comparison = comparisons.get(metric)
        if comparison is None or not comparison.values:
            scores.append(0.0)
            continue
        max_value = max(value for _, value in comparison.values)
        scores.append(agg.mean / max_value if max_value > 0 else 0.0)

    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def rank_results(
    results: Sequence[Result],
    comparisons: Dict[str, MetricComparison]
) -> List[Tuple[Result, float]]:
    """Descending normalized score; ties broken by name, then input order."""
    scored = [
        (index, result, normalized_score(result, comparisons))
        for index, result in enumerate(results)
    ]
    scored.sort(key=lambda item: (-item[2], item[1].name, item[0]))
    return [(result, score) for _, result, score in scored]


def _welch(
    mean_a: float, var_a: float, n_a: int,
    mean_b: float, var_b: float, n_b: int
) -> Tuple[float, float]:
    """Welch t statistic and two-sided p-value from summary statistics."""
    se = math.sqrt(var_a / n_a + var_b / n_b)
    if se == 0:
        if mean_a == mean_b:
            return 0.0, 1.0
        return math.copysign(math.inf, mean_a - mean_b), 0.0

    t_stat, p_value = stats.ttest_ind_from_stats(
        mean_a, math.sqrt(var_a), n_a,
        mean_b, math.sqrt(var_b), n_b,
        equal_var=False,
    )
    return float(t_stat), float(p_value)


def _summary(result: Result, metric: str) -> Optional[Tuple[float, float, int, str]]:
    """(mean, sample variance, n, method) from raw values, else from aggregates."""
    if result.has_records:
        values = result.metric_values(metric)
        if len(values) < 2:
            return None
        return float(np.mean(values)), float(np.var(values, ddof=1)), len(values), "welch"

    agg = result.aggregated.get(metric)
    if agg is None or agg.count < 2:
        return None
    return agg.mean, _sample_variance(agg), agg.count, "welch_from_stats"


def pairwise_tests(results: Sequence[Result]) -> Dict[str, List[PairwiseTest]]:
    """Welch t-tests between consecutive results for every metric."""
    tests: Dict[str, List[PairwiseTest]] = {}
    for metric in _all_metrics(results):
        metric_tests = []
        for first, second in zip(results, results[1:]):
            summary_a = _summary(first, metric)
            summary_b = _summary(second, metric)
            if summary_a is None or summary_b is None:
                logger.debug(
                    f"Skipping t-test for '{metric}': {first.name} vs {second.name} (too few values)")
                continue

            mean_a, var_a, n_a, method_a = summary_a
            mean_b, var_b, n_b, method_b = summary_b
            t_stat, p_value = _welch(mean_a, var_a, n_a, mean_b, var_b, n_b)
            method = "welch" if method_a == method_b == "welch" else "welch_from_stats"

            metric_tests.append(PairwiseTest(
                pair=(first.name, second.name),
                t_statistic=t_stat,
                p_value=p_value,
                significant=p_value < SIGNIFICANCE_ALPHA,
                method=method,
            ))
        tests[metric] = metric_tests
    return tests


def compare(results: Sequence[Result]) -> ComparisonReport:
    """Rank results and annotate them with per-metric winners and t-tests."""
    results = tuple(results)
    if not results:
        raise InsufficientData("compare() needs at least one result")

    logger.info(f"Comparing {len(results)} results: {[r.name for r in results]}")

    comparisons = compare_metrics(results)
    rankings = rank_results(results, comparisons)

    note = None
    if len(results) < 2:
        note = "Need at least 2 results for statistical testing"
        tests: Dict[str, List[PairwiseTest]] = {}
    else:
        tests = pairwise_tests(results)

    report = ComparisonReport(
        results=results,
        rankings=tuple(rankings),
        best=rankings[0][0],
        metric_comparisons=comparisons,
        statistical_tests=tests,
        note=note,
    )
    logger.info(f"Best result: {report.best.name} (score={rankings[0][1]:.4f})")
    return report


def critical_value(level: float, count: int) -> float:
    """Two-sided quantile: Student's t (df=n-1) for small n, normal otherwise."""
    if not 0 < level < 1:
        raise ValueError(f"Confidence level must be in (0, 1), got {level}")
    q = 1 - (1 - level) / 2
    if count < SMALL_SAMPLE_SIZE and count > 1:
        return float(stats.t.ppf(q, df=count - 1))
    return float(stats.norm.ppf(q))


def confidence_intervals(result: Result, level: float = 0.95) -> Dict[str, ConfidenceInterval]:
    """Interval around each metric mean at the requested confidence level."""
    intervals = {}
    for metric, agg in result.aggregated.items():
        if agg.count < 2:
            margin = 0.0
        else:
            sem = math.sqrt(_sample_variance(agg)) / math.sqrt(agg.count)
            margin = critical_value(level, agg.count) * sem
        intervals[metric] = ConfidenceInterval(
            mean=agg.mean,
            lower=agg.mean - margin,
            upper=agg.mean + margin,
            confidence=level,
            count=agg.count,
        )
    return intervals


def effect_size(a: Result, b: Result, metric: str) -> Optional[float]:
    """Cohen's d of a over b; None when either result lacks the metric."""
    agg_a = a.aggregated.get(metric)
    agg_b = b.aggregated.get(metric)
    if agg_a is None or agg_b is None:
        return None

    df = agg_a.count + agg_b.count - 2
    if df <= 0:
        return 0.0

    pooled_var = (
        (agg_a.count - 1) * _sample_variance(agg_a)
        + (agg_b.count - 1) * _sample_variance(agg_b)
    ) / df
    pooled_std = math.sqrt(pooled_var)
    if pooled_std == 0:
        return 0.0
    return (agg_a.mean - agg_b.mean) / pooled_std


def bootstrap_ci(
    values: Sequence[float],
    iterations: int = 1000,
    level: float = 0.95,
    seed: Optional[int] = None,
) -> BootstrapInterval:
    """Percentile bootstrap interval of the mean.

    Non-deterministic unless a seed is given.
    """
    if len(values) == 0:
        return BootstrapInterval(mean=0.0, lower=0.0, upper=0.0, confidence=level,
                                 iterations=iterations)
    if iterations < 1:
        raise ValueError(f"iterations must be positive, got {iterations}")

    data = np.asarray(values, dtype=float)
    rng = np.random.default_rng(seed)
    n_samples = len(data)

    # One resample at a time; only the means are kept
    means = np.empty(iterations)
    for i in range(iterations):
        indices = rng.integers(0, n_samples, size=n_samples)
        means[i] = np.mean(data[indices])
    means.sort()

    alpha = 1 - level
    lower_index = min(int(math.floor(round(alpha / 2 * iterations, 9))), iterations - 1)
    upper_index = min(int(math.floor(round((1 - alpha / 2) * iterations, 9))), iterations - 1)

    return BootstrapInterval(
        mean=float(np.mean(data)),
        lower=float(means[lower_index]),
        upper=float(means[upper_index]),
        confidence=level,
        iterations=iterations,
    )


def anova(results: Sequence[Result], metric: str) -> AnovaResult:
    """One-way ANOVA reconstructed from each result's (mean, std, count).

    `significant` uses the fixed heuristic F > 3.0; the exact p-value from
    the F distribution is reported alongside it.
    """
    groups = [
        r.aggregated[metric] for r in results
        if metric in r.aggregated and r.aggregated[metric].count > 0
    ]
    if len(groups) < 2:
        logger.warning(f"ANOVA on '{metric}' needs at least 2 groups, got {len(groups)}")
        return AnovaResult(
            metric=metric,
            groups=len(groups),
            error="Insufficient data: need at least 2 groups with this metric",
        )

    total = sum(g.count for g in groups)
    df_between = len(groups) - 1
    df_within = total - len(groups)
    if df_within == 0:
        logger.warning(f"ANOVA on '{metric}' has no within-group variation (every group has n=1)")
        return AnovaResult(
            metric=metric,
            groups=len(groups),
            df_between=df_between,
            df_within=df_within,
            error="Insufficient data: need more than one sample in at least one group",
        )

    grand_mean = sum(g.mean * g.count for g in groups) / total

    ss_between = sum(g.count * (g.mean - grand_mean) ** 2 for g in groups)
    # sum((n-1) * s^2) == sum(n * population std^2)
    ss_within = sum(g.count * g.std ** 2 for g in groups)

    ms_between = ss_between / df_between
    ms_within = ss_within / df_within

    if ms_within > 0:
        f_stat = ms_between / ms_within
    elif math.isclose(ms_between, 0.0, abs_tol=1e-12):
        f_stat = 0.0
    else:
        f_stat = math.inf

    p_value = None
    if df_within > 0 and math.isfinite(f_stat):
        p_value = float(stats.f.sf(f_stat, df_between, df_within))

    significant = f_stat > ANOVA_F_THRESHOLD
    if significant:
        interpretation = f"Significant difference between groups (F={f_stat:.3f} > {ANOVA_F_THRESHOLD})"
    else:
        interpretation = f"No significant difference between groups (F={f_stat:.3f})"

    return AnovaResult(
        metric=metric,
        groups=len(groups),
        f_statistic=f_stat,
        p_value=p_value,
        df_between=df_between,
        df_within=df_within,
        ss_between=ss_between,
        ss_within=ss_within,
        significant=significant,
        interpretation=interpretation,
    )


def result_summary(result: Result) -> Dict[str, Any]:
    """Identity fields of a result with each metric reduced to its mean."""
    return {
        "name": result.name,
        "dataset": result.dataset,
        "samples": result.samples,
        "duration_ms": result.duration_ms,
        "metrics": {name: agg.mean for name, agg in result.aggregated.items()},
        "timestamp": result.timestamp,
    }


def format_result(result: Result) -> str:
    """Human-readable summary of one result, one mean (±std) line per metric."""
    lines = [
        f"Evaluation: {result.name}",
        f"Dataset: {result.dataset}",
        f"Samples: {result.samples}",
        f"Duration: {result.duration_ms:.0f}ms",
        "",
        "Metrics:",
    ]
    for name, agg in result.aggregated.items():
        lines.append(f"  {name}: {agg.mean:.4f} (±{agg.std:.4f})")
    return "\n".join(lines)


def format_report(report: ComparisonReport) -> str:
    """Human-readable summary of a comparison report."""
    lines = [
        f"Comparison of {len(report.results)} evaluations",
        "",
        f"Best: {report.best.name}",
        "",
        "Rankings:",
    ]
    for rank, (result, score) in enumerate(report.rankings, 1):
        lines.append(f"  {rank}. {result.name}: {score:.4f}")

    lines.extend(["", "Metric Comparisons:"])
    for metric, comparison in report.metric_comparisons.items():
        values = ", ".join(f"{name}={value:.4f}" for name, value in comparison.values)
        lines.append(f"  {metric}: {values} (winner: {comparison.winner or 'N/A'})")

    lines.extend(["", "Statistical Tests:"])
    if report.note:
        lines.append(f"  {report.note}")
    for metric, tests in report.statistical_tests.items():
        formatted = ", ".join(
            f"{test.pair[0]} vs {test.pair[1]}: t={test.t_statistic:.2f}"
            f"{'*' if test.significant else ''}"
            for test in tests
        )
        lines.append(f"  {metric}: {formatted or 'N/A'}")

    return "\n".join(lines)


def log_report(report: ComparisonReport) -> None:
    """Log a comparison report as a table."""
    logger.info("=" * 80)
    logger.info("EVALUATION COMPARISON")
    logger.info("=" * 80)
    for rank, (result, score) in enumerate(report.rankings, 1):
        logger.info(f"{rank}. {result.name:<30} {score:>10.4f}")
    logger.info("-" * 80)

    logger.info(f"{'Metric':<20} {'Winner':<30} {'Best mean':>12}")
    logger.info("-" * 80)
    for metric, comparison in report.metric_comparisons.items():
        best_mean = max((value for _, value in comparison.values), default=0.0)
        logger.info(f"{metric:<20} {comparison.winner or 'N/A':<30} {best_mean:>12.4f}")

    if report.note:
        logger.info(report.note)
    for metric, tests in report.statistical_tests.items():
        for test in tests:
            marker = "*" if test.significant else ""
            logger.info(
                f"{metric:<20} {test.pair[0]} vs {test.pair[1]}: "
                f"t={test.t_statistic:+.3f} p={test.p_value:.4f}{marker}")
    logger.info("=" * 80)
