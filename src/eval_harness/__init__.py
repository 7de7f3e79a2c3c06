"""
Evaluation harness for model outputs.

Computes per-sample similarity metrics against ground truth, aggregates them
into summary statistics, and statistically compares evaluation runs.
"""

from .aggregation import aggregate, build_result
from .comparison import (
    anova,
    bootstrap_ci,
    compare,
    confidence_intervals,
    effect_size,
    format_report,
    format_result,
    pairwise_tests,
    result_summary,
)
from .config import Settings
from .dataset import DatasetLoader, JsonlDatasetLoader, read_jsonl
from .errors import (
    EvaluationError,
    EvaluationTimeout,
    InsufficientData,
    LengthMismatch,
    NoGroundTruth,
    SampleEvaluationError,
    UnsupportedFormat,
)
from .evaluation import Evaluation, MetricsEvaluation
from .export import (
    ExperimentRecord,
    ExportRecord,
    export_result,
    load_result,
    save_result,
    submit_experiment,
    to_telemetry_events,
)
from .judge import JudgeScore, LLMJudge, openai_generate_fn
from .models import (
    AggregatedMetric,
    AnovaResult,
    BootstrapInterval,
    ComparisonReport,
    ConfidenceInterval,
    MetricComparison,
    MetricRecord,
    PairwiseTest,
    Result,
    RunOptions,
)
from .runner import Runner, RunState, run

__all__ = [
    # Models
    "AggregatedMetric",
    "AnovaResult",
    "BootstrapInterval",
    "ComparisonReport",
    "ConfidenceInterval",
    "MetricComparison",
    "MetricRecord",
    "PairwiseTest",
    "Result",
    "RunOptions",
    "Settings",
    # Errors
    "EvaluationError",
    "EvaluationTimeout",
    "InsufficientData",
    "LengthMismatch",
    "NoGroundTruth",
    "SampleEvaluationError",
    "UnsupportedFormat",
    # Runner
    "Evaluation",
    "MetricsEvaluation",
    "DatasetLoader",
    "JsonlDatasetLoader",
    "read_jsonl",
    "Runner",
    "RunState",
    "run",
    # Aggregation
    "aggregate",
    "build_result",
    # Comparison
    "compare",
    "confidence_intervals",
    "effect_size",
    "bootstrap_ci",
    "anova",
    "pairwise_tests",
    "format_report",
    "format_result",
    "result_summary",
    # Export
    "ExportRecord",
    "export_result",
    "to_telemetry_events",
    "save_result",
    "load_result",
    "ExperimentRecord",
    "submit_experiment",
    # Judge
    "LLMJudge",
    "JudgeScore",
    "openai_generate_fn",
]
