"""
Data models for the evaluation harness.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, NewType, Optional, Tuple, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Settings

# Type aliases to enforce type safety
MetricName = NewType('MetricName', str)
MetricValue = Union[float, int, bool, str]
MetricRecord = Dict[str, MetricValue]


def is_numeric(value: Any) -> bool:
    """True for values that take part in aggregation (bools count as 0/1)."""
    if isinstance(value, bool):
        return True
    return isinstance(value, (int, float)) and not math.isnan(value)


@dataclass(frozen=True)
class AggregatedMetric:
    """Summary of one metric across a result's samples. std is population (ddof=0)."""
    mean: float
    std: float
    min: float
    max: float
    median: float
    count: int

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "std": self.std,
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "count": self.count,
        }


@dataclass(frozen=True)
class Result:
    """One evaluation run: identity, per-sample records and aggregated metrics.

    Records, aggregates and metadata are read-only views over private copies.
    """
    name: str
    dataset: str
    records: Tuple[Mapping[str, MetricValue], ...]
    aggregated: Mapping[str, AggregatedMetric]
    samples: int
    duration_ms: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "records", tuple(MappingProxyType(dict(record)) for record in self.records))
        object.__setattr__(self, "aggregated", MappingProxyType(dict(self.aggregated)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        # Results rebuilt from an export carry aggregates only
        if self.records and self.samples != len(self.records):
            raise ValueError(
                f"Result '{self.name}': samples={self.samples} but {len(self.records)} records"
            )
        if self.samples < 0:
            raise ValueError(f"Result '{self.name}': samples must be non-negative")

    @property
    def has_records(self) -> bool:
        return len(self.records) > 0

    def metric_values(self, metric: str) -> List[float]:
        """Raw numeric per-sample values of one metric, in sample order."""
        return [
            float(record[metric]) for record in self.records
            if metric in record and is_numeric(record[metric])
        ]


@dataclass(frozen=True)
class MetricComparison:
    """Per-metric means across results and the arg-max winner."""
    values: List[Tuple[str, float]]
    winner: Optional[str]


@dataclass(frozen=True)
class PairwiseTest:
    """Welch t-test between two consecutive results on one metric."""
    pair: Tuple[str, str]
    t_statistic: float
    p_value: float
    significant: bool
    method: str = "welch"


@dataclass(frozen=True)
class ComparisonReport:
    """Ranked, statistically annotated view over several results."""
    results: Tuple[Result, ...]
    rankings: Tuple[Tuple[Result, float], ...]
    best: Result
    metric_comparisons: Dict[str, MetricComparison]
    statistical_tests: Dict[str, List[PairwiseTest]]
    note: Optional[str] = None


@dataclass(frozen=True)
class ConfidenceInterval:
    """Interval around a metric mean."""
    mean: float
    lower: float
    upper: float
    confidence: float
    count: int


@dataclass(frozen=True)
class BootstrapInterval:
    """Empirical interval from bootstrap resampling."""
    mean: float
    lower: float
    upper: float
    confidence: float
    iterations: int


@dataclass(frozen=True)
class AnovaResult:
    """One-way ANOVA over aggregated group statistics."""
    metric: str
    groups: int
    f_statistic: Optional[float] = None
    p_value: Optional[float] = None
    df_between: Optional[int] = None
    df_within: Optional[int] = None
    ss_between: Optional[float] = None
    ss_within: Optional[float] = None
    significant: bool = False
    interpretation: str = ""
    error: Optional[str] = None

    @property
    def insufficient_data(self) -> bool:
        return self.error is not None


class RunOptions(BaseModel):
    """Options for a single evaluation run."""
    ground_truth: Optional[List[Any]] = Field(
        default=None,
        description="Ground truth entries, paired with predictions by position")
    parallel: bool = Field(default=True, description="Evaluate samples concurrently")
    timeout: int = Field(default=5000, gt=0, description="Deadline for the whole batch, in ms")
    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Worker pool size (default: min(samples, settings))")

    @classmethod
    def from_settings(cls, settings: "Settings", **overrides) -> "RunOptions":
        """Build options from configured defaults, applying explicit overrides."""
        values = {
            "parallel": settings.parallel,
            "timeout": settings.timeout_ms,
            "max_workers": settings.max_workers,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def effective(self) -> Dict[str, Any]:
        """Options as recorded in result metadata (ground truth excluded)."""
        return {
            "parallel": self.parallel,
            "timeout": self.timeout,
            "max_workers": self.max_workers,
        }
