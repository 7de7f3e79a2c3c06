"""
Export, saving and loading of evaluation results.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .errors import UnsupportedFormat
from .models import AggregatedMetric, Result

logger = logging.getLogger(__name__)

RESULT_FILE = "result.json"
RECORDS_FILE = "records.jsonl"


class ExportRecord(BaseModel):
    """Interchange record consumed by external tracking systems."""
    # perplexity may aggregate to inf; keep it as Infinity/NaN instead of null
    model_config = ConfigDict(ser_json_inf_nan='constants')

    evaluation: str = Field(description="Evaluation name")
    dataset: str = Field(description="Dataset identifier")
    samples: int = Field(ge=0, description="Number of evaluated samples")
    duration_ms: float = Field(description="Wall-clock duration of the run")
    timestamp: datetime = Field(description="Capture time of the result")
    metrics: Dict[str, Dict[str, Union[int, float]]] = Field(description="Aggregated metrics by name")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form run metadata")

    @field_serializer('timestamp', when_used='json')
    def serialize_timestamp(self, value: datetime) -> str:
        """Serialize datetime to ISO 8601 with timezone for JSON output."""
        # Assume UTC if naive
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    @classmethod
    def from_result(cls, result: Result) -> "ExportRecord":
        return cls(
            evaluation=result.name,
            dataset=result.dataset,
            samples=result.samples,
            duration_ms=result.duration_ms,
            timestamp=result.timestamp,
            metrics={name: agg.to_dict() for name, agg in result.aggregated.items()},
            metadata=dict(result.metadata),
        )

    def to_result(self, records: Optional[List[Dict[str, Any]]] = None) -> Result:
        aggregated = {
            name: AggregatedMetric(
                mean=stats["mean"],
                std=stats["std"],
                min=stats["min"],
                max=stats["max"],
                median=stats["median"],
                count=int(stats["count"]),
            )
            for name, stats in self.metrics.items()
        }
        return Result(
            name=self.evaluation,
            dataset=self.dataset,
            records=tuple(records or ()),
            aggregated=aggregated,
            samples=self.samples,
            duration_ms=self.duration_ms,
            timestamp=self.timestamp,
            metadata=dict(self.metadata),
        )


def export_result(result: Result, fmt: str = "json") -> Union[str, Dict[str, Any]]:
    """Export a result as a JSON string ("json") or a plain dict ("dict")."""
    record = ExportRecord.from_result(result)
    if fmt == "json":
        return record.model_dump_json()
    if fmt == "dict":
        return record.model_dump(mode="json")
    logger.error(f"Unsupported export format requested: {fmt}")
    raise UnsupportedFormat(fmt)


def to_telemetry_events(result: Result) -> List[Dict[str, Any]]:
    """One event per aggregated metric."""
    timestamp = result.timestamp.isoformat()
    return [
        {
            "metric": name,
            "value": agg.mean,
            "std": agg.std,
            "min": agg.min,
            "max": agg.max,
            "count": agg.count,
            "timestamp": timestamp,
        }
        for name, agg in result.aggregated.items()
    ]


class ExperimentRecord(BaseModel):
    """A result submitted to an experiment tracker under an experiment name."""
    model_config = ConfigDict(ser_json_inf_nan='constants')

    name: str = Field(min_length=1, description="Experiment name")
    evaluation: str = Field(description="Evaluation name")
    dataset: str = Field(description="Dataset identifier")
    samples: int = Field(ge=0, description="Number of evaluated samples")
    duration_ms: float = Field(description="Wall-clock duration of the run")
    timestamp: datetime = Field(description="Capture time of the result")
    tags: List[str] = Field(default_factory=list, description="Free-form experiment tags")
    description: str = Field(default="", description="Experiment description")
    metrics: Dict[str, Dict[str, Union[int, float]]] = Field(
        default_factory=dict, description="Aggregated metrics, empty when not tracked")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form run metadata")

    @field_serializer('timestamp', when_used='json')
    def serialize_timestamp(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


def submit_experiment(
    result: Result,
    experiment_name: str,
    tags: Optional[List[str]] = None,
    description: str = "",
    track_metrics: bool = True,
) -> ExperimentRecord:
    """Build the experiment submission for a result and log it."""
    metrics = {}
    if track_metrics:
        metrics = {name: agg.to_dict() for name, agg in result.aggregated.items()}

    record = ExperimentRecord(
        name=experiment_name,
        evaluation=result.name,
        dataset=result.dataset,
        samples=result.samples,
        duration_ms=result.duration_ms,
        timestamp=result.timestamp,
        tags=list(tags or []),
        description=description,
        metrics=metrics,
        metadata=dict(result.metadata),
    )

    logger.info(
        f"Experiment submission '{record.name}': evaluation={record.evaluation}, "
        f"dataset={record.dataset}, samples={record.samples}, "
        f"duration={record.duration_ms:.1f}ms, metrics={sorted(record.metrics)}")
    return record


def save_result(result: Result, runs_dir: Union[str, Path] = "evaluation/runs") -> Path:
    """Save the export record and per-sample records under <runs_dir>/<name>/."""
    logger.info(f"Saving result: {result.name}")

    run_dir = Path(runs_dir) / result.name
    run_dir.mkdir(parents=True, exist_ok=True)

    result_path = run_dir / RESULT_FILE
    with open(result_path, 'w', encoding='utf-8') as f:
        f.write(ExportRecord.from_result(result).model_dump_json(indent=2))
    logger.info(f"Saved result to {result_path}")

    records_path = run_dir / RECORDS_FILE
    with open(records_path, 'w', encoding='utf-8') as f:
        for record in result.records:
            f.write(json.dumps(dict(record)) + "\n")
    logger.info(f"Saved {len(result.records)} records to {records_path}")

    return run_dir


def load_result(name: str, runs_dir: Union[str, Path] = "evaluation/runs") -> Result:
    """Load a saved result, with per-sample records when they were saved."""
    logger.info(f"Loading result: {name}")

    run_dir = Path(runs_dir) / name
    if not run_dir.exists():
        raise FileNotFoundError(f"Result directory not found: {run_dir}")

    result_path = run_dir / RESULT_FILE
    with open(result_path, 'r', encoding='utf-8') as f:
        record = ExportRecord.model_validate_json(f.read())

    records: List[Dict[str, Any]] = []
    records_path = run_dir / RECORDS_FILE
    if records_path.exists():
        with open(records_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f"Error parsing line {line_num} in {records_path}: {e}"
                    ) from e
    else:
        logger.warning(f"No records file for '{name}', statistics will use aggregates only")

    result = record.to_result(records)
    logger.info(f"Result {name} loaded successfully ({result.samples} samples)")
    return result
