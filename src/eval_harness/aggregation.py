"""
Aggregation of per-sample metric records into summary statistics.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .models import AggregatedMetric, MetricRecord, Result, is_numeric

logger = logging.getLogger(__name__)


def _summarize(values: List[float]) -> AggregatedMetric:
    """Summary statistics; std is the population standard deviation."""
    array = np.asarray(values, dtype=float)
    return AggregatedMetric(
        mean=float(np.mean(array)),
        std=float(np.std(array, ddof=0)),
        min=float(np.min(array)),
        max=float(np.max(array)),
        median=float(np.median(array)),
        count=len(values),
    )


def aggregate(records: Iterable[MetricRecord]) -> Dict[str, AggregatedMetric]:
    """Aggregate every metric over the records that contain it.

    Non-numeric values (e.g. labels) are kept in the records but not
    aggregated. Empty input yields an empty map.
    """
    collected: Dict[str, List[float]] = {}
    skipped: Dict[str, int] = {}

    for record in records:
        for metric, value in record.items():
            if is_numeric(value):
                collected.setdefault(metric, []).append(float(value))
            else:
                skipped[metric] = skipped.get(metric, 0) + 1

    for metric, count in skipped.items():
        logger.debug(f"Skipped {count} non-numeric values for metric '{metric}'")

    return {metric: _summarize(values) for metric, values in collected.items()}


def build_result(
    name: str,
    dataset: str,
    records: List[MetricRecord],
    duration_ms: float,
    metadata: Optional[Dict[str, Any]] = None,
    samples: Optional[int] = None,
) -> Result:
    """Wrap aggregated records with identity fields and a capture timestamp."""
    records = list(records)
    if samples is None:
        samples = len(records)
    if samples != len(records):
        raise ValueError(f"Sample count {samples} does not match {len(records)} records")

    aggregated = aggregate(records)
    logger.info(f"Built result '{name}' with {samples} samples and {len(aggregated)} metrics")

    return Result(
        name=name,
        dataset=str(dataset),
        records=tuple(records),
        aggregated=aggregated,
        samples=samples,
        duration_ms=duration_ms,
        timestamp=datetime.now(timezone.utc),
        metadata=dict(metadata or {}),
    )
