"""
Abstract evaluation interface consumed by the runner.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List

from .metrics import METRICS, score_all
from .models import MetricRecord

logger = logging.getLogger(__name__)


class Evaluation(ABC):
    """Definition of one evaluation: identity plus a per-sample scoring function.

    Hooks run concurrently in parallel mode and must be free of side effects.
    """

    @abstractmethod
    def name(self) -> str:
        """Name of the evaluation."""
        pass

    @abstractmethod
    def dataset(self) -> str:
        """Dataset identifier, used to resolve ground truth."""
        pass

    @abstractmethod
    def metrics(self) -> List[str]:
        """Declared metric names, recorded in result metadata."""
        pass

    @abstractmethod
    def evaluate(self, prediction: Any, ground_truth: Any) -> MetricRecord:
        """Score one prediction against its ground truth."""
        pass

    def preprocess(self, prediction: Any) -> Any:
        return prediction

    def postprocess(self, record: MetricRecord) -> MetricRecord:
        return record


class MetricsEvaluation(Evaluation):
    """Evaluation that scores every pair with named built-in metrics."""

    def __init__(self, name: str, dataset: str, metrics: Iterable[str]):
        self._name = name
        self._dataset = dataset
        self._metrics = list(metrics)

        unknown = [m for m in self._metrics if m not in METRICS]
        if unknown:
            raise ValueError(f"Unknown metrics: {unknown}. Available: {sorted(METRICS)}")
        logger.info(f"Initialized evaluation '{name}' with metrics={self._metrics}")

    def name(self) -> str:
        return self._name

    def dataset(self) -> str:
        return self._dataset

    def metrics(self) -> List[str]:
        return list(self._metrics)

    def evaluate(self, prediction: Any, ground_truth: Any) -> MetricRecord:
        return score_all(prediction, ground_truth, self._metrics)
