"""
Evaluation runner: pairs predictions with ground truth and drives per-sample evaluation.

Lifecycle of a run:
    IDLE -> PAIRING -> EVALUATING -> AGGREGATED
    IDLE -> PAIRING -> FAILED
    IDLE -> PAIRING -> EVALUATING -> FAILED

A failed run never produces a partial Result.
"""

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .aggregation import build_result
from .config import Settings
from .dataset import DatasetLoader
from .errors import (
    EvaluationTimeout,
    LengthMismatch,
    NoGroundTruth,
    SampleEvaluationError,
)
from .evaluation import Evaluation
from .models import MetricRecord, Result, RunOptions

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    PAIRING = "pairing"
    EVALUATING = "evaluating"
    AGGREGATED = "aggregated"
    FAILED = "failed"


class Runner:
    """Runs an Evaluation over a batch of predictions."""

    def __init__(
        self,
        dataset_loader: Optional[DatasetLoader] = None,
        settings: Optional[Settings] = None
    ):
        """Initialize runner with an optional ground truth loader."""
        self.dataset_loader = dataset_loader
        self.settings = settings or Settings()
        self.state = RunState.IDLE

    def _transition(self, state: RunState) -> None:
        logger.info(f"Run state: {self.state.value} -> {state.value}")
        self.state = state

    def run(
        self,
        evaluation: Evaluation,
        predictions: Sequence[Any],
        options: Optional[RunOptions] = None
    ) -> Result:
        """Evaluate every prediction and aggregate the records into a Result."""
        options = options or RunOptions.from_settings(self.settings)
        start = time.perf_counter()
        self.state = RunState.IDLE
        logger.info(
            f"Starting evaluation '{evaluation.name()}' on {len(predictions)} predictions "
            f"(parallel={options.parallel}, timeout={options.timeout}ms)")

        try:
            self._transition(RunState.PAIRING)
            ground_truth = self._resolve_ground_truth(evaluation, options)
            pairs = self._pair(predictions, ground_truth)

            self._transition(RunState.EVALUATING)
            if options.parallel:
                records = self._evaluate_parallel(evaluation, pairs, options)
            else:
                records = self._evaluate_sequential(evaluation, pairs)
        except Exception:
            self._transition(RunState.FAILED)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        metadata = {"metrics": list(evaluation.metrics()), **options.effective()}
        result = build_result(
            name=evaluation.name(),
            dataset=evaluation.dataset(),
            records=records,
            duration_ms=duration_ms,
            metadata=metadata,
        )

        self._transition(RunState.AGGREGATED)
        logger.info(f"Evaluation '{evaluation.name()}' complete in {duration_ms:.1f}ms")
        return result

    def _resolve_ground_truth(self, evaluation: Evaluation, options: RunOptions) -> List[Any]:
        """Explicit ground truth wins; otherwise ask the injected loader."""
        if options.ground_truth is not None:
            return list(options.ground_truth)

        dataset_id = evaluation.dataset()
        if self.dataset_loader is None:
            logger.error(f"No ground truth for dataset '{dataset_id}'")
            raise NoGroundTruth(dataset_id)

        logger.info(f"Resolving ground truth for dataset '{dataset_id}' from loader")
        return list(self.dataset_loader.load(dataset_id))

    def _pair(self, predictions: Sequence[Any], ground_truth: List[Any]) -> List[Tuple[Any, Any]]:
        """Pair strictly by position."""
        if len(predictions) != len(ground_truth):
            logger.error(
                f"Length mismatch: {len(predictions)} predictions, {len(ground_truth)} ground truth")
            raise LengthMismatch(len(predictions), len(ground_truth))
        return list(zip(predictions, ground_truth))

    def _evaluate_pair(
        self,
        evaluation: Evaluation,
        index: int,
        prediction: Any,
        ground_truth: Any
    ) -> MetricRecord:
        """preprocess -> evaluate -> postprocess for one sample."""
        try:
            preprocessed = evaluation.preprocess(prediction)
            record = evaluation.evaluate(preprocessed, ground_truth)
            record = evaluation.postprocess(record)
        except Exception as e:
            logger.error(f"Evaluation of sample {index} failed: {e}")
            raise SampleEvaluationError(index, f"{type(e).__name__}: {e}") from e

        if not isinstance(record, dict):
            logger.error(f"Sample {index} produced {type(record).__name__}, expected a dict")
            raise SampleEvaluationError(
                index, f"evaluation returned {type(record).__name__}, expected a metric record")
        return record

    def _evaluate_sequential(
        self,
        evaluation: Evaluation,
        pairs: List[Tuple[Any, Any]]
    ) -> List[MetricRecord]:
        records = []
        total = len(pairs)
        for index, (prediction, truth) in enumerate(pairs):
            records.append(self._evaluate_pair(evaluation, index, prediction, truth))
            logger.debug(f"Evaluated sample {index + 1}/{total}")
        return records

    def _evaluate_parallel(
        self,
        evaluation: Evaluation,
        pairs: List[Tuple[Any, Any]],
        options: RunOptions
    ) -> List[MetricRecord]:
        """Bounded fan-out joined under one deadline for the whole batch.

        Records are stored by pair index, so the output order matches the
        input order regardless of completion order.
        """
        total = len(pairs)
        if total == 0:
            return []

        max_workers = min(total, options.max_workers or self.settings.max_workers)
        deadline = time.monotonic() + options.timeout / 1000
        records: List[Optional[MetricRecord]] = [None] * total
        logger.info(f"Evaluating {total} samples with {max_workers} workers")

        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="eval-worker")
        try:
            futures: Dict[Future, int] = {
                executor.submit(self._evaluate_pair, evaluation, index, prediction, truth): index
                for index, (prediction, truth) in enumerate(pairs)
            }
            pending = set(futures)
            completed = 0

            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.error(
                        f"Deadline of {options.timeout}ms exceeded with {len(pending)} samples pending")
                    raise EvaluationTimeout(options.timeout, completed, total)

                done, pending = wait(pending, timeout=remaining, return_when=FIRST_EXCEPTION)
                for future in done:
                    # Re-raises the first hook failure (fail-fast)
                    records[futures[future]] = future.result()
                    completed += 1
        finally:
            # Queued units are cancelled; running ones cannot be interrupted
            executor.shutdown(wait=False, cancel_futures=True)

        return records


def run(
    evaluation: Evaluation,
    predictions: Sequence[Any],
    options: Optional[RunOptions] = None,
    dataset_loader: Optional[DatasetLoader] = None,
) -> Result:
    """Run an evaluation with a one-off Runner."""
    return Runner(dataset_loader=dataset_loader).run(evaluation, predictions, options)
