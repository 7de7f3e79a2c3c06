"""
Error taxonomy for evaluation runs, statistics and export.
"""

from typing import Optional


class EvaluationError(Exception):
    """Base class for every error raised by the harness."""


class LengthMismatch(EvaluationError):
    """Predictions and ground truth cannot be paired by position."""

    def __init__(self, predictions: int, ground_truth: int):
        self.predictions = predictions
        self.ground_truth = ground_truth
        super().__init__(
            f"Cannot pair {predictions} predictions with {ground_truth} ground truth entries"
        )


class NoGroundTruth(EvaluationError):
    """Neither explicit ground truth nor a dataset loader is available."""

    def __init__(self, dataset: Optional[str] = None):
        self.dataset = dataset
        super().__init__(f"No ground truth provided and no dataset loader for '{dataset}'")


class EvaluationTimeout(EvaluationError):
    """The batch did not finish before its shared deadline."""

    def __init__(self, timeout_ms: int, completed: int, total: int):
        self.timeout_ms = timeout_ms
        self.completed = completed
        self.total = total
        super().__init__(
            f"Evaluation exceeded {timeout_ms}ms deadline ({completed}/{total} samples completed)"
        )


class SampleEvaluationError(EvaluationError):
    """A per-sample hook failed; the whole run is aborted."""

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(f"Sample {index}: {message}")


class InsufficientData(EvaluationError):
    """A statistical operation needs more groups or values."""


class UnsupportedFormat(EvaluationError):
    """Requested export format is not available."""

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Unsupported export format: {fmt}")
