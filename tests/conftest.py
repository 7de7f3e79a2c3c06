"""Shared fixtures for eval_harness unit tests."""

import pytest

from eval_harness.aggregation import build_result
from eval_harness.evaluation import Evaluation
from eval_harness.metrics import exact_match, f1


# ---- Results ----

@pytest.fixture
def result_v1():
    return build_result("model_v1", "test_dataset", [
        {"accuracy": 0.8, "f1": 0.75},
        {"accuracy": 0.85, "f1": 0.8},
        {"accuracy": 0.82, "f1": 0.78},
    ], duration_ms=100)


@pytest.fixture
def result_v2():
    return build_result("model_v2", "test_dataset", [
        {"accuracy": 0.9, "f1": 0.85},
        {"accuracy": 0.92, "f1": 0.88},
        {"accuracy": 0.91, "f1": 0.87},
    ], duration_ms=120)


@pytest.fixture
def result_v3():
    return build_result("model_v3", "test_dataset", [
        {"accuracy": 0.75, "f1": 0.7},
        {"accuracy": 0.78, "f1": 0.72},
        {"accuracy": 0.76, "f1": 0.71},
    ], duration_ms=90)


# ---- Evaluations ----

class QAEvaluation(Evaluation):
    """Exact match + F1 over plain strings."""

    def name(self):
        return "qa_eval"

    def dataset(self):
        return "qa"

    def metrics(self):
        return ["exact_match", "f1"]

    def evaluate(self, prediction, ground_truth):
        return {
            "exact_match": exact_match(prediction, ground_truth),
            "f1": f1(prediction, ground_truth),
        }


@pytest.fixture
def qa_evaluation():
    return QAEvaluation()
