"""
Built-in evaluation metrics.

Similarity and quality scores over text or structured predictions:
- Overlap: exact match, token F1, BLEU, ROUGE-L, METEOR
- Edit distance: fuzzy match (Levenshtein)
- Structure: citation accuracy, schema compliance
- Generation: pass@k, perplexity, diversity, factual consistency
- Model proxies: entailment, BERTScore (token overlap stand-ins)
- Score lists: accuracy, standard error

Every function is total. Degenerate input maps to a fixed sentinel score
(0.0 or 1.0), so a low score is never an error signal.
"""

import math
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .models import is_numeric
from .text import graphemes, ngrams, normalize, tokenize

_CITATION_MARKER = re.compile(r"\[[ec]\d+\]", re.IGNORECASE)
_CITATION_ID = re.compile(r"\[?([ec]\d+)\]?", re.IGNORECASE)


def exact_match(prediction: Any, ground_truth: Any) -> float:
    """1.0 when both sides normalize to the same string, else 0.0."""
    return 1.0 if normalize(prediction) == normalize(ground_truth) else 0.0


def f1(prediction: Any, ground_truth: Any) -> float:
    """Token-set F1. Duplicate tokens are ignored."""
    pred_tokens = set(tokenize(prediction))
    truth_tokens = set(tokenize(ground_truth))

    if not pred_tokens and not truth_tokens:
        return 1.0

    common = len(pred_tokens & truth_tokens)
    if common == 0:
        return 0.0

    precision = common / len(pred_tokens)
    recall = common / len(truth_tokens)
    return 2 * precision * recall / (precision + recall)


def bleu(prediction: Any, ground_truth: Any, max_n: int = 4) -> float:
    """Geometric mean of n-gram set precisions.

    Simplified BLEU: no brevity penalty and no smoothing, so a single
    order without overlap forces the score to 0.0. The highest order is
    capped by the shorter token sequence.
    """
    pred_tokens = tokenize(prediction)
    truth_tokens = tokenize(ground_truth)

    n = min(max_n, len(pred_tokens), len(truth_tokens))
    if n <= 0:
        return 1.0 if not pred_tokens and not truth_tokens else 0.0

    precisions = []
    for order in range(1, n + 1):
        pred_ngrams = set(ngrams(pred_tokens, order))
        truth_ngrams = set(ngrams(truth_tokens, order))
        precisions.append(len(pred_ngrams & truth_ngrams) / len(pred_ngrams))

    if any(p == 0 for p in precisions):
        return 0.0
    return math.prod(precisions) ** (1 / n)


def longest_common_subsequence(a: Sequence[Any], b: Sequence[Any]) -> int:
    """LCS length using a rolling two-row table, O(len(a) * len(b))."""
    if not a or not b:
        return 0

    previous = [0] * (len(b) + 1)
    for item_a in a:
        current = [0] * (len(b) + 1)
        for j, item_b in enumerate(b, 1):
            if item_a == item_b:
                current[j] = previous[j - 1] + 1
            else:
                current[j] = max(previous[j], current[j - 1])
        previous = current
    return previous[-1]


def rouge(prediction: Any, ground_truth: Any) -> float:
    """ROUGE-L F-measure over token sequences."""
    pred_tokens = tokenize(prediction)
    truth_tokens = tokenize(ground_truth)

    if not pred_tokens and not truth_tokens:
        return 1.0

    lcs = longest_common_subsequence(pred_tokens, truth_tokens)
    precision = lcs / len(pred_tokens) if pred_tokens else 0.0
    recall = lcs / len(truth_tokens) if truth_tokens else 0.0

    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def meteor(prediction: Any, ground_truth: Any) -> float:
    """METEOR approximation: unigram set matches, recall-weighted F-mean.

    The fragmentation penalty uses matches/(matches+1) in place of a real
    chunk count, so identical texts still score below 1.0.
    """
    pred_tokens = tokenize(prediction)
    truth_tokens = tokenize(ground_truth)

    if not pred_tokens and not truth_tokens:
        return 1.0

    matches = len(set(pred_tokens) & set(truth_tokens))
    if matches == 0:
        return 0.0

    precision = matches / len(pred_tokens)
    recall = matches / len(truth_tokens)
    f_mean = 10 * precision * recall / (9 * precision + recall)
    penalty = 0.5 * (matches / (matches + 1)) ** 3
    return f_mean * (1 - penalty)


def levenshtein_distance(a: Sequence[Any], b: Sequence[Any]) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, item_a in enumerate(a, 1):
        current = [i] + [0] * len(b)
        for j, item_b in enumerate(b, 1):
            cost = 0 if item_a == item_b else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current
    return previous[-1]


def fuzzy_match(prediction: Any, ground_truth: Any) -> float:
    """Similarity in [0, 1] from grapheme-level edit distance."""
    pred = graphemes(normalize(prediction))
    truth = graphemes(normalize(ground_truth))

    max_len = max(len(pred), len(truth))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein_distance(pred, truth) / max_len


def _get(container: Mapping, key: str, default: Any = None) -> Any:
    if key in container:
        return container[key]
    return default


def _extract_citation_id(citation: Any) -> str:
    if isinstance(citation, str):
        match = _CITATION_ID.search(citation)
        if match:
            return match.group(1).lower()
        return citation.lower()
    return normalize(citation)


def _matches_evidence(evidence: Any, citation_id: str) -> bool:
    if not isinstance(evidence, Mapping):
        return False
    evidence_id = normalize(_get(evidence, "id", ""))
    if not citation_id:
        return False
    return evidence_id == citation_id or citation_id in evidence_id


def citation_accuracy(prediction: Any, ground_truth: Any = None) -> float:
    """Citation presence (text) or validity against evidence (structured).

    Text predictions score 1.0 when they contain a marker such as ``[c1]``
    or ``CLAIM[e2]``. Structured predictions carry a ``citations`` list
    and score the fraction of ids found in ``ground_truth["evidence"]``.
    """
    if isinstance(prediction, str):
        return 1.0 if _CITATION_MARKER.search(prediction) else 0.0

    if not isinstance(prediction, Mapping):
        return 0.0

    citations = _get(prediction, "citations", [])
    if not isinstance(citations, (list, tuple)) or not citations:
        return 0.0

    evidence = []
    if isinstance(ground_truth, Mapping):
        evidence = _get(ground_truth, "evidence", [])
        if not isinstance(evidence, (list, tuple)):
            evidence = []

    valid = sum(
        1 for citation in citations
        if any(_matches_evidence(ev, _extract_citation_id(citation)) for ev in evidence)
    )
    return valid / len(citations)


def schema_compliance(prediction: Any, schema: Any) -> float:
    """Fraction of the schema's required keys present in the prediction."""
    if hasattr(prediction, "model_dump") and not isinstance(prediction, type):
        prediction = prediction.model_dump()
    if not isinstance(prediction, Mapping) or not isinstance(schema, Mapping):
        return 0.0

    required = _get(schema, "required", [])
    if isinstance(required, str):
        required = [required]
    elif not isinstance(required, (list, tuple, set, frozenset)):
        required = []
    if not required:
        return 1.0

    present_keys = set(prediction.keys()) | {str(key) for key in prediction.keys()}
    present = sum(1 for key in required if _has_key(present_keys, key))
    return present / len(required)


def _has_key(present_keys: set, key: Any) -> bool:
    # Unhashable keys can never be present in a mapping
    try:
        return key in present_keys or str(key) in present_keys
    except TypeError:
        return False


def _passed(outcome: Any) -> bool:
    if isinstance(outcome, Mapping):
        return bool(_get(outcome, "passed", False))
    return outcome is True


def pass_at_k(results: Any, k: int = 1) -> float:
    """Fraction of the first k execution outcomes that passed."""
    if isinstance(results, (bool, Mapping)):
        return 1.0 if _passed(results) else 0.0
    if not isinstance(results, (list, tuple)) or isinstance(k, bool) or not isinstance(k, int):
        return 0.0
    if k < 1:
        return 0.0

    passed = sum(1 for outcome in results[:k] if _passed(outcome))
    return passed / k


def perplexity(log_probs: Any) -> float:
    """exp of the mean negative log-likelihood.

    Returns 0.0 for empty input; true perplexity is undefined there.
    """
    if not isinstance(log_probs, (list, tuple)) or not log_probs:
        return 0.0
    try:
        avg_nll = -sum(log_probs) / len(log_probs)
        return math.exp(avg_nll)
    except OverflowError:
        return math.inf
    except TypeError:
        return 0.0


def _distinct_ratio(tokens: List[str], n: int) -> float:
    grams = ngrams(tokens, n)
    if not grams:
        return 0.0
    return len(set(grams)) / len(grams)


def diversity(text: Any) -> Dict[str, float]:
    """Distinct-1/2/3 ratios of unique to total n-grams."""
    tokens = tokenize(text if isinstance(text, str) else normalize(text))
    return {f"distinct_{n}": _distinct_ratio(tokens, n) for n in (1, 2, 3)}


def factual_consistency(prediction: Any, ground_truth: Any) -> float:
    """Fraction of ground-truth tokens found inside the prediction text."""
    pred_text = normalize(prediction)
    truth_tokens = tokenize(normalize(ground_truth))

    if not truth_tokens:
        return 1.0

    matched = sum(1 for token in truth_tokens if token in pred_text)
    return matched / len(truth_tokens)


def _numeric_values(values: Any) -> List[float]:
    if not isinstance(values, Iterable) or isinstance(values, (str, bytes, Mapping)):
        return []
    return [float(value) for value in values if is_numeric(value)]


def entailment(prediction: Any, ground_truth: Any) -> float:
    """Entailment proxy: token-set F1 stands in for an NLI model."""
    return f1(prediction, ground_truth)


def bert_score(prediction: Any, ground_truth: Any) -> Dict[str, float]:
    """BERTScore proxy: precision, recall and f1 all set to token-set F1."""
    similarity = f1(prediction, ground_truth)
    return {"precision": similarity, "recall": similarity, "f1": similarity}


def accuracy(values: Iterable[float]) -> float:
    """Mean of numeric scores, 0.0 when empty. Non-numeric entries are ignored."""
    values = _numeric_values(values)
    if not values:
        return 0.0
    return float(np.mean(values))


def stderr(values: Iterable[float]) -> float:
    """Standard error of the mean using the sample (n-1) variance."""
    values = _numeric_values(values)
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1) / math.sqrt(len(values)))


# Pairwise text metrics addressable by name
METRICS: Dict[str, Callable[[Any, Any], float]] = {
    "exact_match": exact_match,
    "f1": f1,
    "bleu": bleu,
    "rouge": rouge,
    "meteor": meteor,
    "fuzzy_match": fuzzy_match,
    "citation_accuracy": citation_accuracy,
    "factual_consistency": factual_consistency,
    "entailment": entailment,
}


def score_all(
    prediction: Any,
    ground_truth: Any,
    names: Optional[Iterable[str]] = None
) -> Dict[str, float]:
    """Build a metric record from the named registry metrics."""
    selected = list(names) if names is not None else list(METRICS)
    unknown = [name for name in selected if name not in METRICS]
    if unknown:
        raise KeyError(f"Unknown metrics: {unknown}. Available: {sorted(METRICS)}")
    return {name: METRICS[name](prediction, ground_truth) for name in selected}
