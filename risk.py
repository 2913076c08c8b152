import logging
from typing import Dict, List

from errors import DuplicateThreshold, QuestionnaireConfigError, ScoreBelowAllThresholds

logger = logging.getLogger(__name__)


def check_thresholds(thresholds: List[Dict]) -> List[Dict]:
    """Return the thresholds ordered by min_score, rejecting malformed or tied entries."""
    for threshold in thresholds:
        if "label" not in threshold or "min_score" not in threshold:
            raise QuestionnaireConfigError(f"Risk threshold needs a label and a min_score: {threshold}")
        min_score = threshold["min_score"]
        if not isinstance(min_score, (int, float)) or isinstance(min_score, bool):
            raise QuestionnaireConfigError(
                f"Risk level {threshold['label']!r} has a non-numeric min_score: {min_score!r}"
            )
    ordered = sorted(thresholds, key=lambda t: t["min_score"])
    for lower, upper in zip(ordered, ordered[1:]):
        if lower["min_score"] == upper["min_score"]:
            raise DuplicateThreshold(
                f"Risk levels {lower['label']!r} and {upper['label']!r} share min_score {lower['min_score']}"
            )
    labels = [t["label"] for t in ordered]
    if len(set(labels)) != len(labels):
        raise QuestionnaireConfigError(f"Risk level labels must be unique: {labels}")
    return ordered


def classify(score: float, thresholds: List[Dict]) -> str:
    ordered = check_thresholds(thresholds)
    label = None
    for threshold in ordered:
        if threshold["min_score"] <= score:
            label = threshold["label"]
        else:
            break
    if label is None:
        lowest = ordered[0]["min_score"] if ordered else None
        raise ScoreBelowAllThresholds(f"Score {score} is below every risk threshold (lowest: {lowest})")
    return label


def risk_rank(label: str, thresholds: List[Dict]) -> int:
    """Position of a risk label in ascending risk order."""
    labels = [t["label"] for t in check_thresholds(thresholds)]
    if label not in labels:
        raise QuestionnaireConfigError(f"Unknown risk level {label!r}; expected one of {labels}")
    return labels.index(label)


def meets_level(label: str, level: str, thresholds: List[Dict]) -> bool:
    return risk_rank(label, thresholds) >= risk_rank(level, thresholds)
