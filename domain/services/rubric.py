"""Scoring rubrics and the server-side recomputation of the headline scores.

The model is asked to compute ``cv_match_rate`` / ``project_score`` itself.
Its number is kept only when it agrees with the weighted average of the
sub-scores it returned; otherwise the recomputed value is used.
"""
import logging
from typing import Dict, Mapping, Optional

logger = logging.getLogger("rubric")

CV_WEIGHTS: Dict[str, float] = {
    "technical_skills": 0.35,
    "experience_level": 0.25,
    "achievements": 0.20,
    "cultural_fit": 0.20,
}

PROJECT_WEIGHTS: Dict[str, float] = {
    "correctness": 0.30,
    "code_quality": 0.25,
    "resilience": 0.20,
    "documentation": 0.15,
    "creativity": 0.10,
}

CV_TOLERANCE = 0.05
PROJECT_TOLERANCE = 0.25


def weighted_average(scores: Mapping[str, Optional[float]], weights: Mapping[str, float]) -> Optional[float]:
    """Weighted average of 1-5 scores, or None if any dimension is missing."""
    if any(scores.get(k) is None for k in weights):
        return None
    total = sum(weights.values())
    return sum(float(scores[k]) * w for k, w in weights.items()) / total


def _reconcile(name: str, reported: Optional[float], computed: Optional[float],
               low: float, high: float, tolerance: float) -> float:
    reported_ok = reported is not None and low <= reported <= high
    if computed is None:
        return float(reported) if reported_ok else 0.0
    if reported_ok and abs(reported - computed) <= tolerance:
        return float(reported)
    if reported is not None:
        logger.warning(f"{name}: model reported {reported}, rubric gives {computed:.3f}; using rubric")
    return round(computed, 4)


def cv_match_rate(scores: Mapping[str, Optional[float]], reported: Optional[float]) -> float:
    avg = weighted_average(scores, CV_WEIGHTS)
    computed = avg * 0.2 if avg is not None else None
    return _reconcile("cv_match_rate", reported, computed, 0.0, 1.0, CV_TOLERANCE)


def project_score(scores: Mapping[str, Optional[float]], reported: Optional[float]) -> float:
    computed = weighted_average(scores, PROJECT_WEIGHTS)
    return _reconcile("project_score", reported, computed, 1.0, 5.0, PROJECT_TOLERANCE)
