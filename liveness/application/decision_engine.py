# liveness/application/decision_engine.py
from ..domain.errors import InvalidThresholdsError
from ..domain.value_objects import (
    Decision, Thresholds, LIVENESS_SUCCEEDED,
    DECISION_APPROVED, DECISION_MANUAL_REVIEW, DECISION_REJECTED,
    REASON_LIVENESS_FAILED, REASON_FACE_MATCH_BELOW_MIN, REASON_ABOVE_THRESHOLDS,
    REASON_GRAY_ZONE, REASON_CONFIDENCE_BELOW_REVIEW,
)


def validate_thresholds(t: Thresholds) -> Thresholds:
    values = {
        "approve_confidence": t.approve_confidence,
        "approve_match": t.approve_match,
        "review_confidence": t.review_confidence,
        "review_match": t.review_match,
    }
    for name, value in values.items():
        if not 0.0 <= value <= 100.0:
            raise InvalidThresholdsError(f"Umbral {name}={value} fuera de rango (0..100).")
    if t.review_confidence > t.approve_confidence:
        raise InvalidThresholdsError(
            f"review_confidence ({t.review_confidence}) > approve_confidence ({t.approve_confidence})."
        )
    if t.review_match > t.approve_match:
        raise InvalidThresholdsError(
            f"review_match ({t.review_match}) > approve_match ({t.approve_match})."
        )
    return t


def decide(liveness_status: str, liveness_confidence: float, face_match_score: float, t: Thresholds) -> Decision:
    # el orden importa: la primera regla que aplica gana
    if liveness_status != LIVENESS_SUCCEEDED:
        return Decision(DECISION_REJECTED, REASON_LIVENESS_FAILED)

    if face_match_score < t.review_match:
        return Decision(DECISION_REJECTED, REASON_FACE_MATCH_BELOW_MIN)

    if liveness_confidence >= t.approve_confidence and face_match_score >= t.approve_match:
        return Decision(DECISION_APPROVED, REASON_ABOVE_THRESHOLDS)

    if liveness_confidence >= t.review_confidence and face_match_score >= t.review_match:
        return Decision(DECISION_MANUAL_REVIEW, REASON_GRAY_ZONE)

    return Decision(DECISION_REJECTED, REASON_CONFIDENCE_BELOW_REVIEW)
