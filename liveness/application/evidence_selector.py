# liveness/application/evidence_selector.py
from typing import Optional

from ..domain.value_objects import (
    AuditImage, EvidenceImage, LivenessOutcome,
    SOURCE_REFERENCE_IMAGE, SOURCE_AUDIT_IMAGE,
    STRATEGY_REFERENCE_PRIORITY, STRATEGY_BEST_AUDIT_FRAME,
)


def audit_frame_score(audit: AuditImage) -> float:
    # +index: desempate estable a favor del frame capturado más tarde
    return (audit.brightness or 0.0) + (audit.sharpness or 0.0) + audit.index


def select_canonical_evidence(outcome: LivenessOutcome) -> Optional[EvidenceImage]:
    """
    Elige la imagen de evidencia para comparar contra la selfie.

    1) ReferenceImage siempre gana (sin importar la calidad de los AuditImages).
    2) Sin AuditImages -> None.
    3) AuditImage con mayor brightness + sharpness + index.
    """
    if outcome.reference_image is not None:
        return EvidenceImage(
            image=outcome.reference_image,
            source=SOURCE_REFERENCE_IMAGE,
            strategy=STRATEGY_REFERENCE_PRIORITY,
        )

    if not outcome.audit_images:
        return None

    ranked = sorted(outcome.audit_images, key=audit_frame_score, reverse=True)
    best = ranked[0]
    return EvidenceImage(
        image=best.image,
        source=SOURCE_AUDIT_IMAGE,
        strategy=STRATEGY_BEST_AUDIT_FRAME,
        index=best.index,
    )
