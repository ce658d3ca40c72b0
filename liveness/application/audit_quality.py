# liveness/application/audit_quality.py
import logging
from dataclasses import replace

from ..domain.errors import LivenessError
from ..domain.interfaces import ObjectStorage, ImageQualityScorer
from ..domain.value_objects import InlineImage, LivenessOutcome
from .images import load_image_bytes

logger = logging.getLogger("liveness.verify")


def measure_audit_quality(outcome: LivenessOutcome, storage: ObjectStorage, scorer: ImageQualityScorer) -> LivenessOutcome:
    """
    Completa brightness/sharpness de los AuditImages que no traen calidad.
    Solo aplica cuando no hay ReferenceImage (si la hay, siempre gana).
    Retorna un LivenessOutcome nuevo; el original no se modifica.
    """
    if outcome.reference_image is not None or not outcome.audit_images:
        return outcome

    measured = []
    for audit in outcome.audit_images:
        if audit.measured or audit.image is None:
            measured.append(audit)
            continue
        image = audit.image
        try:
            data = load_image_bytes(storage, audit.image)
            # los bytes ya descargados viajan inline: el frame elegido no se vuelve a pedir
            image = InlineImage(data)
            quality = scorer.measure(data)
        except LivenessError as ex:
            logger.info({"event": "audit_quality_unavailable", "index": audit.index, "error": ex.message})
            quality = None
        brightness, sharpness = quality if quality else (0.0, 0.0)
        measured.append(replace(audit, image=image, brightness=brightness, sharpness=sharpness))

    logger.info({
        "event": "audit_quality",
        "session_id": outcome.session_id,
        "frames": [
            {"index": a.index, "bright": round(a.brightness or 0.0, 2), "sharp": round(a.sharpness or 0.0, 2)}
            for a in measured
        ],
    })
    return replace(outcome, audit_images=tuple(measured))
