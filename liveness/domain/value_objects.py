# liveness/domain/value_objects.py
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Optional, Tuple, Union, Dict, Any

LIVENESS_SUCCEEDED = "SUCCEEDED"

# ---- Evidencia / decisión (vocabulario fijo) ----
SOURCE_REFERENCE_IMAGE = "ReferenceImage"
SOURCE_AUDIT_IMAGE = "AuditImage"

STRATEGY_REFERENCE_PRIORITY = "reference-image-priority"
STRATEGY_BEST_AUDIT_FRAME = "highest-quality-audit-frame"

DECISION_APPROVED = "approved"
DECISION_MANUAL_REVIEW = "manual_review"
DECISION_REJECTED = "rejected"

REASON_LIVENESS_FAILED = "liveness_failed"
REASON_FACE_MATCH_BELOW_MIN = "face_match_below_min_threshold"
REASON_ABOVE_THRESHOLDS = "liveness_and_face_match_above_thresholds"
REASON_GRAY_ZONE = "score_in_gray_zone"
REASON_CONFIDENCE_BELOW_REVIEW = "confidence_below_review_threshold"


@dataclass(frozen=True)
class Thresholds:
    approve_confidence: float = 90.0   # 0..100 (Rekognition Confidence)
    approve_match: float = 92.0        # 0..100 (CompareFaces Similarity)
    review_confidence: float = 85.0
    review_match: float = 85.0


# ---- Imagen: variante etiquetada (bytes en línea o puntero a S3) ----

@dataclass(frozen=True)
class InlineImage:
    data: bytes = field(repr=False)

    def __repr__(self) -> str:
        return f"InlineImage(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class StoredImage:
    bucket: str
    key: str
    version: Optional[str] = None


ImageRef = Union[InlineImage, StoredImage]


@dataclass(frozen=True)
class AuditImage:
    index: int
    image: Optional[ImageRef]
    brightness: Optional[float] = None   # None = no medido
    sharpness: Optional[float] = None

    @property
    def measured(self) -> bool:
        return self.brightness is not None and self.sharpness is not None


@dataclass(frozen=True)
class LivenessSession:
    session_id: str
    region: str


@dataclass(frozen=True)
class LivenessOutcome:
    session_id: str
    status: str
    confidence: float
    reference_image: Optional[ImageRef] = None
    audit_images: Tuple[AuditImage, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == LIVENESS_SUCCEEDED


@dataclass(frozen=True)
class EvidenceImage:
    image: Optional[ImageRef]
    source: str
    strategy: str
    index: Optional[int] = None


@dataclass(frozen=True)
class FaceVerificationResult:
    score: float
    match: bool
    threshold: float
    source: str
    selfie_bucket: str
    selfie_key: str


@dataclass(frozen=True)
class Decision:
    decision: str
    reason: str

    @property
    def approved(self) -> bool:
        return self.decision == DECISION_APPROVED


@dataclass(frozen=True)
class EvidencePointer:
    bucket: str
    key: str


@dataclass(frozen=True)
class ValidationRecord:
    session_id: str
    tenant_id: Optional[str]
    prospect_id: Optional[str]
    liveness_status: str
    liveness_confidence: float
    face_match_score: float
    face_match_threshold: float
    match: bool
    evidence_source: str
    evidence_strategy: str
    selfie_key: str
    decision: str
    reason: str
    approved: bool
    algorithm_version: str
    created_at: str
    selfie_bucket: Optional[str] = None
    evidence: Optional[EvidencePointer] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationRecord":
        payload = dict(data)
        ev = payload.get("evidence")
        payload["evidence"] = EvidencePointer(**ev) if ev else None
        return cls(**payload)
