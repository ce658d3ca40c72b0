# liveness/domain/interfaces.py
from __future__ import annotations
from typing import Protocol, Optional, Dict, Tuple, List

from .value_objects import LivenessOutcome, LivenessSession, ImageRef, ValidationRecord

# ---- Servicios externos (puertos) ----

class LivenessProvider(Protocol):
    """Rekognition Face Liveness: crea sesiones y consulta su resultado."""
    region: str

    def create_session(self) -> LivenessSession:
        ...

    def get_session_result(self, session_id: str) -> LivenessOutcome:
        ...

class ObjectStorage(Protocol):
    def get_object(self, bucket: str, key: str, version: Optional[str] = None) -> bytes:
        """Lanza StorageNotFoundError si el objeto no existe."""
        ...

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        kms_key_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        ...

    def put_expiration_rule(self, bucket: str, prefix: str, days: int, rule_id: str) -> None:
        ...

class FaceComparator(Protocol):
    def compare(self, source: bytes, target: ImageRef, similarity_threshold: float) -> List[float]:
        """Devuelve las similitudes (0..100) de los candidatos, mejor primero."""
        ...

class ImageQualityScorer(Protocol):
    def measure(self, data: bytes) -> Optional[Tuple[float, float]]:
        """(brightness, sharpness) en 0..100, o None si la imagen no se puede decodificar."""
        ...

# ---- Persistencia de resultados ----

class ValidationStore(Protocol):
    def put(self, session_id: str, record: ValidationRecord) -> None:
        ...

    def get(self, session_id: str) -> Optional[ValidationRecord]:
        ...
