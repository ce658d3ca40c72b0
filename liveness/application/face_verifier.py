# liveness/application/face_verifier.py
import logging
from typing import Optional

from ..domain.errors import MissingConfigurationError
from ..domain.interfaces import ObjectStorage, FaceComparator
from ..domain.value_objects import EvidenceImage, FaceVerificationResult, InlineImage
from .images import load_image_bytes
from .storage_keys import build_reference_key, assert_allowed_override_key

logger = logging.getLogger("liveness.verify")


class FaceVerifier:
    """Compara la selfie canónica del prospecto contra la evidencia de liveness."""

    def __init__(
        self,
        storage: ObjectStorage,
        comparator: FaceComparator,
        selfie_bucket: Optional[str],
        selfie_key_template: str,
        similarity_threshold: float,
        allow_key_override: bool = False,
        candidate_threshold: Optional[float] = None,
    ):
        self.storage = storage
        self.comparator = comparator
        self.selfie_bucket = selfie_bucket
        self.selfie_key_template = selfie_key_template
        self.similarity_threshold = similarity_threshold
        self.allow_key_override = allow_key_override
        # CompareFaces descarta caras bajo SimilarityThreshold: se pide desde el umbral de revisión
        self.candidate_threshold = similarity_threshold if candidate_threshold is None else candidate_threshold

    def resolve_selfie_key(self, tenant_id: Optional[str], prospect_id: Optional[str], override_key: Optional[str]) -> str:
        if override_key:
            return assert_allowed_override_key(
                override_key, self.selfie_key_template, tenant_id, prospect_id, self.allow_key_override
            )
        return build_reference_key(self.selfie_key_template, tenant_id, prospect_id)

    def compare_against_reference(
        self,
        tenant_id: Optional[str],
        prospect_id: Optional[str],
        override_key: Optional[str],
        evidence: EvidenceImage,
    ) -> FaceVerificationResult:
        if not self.selfie_bucket:
            raise MissingConfigurationError(
                "Falta variable SELFIE_BUCKET para recuperar la selfie canónica del prospecto."
            )

        selfie_key = self.resolve_selfie_key(tenant_id, prospect_id, override_key)
        selfie_bytes = self.storage.get_object(self.selfie_bucket, selfie_key)
        evidence_bytes = load_image_bytes(self.storage, evidence.image)

        similarities = self.comparator.compare(
            selfie_bytes, InlineImage(evidence_bytes), self.candidate_threshold
        )
        score = float(similarities[0]) if similarities else 0.0
        match = score >= self.similarity_threshold

        logger.info({
            "event": "similarity",
            "selfie_key": selfie_key,
            "source": evidence.source,
            "strategy": evidence.strategy,
            "candidates": len(similarities),
            "similarity": round(score, 2),
            "threshold_similarity": self.similarity_threshold,
            "threshold_candidates": self.candidate_threshold,
            "match_ok": match,
        })

        return FaceVerificationResult(
            score=score,
            match=match,
            threshold=self.similarity_threshold,
            source=evidence.source,
            selfie_bucket=self.selfie_bucket,
            selfie_key=selfie_key,
        )
