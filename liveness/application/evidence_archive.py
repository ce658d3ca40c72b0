# liveness/application/evidence_archive.py
import logging
from typing import Optional

from ..domain.interfaces import ObjectStorage
from ..domain.value_objects import EvidenceImage, EvidencePointer
from .images import to_canonical_jpeg
from .storage_keys import build_evidence_key, assert_within_prefix

logger = logging.getLogger("liveness.storage")

LIFECYCLE_RULE_ID = "liveness-evidence-expiration"


class EvidenceArchive:
    """Guarda la evidencia elegida en {prefix}/{tenant}/{session}/canonical.jpg."""

    def __init__(
        self,
        storage: ObjectStorage,
        bucket: Optional[str],
        prefix: str,
        kms_key_id: Optional[str] = None,
        algorithm_version: str = "",
    ):
        self.storage = storage
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.kms_key_id = kms_key_id
        self.algorithm_version = algorithm_version

    @property
    def enabled(self) -> bool:
        return bool(self.bucket)

    def store(self, session_id: str, tenant_id: Optional[str], evidence: EvidenceImage, data: bytes) -> Optional[EvidencePointer]:
        if not self.enabled:
            logger.info({"event": "evidence_archive_disabled", "session_id": session_id})
            return None

        key = assert_within_prefix(build_evidence_key(self.prefix, tenant_id, session_id), self.prefix)
        metadata = {
            "session-id": session_id,
            "tenant-id": tenant_id or "default",
            "source": evidence.source,
            "strategy": evidence.strategy,
            "algorithm-version": self.algorithm_version,
        }
        self.storage.put_object(
            self.bucket,
            key,
            to_canonical_jpeg(data),
            content_type="image/jpeg",
            kms_key_id=self.kms_key_id,
            metadata=metadata,
        )
        logger.info({"event": "evidence_stored", "session_id": session_id, "bucket": self.bucket, "key": key})
        return EvidencePointer(bucket=self.bucket, key=key)

    def apply_retention(self, days: int) -> bool:
        """Regla de expiración por prefijo. Best-effort: un fallo no detiene el arranque."""
        if not self.enabled:
            return False
        if not self.prefix:
            # sin prefijo la regla expiraría todo el bucket
            logger.warning({"event": "evidence_lifecycle_skipped_no_prefix", "bucket": self.bucket})
            return False
        try:
            self.storage.put_expiration_rule(self.bucket, self.prefix + "/", days, LIFECYCLE_RULE_ID)
        except Exception as ex:
            logger.warning({"event": "evidence_lifecycle_error", "bucket": self.bucket, "error": str(ex)})
            return False
        logger.info({"event": "evidence_lifecycle_applied", "bucket": self.bucket, "prefix": self.prefix, "days": days})
        return True
