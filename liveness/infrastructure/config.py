# liveness/infrastructure/config.py
import os
import re
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from botocore.config import Config

from ..domain.errors import ConfigurationError
from ..domain.value_objects import Thresholds
from ..application.decision_engine import validate_thresholds
from ..application.evidence_archive import EvidenceArchive
from ..application.face_verifier import FaceVerifier
from ..application.liveness_session_service import LivenessSessionService
from .aws import build_client
from .quality.opencv_quality import OpenCvQualityScorer
from .rekognition.face_comparator import RekognitionFaceComparator
from .rekognition.liveness_client import RekognitionLivenessClient
from .storage.s3_object_storage import S3ObjectStorage
from .storage.validation_stores import InMemoryValidationStore, FileValidationStore

logger = logging.getLogger("liveness.session")

DEFAULT_SELFIE_KEY_TEMPLATE = "tenants/{tenant_id}/prospects/{prospect_id}/selfie.jpg"
DEFAULT_REGION = "us-east-1"

# --- Helpers ENV robustos (soportan "92 # comentario") ---
_NUMBER = re.compile(r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?")


def _env_first(env: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = (env.get(key) or "").strip()
        if value:
            return value
    return None


def _env_float(env: Mapping[str, str], var: str, default: float) -> float:
    raw = env.get(var)
    if raw is None or not str(raw).strip():
        return float(default)
    m = _NUMBER.search(str(raw))
    if not m:
        raise ConfigurationError(f"{var}={raw!r} no es numérico.")
    return float(m.group(0))


def _env_int(env: Mapping[str, str], var: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(var)
    if raw is None or not str(raw).strip():
        return default
    m = re.search(r"-?\d+", str(raw))
    if not m:
        raise ConfigurationError(f"{var}={raw!r} no es entero.")
    return int(m.group(0))


def _env_bool(env: Mapping[str, str], var: str, default: bool) -> bool:
    raw = env.get(var)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LivenessSettings:
    thresholds: Thresholds
    rekognition_region: str
    s3_region: str
    selfie_bucket: Optional[str]
    selfie_key_template: str
    allow_selfie_key_override: bool
    evidence_bucket: Optional[str]
    evidence_prefix: str
    evidence_kms_key_id: Optional[str]
    evidence_retention_days: int
    evidence_apply_lifecycle: bool
    session_kms_key_id: Optional[str]
    session_output_bucket: Optional[str]
    session_output_prefix: Optional[str]
    audit_images_limit: Optional[int]
    measure_audit_quality: bool
    algorithm_version: str
    store_backend: str
    flow_log_dir: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LivenessSettings":
        env = os.environ if env is None else env

        thresholds = validate_thresholds(Thresholds(
            approve_confidence=_env_float(env, "LIVENESS_MIN_CONFIDENCE", 90.0),
            approve_match=_env_float(env, "FACE_MATCH_THRESHOLD", 92.0),
            review_confidence=_env_float(env, "REVIEW_CONFIDENCE_THRESHOLD", 85.0),
            review_match=_env_float(env, "REVIEW_MATCH_THRESHOLD", 85.0),
        ))

        rekognition_region = _env_first(env, "REKOGNITION_REGION", "AWS_REGION") or DEFAULT_REGION
        store_backend = (_env_first(env, "VALIDATION_STORE_BACKEND") or "memory").lower()
        if store_backend not in ("memory", "file"):
            raise ConfigurationError(f"VALIDATION_STORE_BACKEND={store_backend!r} no soportado (memory|file).")

        retention_days = _env_int(env, "EVIDENCE_RETENTION_DAYS", 30)
        if retention_days is None or retention_days < 1:
            raise ConfigurationError("EVIDENCE_RETENTION_DAYS debe ser >= 1.")

        audit_limit = _env_int(env, "LIVENESS_AUDIT_IMAGES_LIMIT", None)
        if audit_limit is not None and not 0 <= audit_limit <= 4:
            raise ConfigurationError("LIVENESS_AUDIT_IMAGES_LIMIT debe estar entre 0 y 4.")

        evidence_prefix = (_env_first(env, "EVIDENCE_PREFIX") or "liveness-evidence").strip("/")
        if not evidence_prefix or ".." in evidence_prefix:
            raise ConfigurationError("EVIDENCE_PREFIX inválido.")

        return cls(
            thresholds=thresholds,
            rekognition_region=rekognition_region,
            s3_region=_env_first(env, "S3_SELFIE_REGION", "REKOGNITION_REGION", "AWS_REGION") or DEFAULT_REGION,
            selfie_bucket=_env_first(env, "SELFIE_BUCKET"),
            selfie_key_template=_env_first(env, "SELFIE_KEY_TEMPLATE") or DEFAULT_SELFIE_KEY_TEMPLATE,
            allow_selfie_key_override=_env_bool(env, "ALLOW_SELFIE_KEY_OVERRIDE", False),
            evidence_bucket=_env_first(env, "EVIDENCE_BUCKET"),
            evidence_prefix=evidence_prefix,
            evidence_kms_key_id=_env_first(env, "EVIDENCE_KMS_KEY_ID"),
            evidence_retention_days=retention_days,
            evidence_apply_lifecycle=_env_bool(env, "EVIDENCE_APPLY_LIFECYCLE", False),
            session_kms_key_id=_env_first(env, "LIVENESS_SESSION_KMS_KEY_ID"),
            session_output_bucket=_env_first(env, "LIVENESS_OUTPUT_BUCKET"),
            session_output_prefix=_env_first(env, "LIVENESS_OUTPUT_PREFIX"),
            audit_images_limit=audit_limit,
            measure_audit_quality=_env_bool(env, "LIVENESS_MEASURE_AUDIT_QUALITY", True),
            algorithm_version=_env_first(env, "VERIFICATION_ALGORITHM_VERSION") or "rekognition-liveness-tiered-v1",
            store_backend=store_backend,
            flow_log_dir=_env_first(env, "FLOW_LOG_DIR") or os.path.join(os.getcwd(), "liveness_flows"),
            access_key_id=_env_first(env, "LIVENESS_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
            secret_access_key=_env_first(env, "LIVENESS_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
            session_token=_env_first(env, "LIVENESS_SESSION_TOKEN", "AWS_SESSION_TOKEN"),
        )


def _aws_client(service: str, region: str, settings: LivenessSettings):
    return build_client(
        service,
        region,
        access_key_id=settings.access_key_id,
        secret_access_key=settings.secret_access_key,
        session_token=settings.session_token,
        config=Config(retries={"max_attempts": 1, "mode": "standard"}),
    )


def build_validation_store(settings: LivenessSettings):
    if settings.store_backend == "file":
        return FileValidationStore(settings.flow_log_dir)
    return InMemoryValidationStore()


def build_evidence_archive(settings: LivenessSettings, storage) -> EvidenceArchive:
    return EvidenceArchive(
        storage=storage,
        bucket=settings.evidence_bucket,
        prefix=settings.evidence_prefix,
        kms_key_id=settings.evidence_kms_key_id,
        algorithm_version=settings.algorithm_version,
    )


def build_liveness_service(settings: LivenessSettings) -> LivenessSessionService:
    rekognition = _aws_client("rekognition", settings.rekognition_region, settings)
    storage = S3ObjectStorage(_aws_client("s3", settings.s3_region, settings))

    provider = RekognitionLivenessClient(
        rekognition,
        region=settings.rekognition_region,
        kms_key_id=settings.session_kms_key_id,
        output_bucket=settings.session_output_bucket,
        output_prefix=settings.session_output_prefix,
        audit_images_limit=settings.audit_images_limit,
    )
    verifier = FaceVerifier(
        storage=storage,
        comparator=RekognitionFaceComparator(rekognition),
        selfie_bucket=settings.selfie_bucket,
        selfie_key_template=settings.selfie_key_template,
        similarity_threshold=settings.thresholds.approve_match,
        allow_key_override=settings.allow_selfie_key_override,
        candidate_threshold=settings.thresholds.review_match,
    )
    return LivenessSessionService(
        provider=provider,
        storage=storage,
        verifier=verifier,
        archive=build_evidence_archive(settings, storage),
        store=build_validation_store(settings),
        thresholds=settings.thresholds,
        algorithm_version=settings.algorithm_version,
        quality_scorer=OpenCvQualityScorer() if settings.measure_audit_quality else None,
    )


@lru_cache(maxsize=1)
def get_settings() -> LivenessSettings:
    return LivenessSettings.from_env()


@lru_cache(maxsize=1)
def get_liveness_service() -> LivenessSessionService:
    return build_liveness_service(get_settings())


def apply_evidence_retention(settings: LivenessSettings) -> bool:
    if not settings.evidence_apply_lifecycle:
        return False
    service = get_liveness_service()
    return service.archive.apply_retention(settings.evidence_retention_days)
