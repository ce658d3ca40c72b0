# liveness/application/liveness_session_service.py
"""
Orquestador del flujo de liveness:

  POST session -> create_face_liveness_session
  POST result  -> resultado de la sesión -> evidencia -> CompareFaces -> decisión -> store

Estados observados al consultar una sesión:
  CREATED -> FAILED_UPSTREAM (estado != SUCCEEDED, no se registra)
          -> NO_EVIDENCE     (SUCCEEDED sin imagen utilizable, no se registra)
          -> VERIFIED        (se registra en el ValidationStore)
"""
import datetime
import logging
import threading
import weakref
from dataclasses import dataclass, replace
from typing import Optional

from ..domain.errors import RequestValidationError, LivenessStatusError, NoEvidenceError, RecordNotFoundError
from ..domain.interfaces import LivenessProvider, ObjectStorage, ImageQualityScorer, ValidationStore
from ..domain.value_objects import (
    Decision, EvidenceImage, FaceVerificationResult, InlineImage,
    LivenessOutcome, LivenessSession, Thresholds, ValidationRecord,
)
from .audit_quality import measure_audit_quality
from .decision_engine import decide
from .evidence_archive import EvidenceArchive
from .evidence_selector import select_canonical_evidence
from .face_verifier import FaceVerifier
from .images import load_image_bytes

logger = logging.getLogger("liveness.session")


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass(frozen=True)
class ResultRequest:
    session_id: str
    tenant_id: Optional[str] = None
    prospect_id: Optional[str] = None
    selfie_key: Optional[str] = None


@dataclass(frozen=True)
class ResolutionResult:
    record: ValidationRecord
    outcome: LivenessOutcome
    evidence: EvidenceImage
    verification: FaceVerificationResult
    decision: Decision
    live: bool


class _SessionLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


class LivenessSessionService:
    def __init__(
        self,
        provider: LivenessProvider,
        storage: ObjectStorage,
        verifier: FaceVerifier,
        archive: EvidenceArchive,
        store: ValidationStore,
        thresholds: Thresholds,
        algorithm_version: str,
        quality_scorer: Optional[ImageQualityScorer] = None,
    ):
        self.provider = provider
        self.storage = storage
        self.verifier = verifier
        self.archive = archive
        self.store = store
        self.t = thresholds
        self.algorithm_version = algorithm_version
        self.quality_scorer = quality_scorer
        # un lock por session_id mientras haya una resolución en curso
        self._locks: "weakref.WeakValueDictionary[str, _SessionLock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: str) -> _SessionLock:
        with self._locks_guard:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = _SessionLock()
                self._locks[session_id] = entry
            return entry

    # ---- session ----
    def start_session(self, tenant_id: Optional[str] = None) -> LivenessSession:
        session = self.provider.create_session()
        logger.info({"event": "session_created", "session_id": session.session_id, "tenant_id": tenant_id or "default"})
        return session

    # ---- result ----
    def resolve_result(self, req: ResultRequest) -> ResolutionResult:
        session_id = (req.session_id or "").strip()
        if not session_id:
            raise RequestValidationError("Falta session_id")

        entry = self._session_lock(session_id)
        with entry.lock:
            return self._resolve(replace(req, session_id=session_id))

    def _resolve(self, req: ResultRequest) -> ResolutionResult:
        outcome = self.provider.get_session_result(req.session_id)
        logger.info({
            "event": "liveness_result",
            "session_id": req.session_id,
            "status": outcome.status,
            "confidence": outcome.confidence,
            "has_reference_image": outcome.reference_image is not None,
            "audit_images": len(outcome.audit_images),
        })

        if not outcome.succeeded:
            decision = decide(outcome.status, outcome.confidence, 0.0, self.t)
            logger.info({"event": "final_decision", "session_id": req.session_id,
                         "decision": decision.decision, "reason": decision.reason})
            raise LivenessStatusError(
                "La validación no fue exitosa o expiró.",
                status=outcome.status,
                decision=decision,
                confidence=outcome.confidence,
            )

        if self.quality_scorer is not None:
            outcome = measure_audit_quality(outcome, self.storage, self.quality_scorer)

        evidence = select_canonical_evidence(outcome)
        if evidence is None:
            logger.info({"event": "no_evidence", "session_id": req.session_id})
            raise NoEvidenceError("Liveness SUCCEEDED pero no hay imagen de evidencia para comparación facial.")

        logger.info({"event": "evidence_selected", "session_id": req.session_id,
                     "source": evidence.source, "strategy": evidence.strategy, "index": evidence.index})

        evidence_bytes = load_image_bytes(self.storage, evidence.image)
        inline_evidence = replace(evidence, image=InlineImage(evidence_bytes))

        verification = self.verifier.compare_against_reference(
            tenant_id=req.tenant_id,
            prospect_id=req.prospect_id,
            override_key=req.selfie_key,
            evidence=inline_evidence,
        )
        pointer = self.archive.store(req.session_id, req.tenant_id, evidence, evidence_bytes)

        decision = decide(outcome.status, outcome.confidence, verification.score, self.t)
        live = outcome.confidence >= self.t.approve_confidence

        record = ValidationRecord(
            session_id=req.session_id,
            tenant_id=req.tenant_id,
            prospect_id=req.prospect_id,
            liveness_status=outcome.status,
            liveness_confidence=outcome.confidence,
            face_match_score=verification.score,
            face_match_threshold=verification.threshold,
            match=verification.match,
            evidence_source=evidence.source,
            evidence_strategy=evidence.strategy,
            selfie_bucket=verification.selfie_bucket,
            selfie_key=verification.selfie_key,
            decision=decision.decision,
            reason=decision.reason,
            approved=decision.approved,
            algorithm_version=self.algorithm_version,
            created_at=_now_iso(),
            evidence=pointer,
        )
        self.store.put(req.session_id, record)

        logger.info({
            "event": "final_decision",
            "session_id": req.session_id,
            "decision": decision.decision,
            "reason": decision.reason,
            "liveness_confidence": round(outcome.confidence, 2),
            "similarity": round(verification.score, 2),
            "approved": decision.approved,
        })

        return ResolutionResult(
            record=record,
            outcome=outcome,
            evidence=evidence,
            verification=verification,
            decision=decision,
            live=live,
        )

    # ---- consulta ----
    def get_record(self, session_id: str) -> ValidationRecord:
        record = self.store.get(session_id)
        if record is None:
            raise RecordNotFoundError("No existe validación para la sesión solicitada.")
        return record
