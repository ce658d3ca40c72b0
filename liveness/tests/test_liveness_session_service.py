import threading
from unittest import TestCase, mock

from liveness.domain.errors import (
    RequestValidationError, LivenessStatusError, NoEvidenceError, RecordNotFoundError,
    PathEscapeError, StorageNotFoundError,
)
from liveness.domain.value_objects import AuditImage, StoredImage
from liveness.infrastructure.storage.validation_stores import InMemoryValidationStore
from liveness.application.liveness_session_service import ResultRequest
from liveness.tests.fakes import (
    build_service, outcome, audit, make_jpeg, make_png, FakeObjectStorage, FakeQualityScorer, REFERENCE,
    SELFIE, SELFIE_BUCKET,
)

CANONICAL = "tenants/acme/prospects/p-1/selfie.jpg"


def _req(session_id="sess-1", **kwargs):
    kwargs.setdefault("tenant_id", "acme")
    kwargs.setdefault("prospect_id", "p-1")
    return ResultRequest(session_id=session_id, **kwargs)


class StartSessionTest(TestCase):
    def test_returns_session_and_region(self):
        service, provider, _, _ = build_service({})
        session = service.start_session("acme")
        self.assertEqual(session.session_id, "sess-1")
        self.assertEqual(session.region, "us-east-1")
        self.assertEqual(provider.created, 1)


class ResolveResultTest(TestCase):
    def test_approved_scenario(self):
        service, _, _, _ = build_service({"sess-1": outcome(confidence=96.0)}, similarities=(94.0,))
        result = service.resolve_result(_req())
        self.assertEqual(result.decision.decision, "approved")
        self.assertTrue(result.record.approved)
        self.assertTrue(result.live)
        self.assertEqual(result.record.reason, "liveness_and_face_match_above_thresholds")
        self.assertEqual(result.record.evidence_source, "ReferenceImage")
        self.assertEqual(result.record.algorithm_version, "test-v1")
        self.assertEqual(result.record.selfie_key, CANONICAL)
        self.assertEqual(result.record.selfie_bucket, "selfies")
        self.assertIsNone(result.record.evidence)

    def test_low_similarity_rejected(self):
        service, _, _, _ = build_service({"sess-1": outcome(confidence=96.0)}, similarities=(80.0,))
        result = service.resolve_result(_req())
        self.assertEqual(result.decision.decision, "rejected")
        self.assertEqual(result.decision.reason, "face_match_below_min_threshold")
        self.assertFalse(result.record.approved)

    def test_gray_zone(self):
        service, _, _, _ = build_service({"sess-1": outcome(confidence=87.0)}, similarities=(87.0,))
        result = service.resolve_result(_req())
        self.assertEqual(result.decision.decision, "manual_review")
        self.assertEqual(result.decision.reason, "score_in_gray_zone")

    def test_expired_is_rejected_without_fetching_evidence(self):
        service, _, storage, comparator = build_service({"sess-1": outcome(status="EXPIRED")})
        with self.assertRaises(LivenessStatusError) as ctx:
            service.resolve_result(_req())
        self.assertEqual(ctx.exception.status, "EXPIRED")
        self.assertEqual(ctx.exception.decision.decision, "rejected")
        self.assertEqual(ctx.exception.decision.reason, "liveness_failed")
        self.assertEqual(storage.gets, [])
        self.assertEqual(comparator.calls, [])
        self.assertIsNone(service.store.get("sess-1"))

    def test_no_evidence_not_recorded(self):
        service, _, _, comparator = build_service({"sess-1": outcome(reference=None)})
        with self.assertRaises(NoEvidenceError):
            service.resolve_result(_req())
        self.assertEqual(comparator.calls, [])
        self.assertIsNone(service.store.get("sess-1"))

    def test_missing_session_id(self):
        service, _, _, _ = build_service({})
        with self.assertRaises(RequestValidationError):
            service.resolve_result(_req(session_id="  "))

    def test_missing_selfie_not_recorded(self):
        service, _, _, _ = build_service({"sess-1": outcome()}, storage=FakeObjectStorage())
        with self.assertRaises(StorageNotFoundError):
            service.resolve_result(_req())
        self.assertIsNone(service.store.get("sess-1"))

    def test_record_stored_and_returned(self):
        service, _, _, _ = build_service({"sess-1": outcome()})
        result = service.resolve_result(_req())
        self.assertEqual(service.get_record("sess-1"), result.record)

    def test_get_record_not_found(self):
        service, _, _, _ = build_service({})
        with self.assertRaises(RecordNotFoundError):
            service.get_record("nope")

    def test_requery_overwrites_record(self):
        service, provider, _, _ = build_service({"sess-1": outcome(confidence=87.0)}, similarities=(87.0,))
        first = service.resolve_result(_req())
        provider.outcomes["sess-1"] = outcome(confidence=96.0)
        service.verifier.comparator.similarities = [95.0]
        second = service.resolve_result(_req())
        self.assertEqual(first.decision.decision, "manual_review")
        self.assertEqual(service.get_record("sess-1").decision, "approved")
        self.assertEqual(service.get_record("sess-1"), second.record)


class EvidenceArchiveFlowTest(TestCase):
    def test_evidence_written_under_prefix(self):
        service, _, storage, _ = build_service({"sess-1": outcome()}, evidence_bucket="evidence")
        result = service.resolve_result(_req())
        self.assertEqual(len(storage.puts), 1)
        put = storage.puts[0]
        self.assertEqual(put["bucket"], "evidence")
        self.assertEqual(put["key"], "liveness-evidence/acme/sess-1/canonical.jpg")
        self.assertEqual(put["content_type"], "image/jpeg")
        self.assertEqual(put["data"], REFERENCE)
        self.assertEqual(put["metadata"]["source"], "ReferenceImage")
        self.assertEqual(put["metadata"]["algorithm-version"], "test-v1")
        self.assertEqual(result.record.evidence.key, put["key"])

    def test_png_evidence_normalized_to_jpeg(self):
        png = make_png()
        service, _, storage, _ = build_service({"sess-1": outcome(reference=png)}, evidence_bucket="evidence")
        service.resolve_result(_req())
        self.assertTrue(storage.puts[0]["data"].startswith(b"\xff\xd8"))

    def test_escape_is_fatal(self):
        service, _, storage, _ = build_service({"sess-1": outcome()}, evidence_bucket="evidence")
        with mock.patch(
            "liveness.application.evidence_archive.build_evidence_key",
            return_value="other-prefix/acme/sess-1/canonical.jpg",
        ):
            with self.assertRaises(PathEscapeError):
                service.resolve_result(_req())
        self.assertEqual(storage.puts, [])
        self.assertIsNone(service.store.get("sess-1"))


class AuditFrameFlowTest(TestCase):
    def test_best_audit_frame_measured_and_selected(self):
        dim, sharp = make_jpeg((20, 20, 20)), make_jpeg((200, 200, 200))
        scorer = FakeQualityScorer({dim: (10.0, 10.0), sharp: (80.0, 70.0)})
        o = outcome(reference=None, audits=[
            AuditImage(0, audit(0, data=sharp).image),
            AuditImage(1, audit(1, data=dim).image),
        ])
        service, _, _, comparator = build_service({"sess-1": o}, quality_scorer=scorer)
        result = service.resolve_result(_req())
        self.assertEqual(result.evidence.source, "AuditImage")
        self.assertEqual(result.evidence.index, 0)
        self.assertEqual(result.record.evidence_strategy, "highest-quality-audit-frame")
        self.assertEqual(comparator.calls[0]["target"].data, sharp)
        self.assertEqual(len(scorer.measured), 2)

    def test_stored_audit_frame_downloaded_once(self):
        dim, sharp = make_jpeg((20, 20, 20)), make_jpeg((200, 200, 200))
        storage = FakeObjectStorage({
            (SELFIE_BUCKET, CANONICAL): SELFIE,
            ("out", "sess-1/audit_0.jpg"): dim,
            ("out", "sess-1/audit_1.jpg"): sharp,
        })
        scorer = FakeQualityScorer({dim: (10.0, 10.0), sharp: (80.0, 70.0)})
        o = outcome(reference=None, audits=[
            AuditImage(0, StoredImage("out", "sess-1/audit_0.jpg")),
            AuditImage(1, StoredImage("out", "sess-1/audit_1.jpg")),
        ])
        service, _, _, comparator = build_service({"sess-1": o}, storage=storage, quality_scorer=scorer)
        result = service.resolve_result(_req())
        self.assertEqual(result.evidence.index, 1)
        self.assertEqual(storage.gets.count(("out", "sess-1/audit_1.jpg")), 1)
        self.assertEqual(storage.gets.count(("out", "sess-1/audit_0.jpg")), 1)
        self.assertEqual(comparator.calls[0]["target"].data, sharp)

    def test_quality_not_measured_when_reference_present(self):
        scorer = FakeQualityScorer()
        service, _, _, _ = build_service({"sess-1": outcome(audits=[audit(0)])}, quality_scorer=scorer)
        service.resolve_result(_req())
        self.assertEqual(scorer.measured, [])


class ConcurrencyTest(TestCase):
    def test_same_session_requests_are_serialized(self):
        service, _, _, _ = build_service({"sess-1": outcome()})
        active = []
        overlaps = []
        original = service.provider.get_session_result

        def slow_result(session_id):
            active.append(session_id)
            if len(active) > 1:
                overlaps.append(True)
            threading.Event().wait(0.05)
            active.pop()
            return original(session_id)

        service.provider.get_session_result = slow_result
        threads = [threading.Thread(target=service.resolve_result, args=(_req(),)) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(overlaps, [])
        self.assertEqual(service.get_record("sess-1").decision, "approved")

    def test_store_shared_across_sessions(self):
        store = InMemoryValidationStore()
        service, _, _, _ = build_service(
            {"sess-1": outcome(), "sess-2": outcome(confidence=87.0)}, store=store
        )
        service.resolve_result(_req("sess-1"))
        service.resolve_result(_req("sess-2"))
        self.assertEqual(store.get("sess-1").session_id, "sess-1")
        self.assertEqual(store.get("sess-2").session_id, "sess-2")
