from unittest import TestCase

from liveness.application.face_verifier import FaceVerifier
from liveness.domain.errors import (
    MissingConfigurationError, StorageNotFoundError, NoEvidenceImageError, KeyNotAllowedError,
)
from liveness.domain.value_objects import EvidenceImage, InlineImage, StoredImage
from liveness.tests.fakes import FakeObjectStorage, FakeComparator, SELFIE, SELFIE_BUCKET, TEMPLATE, REFERENCE

CANONICAL = "tenants/acme/prospects/p-1/selfie.jpg"


def _verifier(storage=None, similarities=(94.0,), bucket=SELFIE_BUCKET, allow_override=False):
    storage = storage or FakeObjectStorage({(SELFIE_BUCKET, CANONICAL): SELFIE})
    comparator = FakeComparator(similarities)
    return FaceVerifier(storage, comparator, bucket, TEMPLATE, 92.0, allow_override), storage, comparator


def _evidence(image=None):
    return EvidenceImage(image=image or InlineImage(REFERENCE), source="ReferenceImage",
                         strategy="reference-image-priority")


class FaceVerifierTest(TestCase):
    def test_match(self):
        verifier, storage, comparator = _verifier()
        result = verifier.compare_against_reference("acme", "p-1", None, _evidence())
        self.assertEqual(result.score, 94.0)
        self.assertTrue(result.match)
        self.assertEqual(result.threshold, 92.0)
        self.assertEqual(result.selfie_key, CANONICAL)
        self.assertEqual(result.selfie_bucket, SELFIE_BUCKET)
        self.assertEqual(result.source, "ReferenceImage")
        # selfie como source, evidencia como target
        call = comparator.calls[0]
        self.assertEqual(call["source"], SELFIE)
        self.assertEqual(call["target"], InlineImage(REFERENCE))
        self.assertEqual(call["threshold"], 92.0)

    def test_no_candidates_scores_zero(self):
        verifier, _, _ = _verifier(similarities=())
        result = verifier.compare_against_reference("acme", "p-1", None, _evidence())
        self.assertEqual(result.score, 0.0)
        self.assertFalse(result.match)

    def test_stored_evidence_is_fetched(self):
        storage = FakeObjectStorage({
            (SELFIE_BUCKET, CANONICAL): SELFIE,
            ("out", "sess/ref.jpg"): REFERENCE,
        })
        verifier, storage, comparator = _verifier(storage=storage)
        verifier.compare_against_reference("acme", "p-1", None, _evidence(StoredImage("out", "sess/ref.jpg")))
        self.assertIn(("out", "sess/ref.jpg"), storage.gets)
        self.assertEqual(comparator.calls[0]["target"], InlineImage(REFERENCE))

    def test_missing_bucket(self):
        verifier, _, _ = _verifier(bucket=None)
        with self.assertRaises(MissingConfigurationError):
            verifier.compare_against_reference("acme", "p-1", None, _evidence())

    def test_selfie_not_found(self):
        verifier, _, _ = _verifier(storage=FakeObjectStorage())
        with self.assertRaises(StorageNotFoundError):
            verifier.compare_against_reference("acme", "p-1", None, _evidence())

    def test_evidence_without_payload(self):
        verifier, _, _ = _verifier()
        ev = EvidenceImage(image=None, source="AuditImage", strategy="highest-quality-audit-frame", index=0)
        with self.assertRaises(NoEvidenceImageError):
            verifier.compare_against_reference("acme", "p-1", None, ev)

    def test_override_key_requires_permission(self):
        verifier, _, comparator = _verifier()
        with self.assertRaises(KeyNotAllowedError):
            verifier.compare_against_reference("acme", "p-1", "tenants/acme/prospects/p-2/selfie.jpg", _evidence())
        self.assertEqual(comparator.calls, [])

    def test_override_key_allowed(self):
        override = "tenants/acme/prospects/p-1/selfie-2024.jpg"
        storage = FakeObjectStorage({(SELFIE_BUCKET, override): SELFIE})
        verifier, _, _ = _verifier(storage=storage, allow_override=True)
        result = verifier.compare_against_reference("acme", "p-1", override, _evidence())
        self.assertEqual(result.selfie_key, override)

    def test_candidates_requested_from_review_threshold(self):
        storage = FakeObjectStorage({(SELFIE_BUCKET, CANONICAL): SELFIE})
        comparator = FakeComparator((87.0,))
        verifier = FaceVerifier(storage, comparator, SELFIE_BUCKET, TEMPLATE, 92.0, candidate_threshold=85.0)
        result = verifier.compare_against_reference("acme", "p-1", None, _evidence())
        self.assertEqual(comparator.calls[0]["threshold"], 85.0)
        self.assertEqual(result.score, 87.0)
        self.assertFalse(result.match)
        self.assertEqual(result.threshold, 92.0)
