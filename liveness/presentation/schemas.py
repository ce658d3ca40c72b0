# liveness/presentation/schemas.py
from rest_framework import serializers

# ---------- Session (POST) ----------
class LivenessSessionRequestSerializer(serializers.Serializer):
    tenant_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=256)

class LivenessSessionResponseSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    region = serializers.CharField()

# ---------- Result (POST) ----------
class LivenessResultRequestSerializer(serializers.Serializer):
    session_id = serializers.CharField(
        max_length=256, help_text="SessionId devuelto por /api/liveness/session."
    )
    tenant_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=256)
    prospect_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=256)
    selfie_key = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=1024,
        help_text="Llave S3 explícita de la selfie (solo si ALLOW_SELFIE_KEY_OVERRIDE está activo).",
    )

class FaceVerificationSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    score = serializers.FloatField()
    threshold = serializers.FloatField()
    match = serializers.BooleanField()
    source = serializers.CharField()
    strategy = serializers.CharField()
    selfie_bucket = serializers.CharField()
    selfie_key = serializers.CharField()

class EvidencePointerSerializer(serializers.Serializer):
    bucket = serializers.CharField()
    key = serializers.CharField()

class LivenessSummarySerializer(serializers.Serializer):
    status = serializers.CharField()
    confidence = serializers.FloatField()
    has_reference_image = serializers.BooleanField()
    audit_images_count = serializers.IntegerField()

class LivenessResultResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    live = serializers.BooleanField()
    confidence = serializers.FloatField()
    decision = serializers.CharField()
    reason = serializers.CharField()
    approved = serializers.BooleanField()
    algorithm_version = serializers.CharField()
    face_verification = FaceVerificationSerializer()
    evidence = EvidencePointerSerializer(allow_null=True)
    liveness = LivenessSummarySerializer()

# ---------- Errores ----------
class ErrorResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()

# ---------- Consulta (GET por session_id) ----------
class ValidationRecordSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    tenant_id = serializers.CharField(allow_null=True)
    prospect_id = serializers.CharField(allow_null=True)
    liveness_status = serializers.CharField()
    liveness_confidence = serializers.FloatField()
    face_match_score = serializers.FloatField()
    face_match_threshold = serializers.FloatField()
    match = serializers.BooleanField()
    evidence_source = serializers.CharField()
    evidence_strategy = serializers.CharField()
    selfie_bucket = serializers.CharField(allow_null=True)
    selfie_key = serializers.CharField()
    decision = serializers.CharField()
    reason = serializers.CharField()
    approved = serializers.BooleanField()
    algorithm_version = serializers.CharField()
    created_at = serializers.CharField()
    evidence = EvidencePointerSerializer(allow_null=True)
