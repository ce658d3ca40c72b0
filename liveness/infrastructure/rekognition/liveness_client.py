# liveness/infrastructure/rekognition/liveness_client.py
import logging
from typing import Optional, Dict, Any

from ...application.redaction import redact_payload
from ...domain.value_objects import AuditImage, ImageRef, InlineImage, LivenessOutcome, LivenessSession, StoredImage
from ..aws import AWS_ERRORS, translate_aws_error

logger = logging.getLogger("liveness.session")


def parse_image(image: Optional[Dict[str, Any]]) -> Optional[ImageRef]:
    """
    Rekognition entrega {"Bytes": ...} o {"S3Object": {"Bucket","Name","Version"}}.
    Si vienen ambos, se prefieren los bytes.
    """
    if not image:
        return None
    data = image.get("Bytes")
    if data:
        return InlineImage(bytes(data))
    s3 = image.get("S3Object") or {}
    if s3.get("Bucket") and s3.get("Name"):
        return StoredImage(bucket=s3["Bucket"], key=s3["Name"], version=s3.get("Version"))
    return None


def parse_audit_image(index: int, image: Dict[str, Any]) -> AuditImage:
    # Rekognition no reporta calidad por AuditImage; se acepta si viene (Quality de DetectFaces)
    quality = image.get("Quality") or {}
    brightness = quality.get("Brightness")
    sharpness = quality.get("Sharpness")
    return AuditImage(
        index=index,
        image=parse_image(image),
        brightness=float(brightness) if brightness is not None else None,
        sharpness=float(sharpness) if sharpness is not None else None,
    )


def parse_session_result(session_id: str, resp: Dict[str, Any]) -> LivenessOutcome:
    return LivenessOutcome(
        session_id=resp.get("SessionId") or session_id,
        status=str(resp.get("Status") or "UNKNOWN"),
        confidence=float(resp.get("Confidence") or 0.0),
        reference_image=parse_image(resp.get("ReferenceImage")),
        audit_images=tuple(parse_audit_image(i, a) for i, a in enumerate(resp.get("AuditImages") or [])),
    )


class RekognitionLivenessClient:
    def __init__(
        self,
        client,
        region: str,
        kms_key_id: Optional[str] = None,
        output_bucket: Optional[str] = None,
        output_prefix: Optional[str] = None,
        audit_images_limit: Optional[int] = None,
    ):
        self.client = client
        self.region = region
        self.kms_key_id = kms_key_id
        self.output_bucket = output_bucket
        self.output_prefix = output_prefix
        self.audit_images_limit = audit_images_limit

    def _session_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        settings: Dict[str, Any] = {}
        if self.kms_key_id:
            kwargs["KmsKeyId"] = self.kms_key_id
        if self.output_bucket:
            output = {"S3Bucket": self.output_bucket}
            if self.output_prefix:
                output["S3KeyPrefix"] = self.output_prefix
            settings["OutputConfig"] = output
        if self.audit_images_limit is not None:
            settings["AuditImagesLimit"] = self.audit_images_limit
        if settings:
            kwargs["Settings"] = settings
        return kwargs

    def create_session(self) -> LivenessSession:
        try:
            resp = self.client.create_face_liveness_session(**self._session_kwargs())
        except AWS_ERRORS as ex:
            logger.error({"event": "session_create_error", "error": str(ex)})
            raise translate_aws_error(ex, "CreateFaceLivenessSession") from ex
        return LivenessSession(session_id=resp["SessionId"], region=self.region)

    def get_session_result(self, session_id: str) -> LivenessOutcome:
        try:
            resp = self.client.get_face_liveness_session_results(SessionId=session_id)
        except AWS_ERRORS as ex:
            logger.error({"event": "session_result_error", "session_id": session_id, "error": str(ex)})
            raise translate_aws_error(ex, "GetFaceLivenessSessionResults") from ex
        resp.pop("ResponseMetadata", None)
        logger.debug({"event": "session_result_raw", "session_id": session_id, "response": redact_payload(resp)})
        return parse_session_result(session_id, resp)
