# liveness/presentation/api.py
import logging
from typing import Dict, Any

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_yasg.utils import swagger_auto_schema

from liveness.application.liveness_session_service import ResultRequest, ResolutionResult
from liveness.domain.errors import LivenessError, LivenessStatusError
from liveness.infrastructure.config import get_liveness_service
from .schemas import (
    LivenessSessionRequestSerializer,
    LivenessSessionResponseSerializer,
    LivenessResultRequestSerializer,
    LivenessResultResponseSerializer,
    ValidationRecordSerializer,
    ErrorResponseSerializer,
)

logger = logging.getLogger("liveness.session")


def _first_error(errors) -> str:
    for field, msgs in errors.items():
        msg = msgs[0] if isinstance(msgs, list) and msgs else msgs
        return f"{field}: {msg}"
    return "Request inválido"


def _error_response(ex: LivenessError) -> Response:
    body: Dict[str, Any] = {"status": ex.status_tag, "message": ex.message}
    if isinstance(ex, LivenessStatusError):
        body["liveness_status"] = ex.status
        body["confidence"] = ex.confidence
        if ex.decision is not None:
            body["decision"] = ex.decision.decision
            body["reason"] = ex.decision.reason
            body["approved"] = ex.decision.approved
    return Response(body, status=ex.http_status)


def _result_payload(result: ResolutionResult) -> Dict[str, Any]:
    record = result.record
    v = result.verification
    return {
        "status": "success",
        "live": result.live,
        "confidence": result.outcome.confidence,
        "decision": result.decision.decision,
        "reason": result.decision.reason,
        "approved": result.decision.approved,
        "algorithm_version": record.algorithm_version,
        "face_verification": {
            "session_id": record.session_id,
            "score": v.score,
            "threshold": v.threshold,
            "match": v.match,
            "source": v.source,
            "strategy": result.evidence.strategy,
            "selfie_bucket": v.selfie_bucket,
            "selfie_key": v.selfie_key,
        },
        "evidence": {"bucket": record.evidence.bucket, "key": record.evidence.key} if record.evidence else None,
        "liveness": {
            "status": result.outcome.status,
            "confidence": result.outcome.confidence,
            "has_reference_image": result.outcome.reference_image is not None,
            "audit_images_count": len(result.outcome.audit_images),
        },
    }


class LivenessSessionAPIView(APIView):
    """
    POST /api/liveness/session
    Body: { "tenant_id": "acme" }   // opcional
    """
    @swagger_auto_schema(
        operation_summary="Crear sesión de liveness",
        request_body=LivenessSessionRequestSerializer,
        responses={200: LivenessSessionResponseSerializer, 502: ErrorResponseSerializer},
        tags=["Liveness"],
    )
    def post(self, request):
        ser = LivenessSessionRequestSerializer(data=request.data or {})
        if not ser.is_valid():
            return Response({"status": "invalid_request", "message": _first_error(ser.errors)},
                            status=status.HTTP_400_BAD_REQUEST)
        try:
            session = get_liveness_service().start_session(ser.validated_data.get("tenant_id") or None)
        except LivenessError as ex:
            logger.error({"event": "session_create_failed", "status": ex.status_tag, "error": ex.message})
            return _error_response(ex)
        except Exception:
            logger.exception("Error creando sesión de liveness")
            return Response({"status": "error", "message": "Error al crear la sesión de liveness"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({"session_id": session.session_id, "region": session.region}, status=status.HTTP_200_OK)


class LivenessResultAPIView(APIView):
    """
    POST /api/liveness/result
    Body:
    {
      "session_id": "0f5d...",
      "tenant_id": "acme",          // opcional
      "prospect_id": "p-123",
      "selfie_key": "tenants/..."   // opcional, requiere ALLOW_SELFIE_KEY_OVERRIDE
    }

    200: decisión (approved | manual_review | rejected).
    Estado != SUCCEEDED -> 400, SUCCEEDED sin evidencia -> 422, seguridad -> 403.
    """
    @swagger_auto_schema(
        operation_summary="Resolver resultado de liveness + comparación facial",
        request_body=LivenessResultRequestSerializer,
        responses={
            200: LivenessResultResponseSerializer,
            400: ErrorResponseSerializer,
            403: ErrorResponseSerializer,
            404: ErrorResponseSerializer,
            422: ErrorResponseSerializer,
            500: ErrorResponseSerializer,
            502: ErrorResponseSerializer,
        },
        tags=["Liveness"],
    )
    def post(self, request):
        ser = LivenessResultRequestSerializer(data=request.data or {})
        if not ser.is_valid():
            message = "Falta session_id" if "session_id" in ser.errors else _first_error(ser.errors)
            return Response({"status": "invalid_request", "message": message},
                            status=status.HTTP_400_BAD_REQUEST)

        data = ser.validated_data
        req = ResultRequest(
            session_id=data["session_id"],
            tenant_id=data.get("tenant_id") or None,
            prospect_id=data.get("prospect_id") or None,
            selfie_key=data.get("selfie_key") or None,
        )
        try:
            result = get_liveness_service().resolve_result(req)
        except LivenessError as ex:
            logger.info({"event": "result_failed", "session_id": req.session_id,
                         "status": ex.status_tag, "error": ex.message})
            return _error_response(ex)
        except Exception:
            logger.exception("Error obteniendo resultados de liveness")
            return Response({"status": "error", "message": "Error al obtener los resultados"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(_result_payload(result), status=status.HTTP_200_OK)


class LivenessRecordAPIView(APIView):
    """
    GET /api/liveness/result/<session_id>
    Devuelve la última validación registrada para la sesión (sin recalcular).
    """
    @swagger_auto_schema(
        operation_summary="Consultar validación por session_id",
        responses={200: ValidationRecordSerializer, 404: ErrorResponseSerializer},
        tags=["Liveness"],
    )
    def get(self, request, session_id: str):
        try:
            record = get_liveness_service().get_record(session_id)
        except LivenessError as ex:
            return _error_response(ex)
        return Response(record.to_dict(), status=status.HTTP_200_OK)
