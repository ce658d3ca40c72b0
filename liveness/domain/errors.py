# liveness/domain/errors.py
"""
Taxonomía de errores del flujo de liveness.

Cada error expone:
  - status_tag: etiqueta estable para el campo "status" de la respuesta
  - http_status: código HTTP con el que la capa de presentación lo publica
"""
from typing import Optional


class LivenessError(Exception):
    status_tag = "error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---- Request ----
class RequestValidationError(LivenessError):
    status_tag = "invalid_request"
    http_status = 400


class MissingIdentifierError(RequestValidationError):
    pass


# ---- Configuración ----
class ConfigurationError(LivenessError):
    status_tag = "configuration_error"
    http_status = 500


class MissingConfigurationError(ConfigurationError):
    pass


class InvalidThresholdsError(ConfigurationError):
    pass


# ---- Resultado de negocio del servicio de liveness ----
class LivenessStatusError(LivenessError):
    """El servicio devolvió un estado distinto de SUCCEEDED."""
    status_tag = "failed"
    http_status = 400

    def __init__(self, message: str, status: str, decision=None, confidence: Optional[float] = None):
        super().__init__(message)
        self.status = status
        self.decision = decision
        self.confidence = confidence


class NoEvidenceError(LivenessError):
    status_tag = "no_evidence"
    http_status = 422


class NoEvidenceImageError(NoEvidenceError):
    pass


# ---- Seguridad ----
class SecurityViolationError(LivenessError):
    status_tag = "security_violation"
    http_status = 403


class KeyNotAllowedError(SecurityViolationError):
    pass


class PathEscapeError(SecurityViolationError):
    pass


# ---- Servicios externos ----
class UpstreamCallError(LivenessError):
    status_tag = "upstream_error"
    http_status = 502

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class StorageNotFoundError(UpstreamCallError):
    status_tag = "not_found"
    http_status = 404


# ---- Store ----
class RecordNotFoundError(LivenessError):
    status_tag = "not_found"
    http_status = 404
