# liveness/application/redaction.py
from typing import Any

REDACTED = "[REDACTED]"

# llaves que pueden traer imágenes o payloads completos del proveedor
SENSITIVE_KEYS = frozenset({"Bytes", "bytes", "data", "full_response", "Body"})


def redact_payload(value: Any) -> Any:
    """
    Copia del payload apta para logs/respuestas: bytes y llaves sensibles se
    reemplazan por el marcador REDACTED (no se omiten, para que se note su ausencia).
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return REDACTED
    if isinstance(value, dict):
        return {
            k: (REDACTED if k in SENSITIVE_KEYS and value[k] is not None else redact_payload(value[k]))
            for k in value
        }
    if isinstance(value, (list, tuple)):
        return [redact_payload(v) for v in value]
    return value
