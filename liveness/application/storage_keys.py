# liveness/application/storage_keys.py
"""
Construcción y validación de llaves S3 para selfies (referencia) y evidencias.

Las selfies son datos biométricos por tenant: una llave arbitraria permitiría
comparar contra la selfie de otra persona, y una llave de evidencia fuera del
prefijo quedaría fuera de la política de retención.
"""
import posixpath
import re
from typing import Optional

from ..domain.errors import MissingIdentifierError, KeyNotAllowedError, PathEscapeError

DEFAULT_TENANT = "default"
EVIDENCE_FILENAME = "canonical.jpg"
MAX_SEGMENT_LEN = 128

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_DOT_RUNS = re.compile(r"\.{2,}")


def sanitize_segment(value: Optional[str], default: str = DEFAULT_TENANT) -> str:
    raw = str(value).strip() if value is not None else ""
    if not raw:
        return default
    clean = _UNSAFE_CHARS.sub("_", raw)[:MAX_SEGMENT_LEN]
    # "." y ".." son segmentos de ruta válidos: nunca los dejamos pasar
    clean = _DOT_RUNS.sub(".", clean).strip(".")
    return clean or "_"


def _has_parent_segment(key: str) -> bool:
    return ".." in key


def _assert_identifier(name: str, value: str) -> str:
    # cada identificador ocupa un solo segmento de la llave
    if _has_parent_segment(value) or "/" in value or "\\" in value:
        raise KeyNotAllowedError(f"{name} contiene separadores o segmentos relativos no permitidos.")
    return value


def build_reference_key(template: str, tenant_id: Optional[str], prospect_id: Optional[str]) -> str:
    if not prospect_id:
        raise MissingIdentifierError("Falta prospect_id para construir la ruta canónica de selfie.")
    tenant = _assert_identifier("tenant_id", str(tenant_id)) if tenant_id else DEFAULT_TENANT
    prospect = _assert_identifier("prospect_id", str(prospect_id))
    return (
        template
        .replace("{tenant_id}", tenant)
        .replace("{prospect_id}", prospect)
    )


def build_evidence_key(prefix: str, tenant_id: Optional[str], session_id: str) -> str:
    base = prefix.strip("/")
    parts = [sanitize_segment(tenant_id), sanitize_segment(session_id), EVIDENCE_FILENAME]
    return "/".join([base] + parts) if base else "/".join(parts)


def assert_allowed_override_key(
    candidate_key: str,
    template: str,
    tenant_id: Optional[str],
    prospect_id: Optional[str],
    allow_override: bool,
) -> str:
    """
    Valida una llave de selfie enviada por el cliente en lugar de la canónica.
    Retorna la llave aceptada o lanza KeyNotAllowedError.
    """
    candidate = (candidate_key or "").strip()
    if _has_parent_segment(candidate) or "\\" in candidate:
        raise KeyNotAllowedError("selfie_key contiene segmentos relativos no permitidos.")

    canonical = build_reference_key(template, tenant_id, prospect_id)
    if candidate == canonical:
        return candidate

    if not allow_override:
        raise KeyNotAllowedError("No se permite sobrescribir la ruta canónica de selfie.")

    canonical_dir = posixpath.dirname(canonical)
    if not canonical_dir or candidate.startswith("/") or not candidate.startswith(canonical_dir + "/"):
        raise KeyNotAllowedError("selfie_key fuera del directorio permitido para el prospecto.")
    return candidate


def ensure_within_prefix(key: str, prefix: str) -> bool:
    base = prefix.strip("/")
    if not key or key.startswith("/") or _has_parent_segment(key) or "\\" in key:
        return False
    normalized = posixpath.normpath(key)
    if normalized != key:
        return False
    if not base:
        return True
    return normalized.startswith(base + "/")


def assert_within_prefix(key: str, prefix: str) -> str:
    if not ensure_within_prefix(key, prefix):
        raise PathEscapeError(f"La llave de evidencia está fuera del prefijo permitido ({prefix}).")
    return key
