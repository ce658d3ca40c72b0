# liveness/infrastructure/storage/validation_stores.py
import json
import logging
import os
import threading
from typing import Dict, Optional, Any

from ...application.storage_keys import sanitize_segment
from ...domain.value_objects import ValidationRecord

logger = logging.getLogger("liveness.storage")


class InMemoryValidationStore:
    """Último resultado por session_id, vive lo que vive el proceso. Last-write-wins."""

    def __init__(self):
        self._records: Dict[str, ValidationRecord] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, record: ValidationRecord) -> None:
        with self._lock:
            self._records[session_id] = record

    def get(self, session_id: str) -> Optional[ValidationRecord]:
        with self._lock:
            return self._records.get(session_id)


def _ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)


def _safe_write_json(path: str, data: Dict[str, Any]):
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


def _read_json_file(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as ex:
        logger.warning({"event": "validation_record_unreadable", "path": path, "error": str(ex)})
        return None


class FileValidationStore:
    """
    Un JSON por sesión:
      <base_dir>/liveness_<session_id saneado>.json
    """

    def __init__(self, base_dir: str):
        self.base_dir = base_dir
        self._lock = threading.Lock()

    def _path(self, session_id: str) -> str:
        return os.path.join(self.base_dir, f"liveness_{sanitize_segment(session_id, default='_')}.json")

    def put(self, session_id: str, record: ValidationRecord) -> None:
        with self._lock:
            _ensure_dir(self.base_dir)
            _safe_write_json(self._path(session_id), record.to_dict())

    def get(self, session_id: str) -> Optional[ValidationRecord]:
        data = _read_json_file(self._path(session_id))
        if data is None:
            return None
        # el nombre saneado puede colisionar: se valida contra el id real
        if data.get("session_id") != session_id:
            return None
        return ValidationRecord.from_dict(data)
