# liveness/infrastructure/aws.py
from typing import Optional, Dict, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.errors import UpstreamCallError, StorageNotFoundError

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404", "NoSuchVersion"}


def build_client(
    service: str,
    region: str,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    session_token: Optional[str] = None,
    config: Optional[Config] = None,
):
    kwargs: Dict[str, Any] = {"region_name": region}
    if access_key_id and secret_access_key:
        kwargs["aws_access_key_id"] = access_key_id
        kwargs["aws_secret_access_key"] = secret_access_key
        if session_token:
            kwargs["aws_session_token"] = session_token
    if config is not None:
        kwargs["config"] = config
    return boto3.client(service, **kwargs)


def translate_aws_error(ex: Exception, operation: str) -> UpstreamCallError:
    """ClientError/BotoCoreError -> UpstreamCallError conservando el mensaje (sin payloads)."""
    if isinstance(ex, ClientError):
        err = ex.response.get("Error", {}) or {}
        code = str(err.get("Code") or "")
        message = err.get("Message") or str(ex)
        if code in _NOT_FOUND_CODES:
            return StorageNotFoundError(f"{operation}: objeto no encontrado ({code}).", operation=operation)
        return UpstreamCallError(f"{operation}: {code} {message}".strip(), operation=operation)
    if isinstance(ex, BotoCoreError):
        return UpstreamCallError(f"{operation}: {ex}", operation=operation)
    return UpstreamCallError(f"{operation}: {ex}", operation=operation)


AWS_ERRORS = (ClientError, BotoCoreError)
