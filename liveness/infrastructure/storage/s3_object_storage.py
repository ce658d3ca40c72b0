# liveness/infrastructure/storage/s3_object_storage.py
import logging
from typing import Optional, Dict, Any, List

from botocore.exceptions import BotoCoreError, ClientError

from ..aws import AWS_ERRORS, translate_aws_error

logger = logging.getLogger("liveness.storage")


class S3ObjectStorage:
    def __init__(self, client):
        self.client = client

    def get_object(self, bucket: str, key: str, version: Optional[str] = None) -> bytes:
        kwargs: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        if version:
            kwargs["VersionId"] = version
        try:
            obj = self.client.get_object(**kwargs)
            return obj["Body"].read()
        except AWS_ERRORS as ex:
            logger.info({"event": "s3_get_error", "bucket": bucket, "key": key, "error": str(ex)})
            raise translate_aws_error(ex, "GetObject") from ex

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        kms_key_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        kwargs: Dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": data, "ContentType": content_type}
        if kms_key_id:
            kwargs["ServerSideEncryption"] = "aws:kms"
            kwargs["SSEKMSKeyId"] = kms_key_id
        if metadata:
            kwargs["Metadata"] = {k: str(v) for k, v in metadata.items()}
        try:
            self.client.put_object(**kwargs)
        except AWS_ERRORS as ex:
            logger.info({"event": "s3_put_error", "bucket": bucket, "key": key, "error": str(ex)})
            raise translate_aws_error(ex, "PutObject") from ex

    def _lifecycle_rules(self, bucket: str) -> List[Dict[str, Any]]:
        try:
            resp = self.client.get_bucket_lifecycle_configuration(Bucket=bucket)
        except ClientError as ex:
            if (ex.response.get("Error", {}) or {}).get("Code") == "NoSuchLifecycleConfiguration":
                return []
            raise translate_aws_error(ex, "GetBucketLifecycleConfiguration") from ex
        except BotoCoreError as ex:
            raise translate_aws_error(ex, "GetBucketLifecycleConfiguration") from ex
        return list(resp.get("Rules") or [])

    def put_expiration_rule(self, bucket: str, prefix: str, days: int, rule_id: str) -> None:
        # PutBucketLifecycleConfiguration reemplaza todas las reglas: se conservan las demás
        rules = [r for r in self._lifecycle_rules(bucket) if r.get("ID") != rule_id]
        rules.append({
            "ID": rule_id,
            "Filter": {"Prefix": prefix},
            "Status": "Enabled",
            "Expiration": {"Days": int(days)},
        })
        try:
            self.client.put_bucket_lifecycle_configuration(
                Bucket=bucket,
                LifecycleConfiguration={"Rules": rules},
            )
        except AWS_ERRORS as ex:
            raise translate_aws_error(ex, "PutBucketLifecycleConfiguration") from ex
        logger.info({"event": "s3_lifecycle_merged", "bucket": bucket, "rule_id": rule_id, "rules": len(rules)})
