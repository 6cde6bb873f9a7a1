# storage_client.py
"""S3-compatible object storage client (MinIO) for lead exports."""

import json
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .import_document import resolve_import_key
from .logging_utils import get_logger


class StorageError(Exception):
    """Raised when an object storage operation fails."""

    pass


class StorageClient:
    """Object storage wrapper for CSV exports and import documents.

    Settings default to the MINIO_* configuration. The boto3 client is
    created on first use with path-style addressing, which MinIO requires.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        bucket: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: Optional[str] = None,
        csv_prefix: Optional[str] = None,
        import_prefix: Optional[str] = None,
        presign_ttl_seconds: Optional[int] = None,
        s3_client: Optional[Any] = None,
    ):
        """Initialize the storage client.

        Args:
            endpoint: Storage endpoint URL. Defaults to MINIO_ENDPOINT.
            bucket: Bucket name. Defaults to MINIO_BUCKET.
            access_key: Access key. Defaults to MINIO_ACCESS_KEY.
            secret_key: Secret key. Defaults to MINIO_SECRET_KEY.
            region: Signing region. Defaults to MINIO_REGION.
            csv_prefix: Key prefix for CSV exports.
            import_prefix: Key prefix for import documents.
            presign_ttl_seconds: Lifetime of presigned URLs.
            s3_client: Pre-built boto3 S3 client (used by tests).
        """
        self.logger = get_logger(__name__)

        self.endpoint = endpoint if endpoint is not None else config.MINIO_ENDPOINT
        self.bucket = bucket if bucket is not None else config.MINIO_BUCKET
        self.access_key = access_key if access_key is not None else config.MINIO_ACCESS_KEY
        self.secret_key = secret_key if secret_key is not None else config.MINIO_SECRET_KEY
        self.region = region or config.MINIO_REGION
        self.csv_prefix = (
            csv_prefix if csv_prefix is not None else config.MINIO_LEADGEN_CSV_PREFIX
        ).strip("/")
        self.import_prefix = (
            import_prefix if import_prefix is not None else config.MINIO_DEMO_PREFIX
        ).strip("/")
        self.presign_ttl_seconds = presign_ttl_seconds or config.PRESIGN_TTL_SECONDS

        self._s3_client = s3_client

    def is_configured(self) -> bool:
        """Check that endpoint, bucket and credentials are all present."""
        if self._s3_client is not None:
            return bool(self.bucket)
        return bool(self.endpoint and self.bucket and self.access_key and self.secret_key)

    def _get_s3_client(self) -> Any:
        """Get or create the boto3 S3 client.

        Raises:
            StorageError: If storage is not configured.
        """
        if self._s3_client is None:
            if not self.is_configured():
                raise StorageError(
                    "Object storage is not configured. Set MINIO_ENDPOINT, "
                    "MINIO_BUCKET, MINIO_ACCESS_KEY and MINIO_SECRET_KEY"
                )
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                region_name=self.region,
                config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        return self._s3_client

    def csv_key(self, filename: str) -> str:
        """Object key for a CSV export file name."""
        return f"{self.csv_prefix}/{filename}" if self.csv_prefix else filename

    def _put_object(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self._get_s3_client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"Failed to upload object: {e}", extra={"object_key": key})
            raise StorageError(f"Failed to upload {key}: {e}") from e

        self.logger.info(
            "Uploaded object",
            extra={"object_key": key, "size_bytes": len(body), "content_type": content_type},
        )

    def upload_csv(self, filename: str, csv_body: str) -> str:
        """Upload a CSV export.

        Returns:
            The full object key.
        """
        key = self.csv_key(filename)
        self._put_object(key, csv_body.encode("utf-8"), "text/csv")
        return key

    def get_presigned_download_url(self, filename: str) -> str:
        """Time-limited GET URL for a CSV export."""
        key = self.csv_key(filename)
        try:
            return self._get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.presign_ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to presign {key}: {e}") from e

    def put_import_document(
        self,
        document: Dict[str, Any],
        existing_key: Optional[str] = None,
    ) -> str:
        """Write an import document, overwriting ``existing_key`` when given.

        Returns:
            The object key written.
        """
        key = resolve_import_key(existing_key, prefix=self.import_prefix)
        body = json.dumps(document, ensure_ascii=False).encode("utf-8")
        self._put_object(key, body, "application/json")
        return key

    def get_import_document(self, key: str) -> Optional[Dict[str, Any]]:
        """Read an import document; None when missing or unreadable."""
        if not key or not key.strip() or not self.is_configured():
            return None
        full_key = resolve_import_key(key, prefix=self.import_prefix)
        try:
            response = self._get_s3_client().get_object(Bucket=self.bucket, Key=full_key)
            raw = response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            self.logger.warning(
                f"Import document not readable: {e}", extra={"object_key": full_key}
            )
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            self.logger.warning("Import document is not valid JSON", extra={"object_key": full_key})
            return None
