"""S3-compatible archive store."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from seqpub.lib.checksum import compute_file_md5
from seqpub.lib.metadata import (
    AccessGrant,
    Tag,
    acl_from_dicts,
    acl_to_dicts,
    tags_from_dicts,
    tags_to_dicts,
)
from seqpub.lib.resilience import RetryConfig, retry_operation
from seqpub.lib.storage.base import RemoteStore

logger = logging.getLogger(__name__)

__all__ = ["S3ArchiveStore"]

SIDECAR_PREFIX = ".avu"
MD5_METADATA_KEY = "md5"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_RETRYABLE = (BotoCoreError, ClientError)


def _is_not_found(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code")) in _NOT_FOUND_CODES


class S3ArchiveStore(RemoteStore):
    """Archive store on AWS S3 or any S3-compatible object store.

    Objects are keyed ``<prefix>/<remote path>``. The content digest is kept
    in the ``md5`` user metadata written at upload time; objects written by
    other tools fall back to their ETag, which is the md5 for single-part
    uploads. Tags and grants live in JSON sidecar objects under
    ``<prefix>/.avu/``.

    Example:
        >>> store = S3ArchiveStore("s3://archive-bucket/irods")
        >>> store.exists("/seq/26291/26291_1#1.cram")
        False

    Environment Variables:
        AWS_ACCESS_KEY_ID: AWS access key
        AWS_SECRET_ACCESS_KEY: AWS secret key
        AWS_REGION: AWS region
        AWS_ENDPOINT_URL: Custom S3 endpoint (for MinIO, LocalStack, etc.)

    Options:
        key: AWS access key (overrides env var)
        secret: AWS secret key (overrides env var)
        region: AWS region (overrides env var)
        endpoint_url: Custom S3 endpoint
        client: pre-built boto3 client
        retry: RetryConfig or mapping for transient failures
    """

    def __init__(self, base_path: str, **options: Any) -> None:
        super().__init__(base_path, **options)
        self.bucket, self.prefix = self._parse_path(base_path)
        if not self.bucket:
            raise ValueError(f"No bucket in S3 location '{base_path}'")

        retry = options.get("retry")
        if isinstance(retry, RetryConfig):
            self.retry_config = retry
        else:
            self.retry_config = RetryConfig.from_dict(retry)

        self._client = options.get("client")

    @staticmethod
    def _parse_path(path: str) -> tuple[str, str]:
        if path.startswith("s3://"):
            path = path[5:]
        parts = path.split("/", 1)
        prefix = parts[1].strip("/") if len(parts) > 1 else ""
        return parts[0], prefix

    @property
    def scheme(self) -> str:
        return "s3"

    @property
    def client(self):
        """Lazy-load the boto3 client."""
        if self._client is None:
            session_kwargs: Dict[str, Any] = {}
            key = self.options.get("key") or os.environ.get("AWS_ACCESS_KEY_ID")
            secret = self.options.get("secret") or os.environ.get("AWS_SECRET_ACCESS_KEY")
            if key and secret:
                session_kwargs["aws_access_key_id"] = key
                session_kwargs["aws_secret_access_key"] = secret

            region = self.options.get("region") or os.environ.get("AWS_REGION")
            if region:
                session_kwargs["region_name"] = region

            endpoint_url = self.options.get("endpoint_url") or os.environ.get("AWS_ENDPOINT_URL")

            self._client = boto3.client("s3", endpoint_url=endpoint_url, **session_kwargs)
            logger.debug(
                "Created S3 client for bucket '%s' with endpoint: %s",
                self.bucket,
                endpoint_url or "default",
            )
        return self._client

    def _key(self, path: str) -> str:
        rel = self.normalize(path)
        return f"{self.prefix}/{rel}" if self.prefix else rel

    def _sidecar_key(self, path: str) -> str:
        rel = f"{SIDECAR_PREFIX}/{self.normalize(path)}.json"
        return f"{self.prefix}/{rel}" if self.prefix else rel

    def _call(self, name: str, operation: Any) -> Any:
        return retry_operation(operation, self.retry_config, name, _RETRYABLE)

    def _head(self, path: str) -> Optional[Dict[str, Any]]:
        key = self._key(path)

        def head() -> Optional[Dict[str, Any]]:
            try:
                return self.client.head_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                if _is_not_found(exc):
                    return None
                raise

        return self._call(f"head s3://{self.bucket}/{key}", head)

    def _require(self, path: str) -> Dict[str, Any]:
        head = self._head(path)
        if head is None:
            raise FileNotFoundError(f"No archive object at {path}")
        return head

    def _read_sidecar(self, path: str) -> Dict[str, Any]:
        key = self._sidecar_key(path)

        def get() -> Dict[str, Any]:
            try:
                response = self.client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                if _is_not_found(exc):
                    return {}
                raise
            return json.loads(response["Body"].read().decode("utf-8"))

        return self._call(f"get s3://{self.bucket}/{key}", get)

    def _write_sidecar(self, path: str, data: Dict[str, Any]) -> None:
        key = self._sidecar_key(path)
        body = json.dumps(data, indent=2).encode("utf-8")
        self._call(
            f"put s3://{self.bucket}/{key}",
            lambda: self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType="application/json",
            ),
        )

    def exists(self, path: str) -> bool:
        return self._head(path) is not None

    def digest(self, path: str) -> str:
        head = self._require(path)
        stored = head.get("Metadata", {}).get(MD5_METADATA_KEY)
        if stored:
            return stored
        return str(head.get("ETag", "")).strip('"')

    def put(self, path: str, local_file: str) -> None:
        key = self._key(path)
        md5 = compute_file_md5(local_file)
        self._call(
            f"upload s3://{self.bucket}/{key}",
            lambda: self.client.upload_file(
                local_file,
                self.bucket,
                key,
                ExtraArgs={"Metadata": {MD5_METADATA_KEY: md5}},
            ),
        )
        logger.info("Uploaded %s to s3://%s/%s", os.path.basename(local_file), self.bucket, key)

    def get_metadata(self, path: str) -> List[Tag]:
        self._require(path)
        return tags_from_dicts(self._read_sidecar(path).get("metadata", []))

    def set_metadata(self, path: str, tags: Iterable[Tag]) -> None:
        self._require(path)
        data = self._read_sidecar(path)
        data["metadata"] = tags_to_dicts(tags)
        self._write_sidecar(path, data)

    def get_permissions(self, path: str) -> List[AccessGrant]:
        self._require(path)
        return acl_from_dicts(self._read_sidecar(path).get("acl", []))

    def set_permissions(self, path: str, acl: Iterable[AccessGrant]) -> None:
        self._require(path)
        data = self._read_sidecar(path)
        data["acl"] = acl_to_dicts(acl)
        self._write_sidecar(path, data)

    def __repr__(self) -> str:
        return f"S3ArchiveStore(bucket={self.bucket!r}, prefix={self.prefix!r})"
