"""
Image attachment storage.

Blobs are written under uploads/{user_id}/{submission_timestamp_ms}. The
timestamp token is strictly increasing per user within the process, so two
uploads from the same user in the same millisecond get distinct keys.
Counters idle for longer than the retention window may be dropped once
more than MAX_TRACKED_USERS users are tracked.
The returned URL is directly dereferenceable.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

import boto3.session
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from mood_journal.core.errors import StorageError

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"
MAX_TRACKED_USERS = 1024
TOKEN_RETENTION_MS = 60 * 1000


# ============================================================================
# KEY GENERATION
# ============================================================================

class UploadKeyGenerator:
    """Builds collision-free storage keys per user."""

    def __init__(self, max_tracked_users: int = MAX_TRACKED_USERS,
                 retention_ms: int = TOKEN_RETENTION_MS):
        self._lock = threading.Lock()
        self._last_token: Dict[str, int] = {}
        self.max_tracked_users = max_tracked_users
        self.retention_ms = retention_ms

    @property
    def tracked_users(self) -> int:
        return len(self._last_token)

    def next_key(self, user_id: str, timestamp_ms: Optional[int] = None) -> str:
        """
        Returns uploads/{user_id}/{token}.

        Args:
            user_id: Owner of the blob.
            timestamp_ms: Submission time in epoch milliseconds (defaults to now).

        Raises:
            StorageError: If user_id is not a single safe path segment.
        """
        if not user_id or user_id in (".", "..") or "/" in user_id or "\\" in user_id:
            raise StorageError(f"Invalid user id for upload key: {user_id!r}")

        now_ms = int(time.time() * 1000)
        token = timestamp_ms if timestamp_ms is not None else now_ms
        with self._lock:
            last = self._last_token.get(user_id)
            if last is not None and token <= last:
                token = last + 1
            self._last_token[user_id] = token
            if len(self._last_token) > self.max_tracked_users:
                self._prune(now_ms - self.retention_ms)

        return f"{UPLOAD_PREFIX}/{user_id}/{token}"

    def _prune(self, cutoff_ms: int) -> None:
        # Only users whose last token is past the retention window are dropped
        stale = [user for user, token in self._last_token.items() if token < cutoff_ms]
        for user in stale:
            del self._last_token[user]
        if stale:
            logger.debug(f"Pruned {len(stale)} idle upload key counters")


# ============================================================================
# STORES
# ============================================================================

class MediaStore:
    """Capability interface: store a blob for a user, get back a URL."""

    def __init__(self, key_generator: Optional[UploadKeyGenerator] = None):
        self.keys = key_generator or UploadKeyGenerator()

    def store(self, user_id: str, data: bytes, content_type: str,
              timestamp_ms: Optional[int] = None) -> str:
        """
        Uploads data and returns its URL.

        Raises:
            StorageError: If the write fails.
        """
        key = self.keys.next_key(user_id, timestamp_ms)
        url = self._put(key, data, content_type)
        logger.info(f"[OK] Stored {len(data)} bytes at {key}")
        return url

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError


class S3Config:
    """Encapsulates S3-compatible storage configuration."""

    REQUIRED = ("S3_BUCKET", "S3_PUBLIC_BASE")

    def __init__(self, bucket: Optional[str] = None, public_base: Optional[str] = None,
                 endpoint: Optional[str] = None, region: Optional[str] = None,
                 access_key: Optional[str] = None, secret_key: Optional[str] = None):
        """
        Initialize storage configuration from arguments or environment.

        Raises:
            ValueError: If bucket or public base URL is missing.
        """
        self.bucket = bucket or os.environ.get("S3_BUCKET")
        self.public_base = public_base or os.environ.get("S3_PUBLIC_BASE")
        self.endpoint = endpoint or os.environ.get("S3_ENDPOINT")
        self.region = region or os.environ.get("S3_REGION", "us-east-1")
        self.access_key = access_key or os.environ.get("S3_ACCESS_KEY_ID")
        self.secret_key = secret_key or os.environ.get("S3_SECRET_ACCESS_KEY")

        if not self.bucket:
            raise ValueError("S3_BUCKET environment variable not set")
        if not self.public_base:
            raise ValueError("S3_PUBLIC_BASE environment variable not set")

    def get_client(self) -> Any:
        """Creates a boto3 S3 client."""
        session = boto3.session.Session()
        return session.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            config=BotoConfig(signature_version="s3v4"),
        )


class S3MediaStore(MediaStore):
    """Stores attachments as public-read objects in an S3-compatible bucket."""

    def __init__(self, config: Optional[S3Config] = None, client: Any = None,
                 key_generator: Optional[UploadKeyGenerator] = None):
        super().__init__(key_generator)
        self.config = config or S3Config()
        self.client = client or self.config.get_client()

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ACL="public-read",
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(f"Image upload failed: {e}") from e

        return f"{self.config.public_base.rstrip('/')}/{key}"


class LocalMediaStore(MediaStore):
    """Stores attachments on the local filesystem and returns file:// URIs."""

    def __init__(self, root: str, key_generator: Optional[UploadKeyGenerator] = None):
        super().__init__(key_generator)
        self.root = Path(root)

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        path = self.root / key
        if not path.resolve().is_relative_to(self.root.resolve()):
            raise StorageError(f"Upload key escapes media root: {key}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Local upload failed for {key}: {e}")
            raise StorageError(f"Image upload failed: {e}") from e

        return path.resolve().as_uri()
