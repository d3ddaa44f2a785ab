import os
import pytest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from mood_journal.adapters.storage.media import (
    LocalMediaStore, S3Config, S3MediaStore, UploadKeyGenerator
)
from mood_journal.core.errors import StorageError


class TestUploadKeys:
    """Test suite for per-user upload key generation."""

    def test_key_layout(self):
        assert UploadKeyGenerator().next_key("user-1", 1792397730123) == "uploads/user-1/1792397730123"

    def test_same_millisecond_does_not_collide(self):
        keys = UploadKeyGenerator()
        first = keys.next_key("user-1", 1000)
        second = keys.next_key("user-1", 1000)
        third = keys.next_key("user-1", 999)
        assert (first, second, third) == (
            "uploads/user-1/1000", "uploads/user-1/1001", "uploads/user-1/1002"
        )

    def test_users_are_independent(self):
        keys = UploadKeyGenerator()
        keys.next_key("user-1", 1000)
        assert keys.next_key("user-2", 1000) == "uploads/user-2/1000"

    @pytest.mark.parametrize("user_id", ["", "a/b", ".", "..", "a\\b"])
    def test_invalid_user_rejected(self, user_id):
        with pytest.raises(StorageError):
            UploadKeyGenerator().next_key(user_id, 1)

    def test_idle_counters_pruned_past_capacity(self):
        keys = UploadKeyGenerator(max_tracked_users=2, retention_ms=1000)
        with patch("mood_journal.adapters.storage.media.time.time", return_value=1000.0):
            keys.next_key("user-1", 10)
            keys.next_key("user-2", 20)
            keys.next_key("user-3", 999_500)

            assert keys.tracked_users == 1
            assert keys.next_key("user-3", 999_500) == "uploads/user-3/999501"


class TestLocalMediaStore:

    def test_store_writes_file_and_returns_uri(self, tmp_path):
        store = LocalMediaStore(str(tmp_path))
        url = store.store("user-1", b"\x89PNG", "image/png", 1700)

        written = tmp_path / "uploads" / "user-1" / "1700"
        assert written.read_bytes() == b"\x89PNG"
        assert url == written.resolve().as_uri()

    def test_write_failure_is_storage_error(self, tmp_path):
        blocker = tmp_path / "uploads"
        blocker.write_text("not a directory")
        store = LocalMediaStore(str(tmp_path))
        with pytest.raises(StorageError):
            store.store("user-1", b"data", "image/png", 1)

    def test_key_outside_root_rejected(self, tmp_path):
        keys = MagicMock(spec=UploadKeyGenerator)
        keys.next_key.return_value = "../outside/1"
        store = LocalMediaStore(str(tmp_path / "media"), key_generator=keys)

        with pytest.raises(StorageError, match="escapes media root"):
            store.store("user-1", b"data", "image/png", 1)
        assert not (tmp_path / "outside").exists()

    def test_dot_dot_user_never_written(self, tmp_path):
        store = LocalMediaStore(str(tmp_path / "media"))
        with pytest.raises(StorageError):
            store.store("..", b"data", "image/png", 1)
        assert not (tmp_path / "media").exists()


class TestS3MediaStore:

    @pytest.fixture
    def s3_client(self):
        return MagicMock()

    @pytest.fixture
    def store(self, s3_client):
        config = S3Config(bucket="journal-media", public_base="https://cdn.example.com/")
        return S3MediaStore(config, client=s3_client)

    def test_store_puts_public_object(self, store, s3_client):
        url = store.store("user-1", b"jpeg-bytes", "image/jpeg", 5)

        s3_client.put_object.assert_called_once_with(
            Bucket="journal-media",
            Key="uploads/user-1/5",
            Body=b"jpeg-bytes",
            ACL="public-read",
            ContentType="image/jpeg",
        )
        assert url == "https://cdn.example.com/uploads/user-1/5"

    def test_client_error_is_storage_error(self, store, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        with pytest.raises(StorageError, match="Image upload failed"):
            store.store("user-1", b"x", "image/png", 5)

    def test_config_requires_bucket(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="S3_BUCKET"):
                S3Config()

    def test_config_requires_public_base(self):
        with patch.dict(os.environ, {"S3_BUCKET": "b"}, clear=True):
            with pytest.raises(ValueError, match="S3_PUBLIC_BASE"):
                S3Config()
