"""
Tests for the Artifact Store.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor

from echomint.core.artifacts import ArtifactStore
from echomint.errors import ArtifactNotFoundError


class TestStore:
    """Tests for writing artifacts."""

    def test_store_and_open(self, artifact_store):
        artifact = artifact_store.store(b"ID3 audio bytes", "audio/mpeg")

        data, mime_type = artifact_store.open(artifact.artifact_id)

        assert data == b"ID3 audio bytes"
        assert mime_type == "audio/mpeg"
        assert artifact.path.suffix == ".mp3"
        assert len(artifact.artifact_id) == 32

    def test_identical_content_gets_distinct_ids(self, artifact_store):
        """Ids are never derived from content."""
        first = artifact_store.store(b"same reply", "audio/mpeg")
        second = artifact_store.store(b"same reply", "audio/mpeg")

        assert first.artifact_id != second.artifact_id
        assert artifact_store.open(first.artifact_id)[0] == b"same reply"
        assert artifact_store.open(second.artifact_id)[0] == b"same reply"

    def test_concurrent_writes_get_distinct_ids(self, artifact_store):
        with ThreadPoolExecutor(max_workers=8) as pool:
            artifacts = list(pool.map(
                lambda i: artifact_store.store(b"same reply", "audio/mpeg"), range(16)
            ))

        ids = {artifact.artifact_id for artifact in artifacts}
        assert len(ids) == 16
        assert len(list(artifact_store.directory.iterdir())) == 16

    def test_no_temp_files_left(self, artifact_store):
        artifact_store.store(b"data", "audio/mpeg")

        names = [p.name for p in artifact_store.directory.iterdir()]
        assert len(names) == 1
        assert not any(name.startswith(".tmp-") for name in names)

    def test_unknown_mime_type(self, artifact_store):
        artifact = artifact_store.store(b"raw", "application/x-custom")

        data, mime_type = artifact_store.open(artifact.artifact_id)
        assert data == b"raw"
        assert mime_type == "application/octet-stream"

    def test_creates_directory(self, tmp_path):
        store = ArtifactStore(tmp_path / "nested" / "audio")
        assert store.directory.is_dir()


class TestOpen:
    """Tests for reading artifacts back."""

    def test_unknown_id(self, artifact_store):
        with pytest.raises(ArtifactNotFoundError):
            artifact_store.open("0" * 32)

    @pytest.mark.parametrize("artifact_id", [
        "../etc/passwd",
        "..%2F..%2Fsecret",
        "ABCDEF0123456789ABCDEF0123456789",
        "short",
        "",
    ])
    def test_malformed_id(self, artifact_store, artifact_id):
        with pytest.raises(ArtifactNotFoundError):
            artifact_store.open(artifact_id)

    def test_temp_file_not_visible(self, artifact_store):
        """A half-written temp file is never served."""
        (artifact_store.directory / ".tmp-abc123").write_bytes(b"partial")
        assert not artifact_store.exists(".tmp-abc123")

    def test_exists(self, artifact_store):
        artifact = artifact_store.store(b"x", "audio/mpeg")
        assert artifact_store.exists(artifact.artifact_id)
        assert not artifact_store.exists("f" * 32)

    def test_url_for(self, artifact_store):
        url = artifact_store.url_for("a" * 32)
        assert url == f"http://gateway.test/public/audio/{'a' * 32}"
