"""
Artifact Store Module

Write-once file storage for synthesized audio, addressed by a random id.

Each write goes to a hidden temporary file in the target directory and is
published with os.replace, so a reader either sees the complete file or
nothing. Ids are uuid4 hex, never derived from content, so identical replies
produced concurrently get separate artifacts.
"""

import os
import re
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from echomint.errors import ArtifactNotFoundError
from echomint.logger import get_logger

logger = get_logger(__name__)

_ARTIFACT_ID = re.compile(r"^[0-9a-f]{32}$")

_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/ogg": ".ogg",
}
_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".bin": "application/octet-stream",
}


@dataclass(frozen=True)
class AudioArtifact:
    """A stored audio blob."""
    artifact_id: str
    path: Path
    mime_type: str
    created_at: datetime


class ArtifactStore:
    """
    Directory-backed artifact storage.

    Example:
        store = ArtifactStore("./public/audio")
        artifact = store.store(mp3_bytes, "audio/mpeg")
        data, mime = store.open(artifact.artifact_id)
    """

    def __init__(self, directory: Union[str, Path], public_base_url: str = ""):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def directory(self) -> Path:
        return self._directory

    def store(self, data: bytes, mime_type: str) -> AudioArtifact:
        """
        Persist bytes under a fresh id.

        Returns:
            The published AudioArtifact
        """
        artifact_id = uuid.uuid4().hex
        extension = _EXTENSIONS.get(mime_type, ".bin")
        final_path = self._directory / f"{artifact_id}{extension}"

        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=self._directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, final_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(f"Stored artifact {artifact_id} ({len(data)} bytes, {mime_type})")
        return AudioArtifact(
            artifact_id=artifact_id,
            path=final_path,
            mime_type=_MIME_TYPES.get(extension, mime_type),
            created_at=datetime.now(timezone.utc),
        )

    def open(self, artifact_id: str) -> Tuple[bytes, str]:
        """
        Read a published artifact.

        Returns:
            (bytes, mime_type)

        Raises:
            ArtifactNotFoundError: Unknown or malformed id
        """
        path = self._locate(artifact_id)
        if path is None:
            raise ArtifactNotFoundError(artifact_id)
        return path.read_bytes(), _MIME_TYPES.get(path.suffix, "application/octet-stream")

    def exists(self, artifact_id: str) -> bool:
        return self._locate(artifact_id) is not None

    def url_for(self, artifact_id: str) -> str:
        return f"{self._public_base_url}/public/audio/{artifact_id}"

    def _locate(self, artifact_id: str) -> Optional[Path]:
        if not _ARTIFACT_ID.match(artifact_id or ""):
            return None
        for extension in _MIME_TYPES:
            candidate = self._directory / f"{artifact_id}{extension}"
            if candidate.is_file():
                return candidate
        return None
