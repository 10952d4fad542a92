"""Uploaded image bytes on disk, keyed by generated filename."""
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CONTENT_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "dcm": "application/dicom",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class InvalidBlobName(ValueError):
    """Filename that would escape the blob directory."""


def content_type_for(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


class BlobStore:
    def __init__(self, root: str | Path):
        self.root = Path(root)

    @staticmethod
    def check_name(filename: str) -> str:
        """Raises InvalidBlobName for names that are empty or contain path parts."""
        if not filename or "/" in filename or "\\" in filename or filename in (".", "..") or ".." in filename:
            raise InvalidBlobName(filename)
        return filename

    def _path(self, filename: str) -> Path:
        return self.root / self.check_name(filename)

    def save(self, filename: str, data: bytes) -> Path:
        path = self._path(filename)
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("blob saved: %s (%d bytes)", filename, len(data))
        return path

    def read(self, filename: str) -> bytes:
        """Raises FileNotFoundError when the blob does not exist."""
        return self._path(filename).read_bytes()