"""
Local file system storage provider for attachments.
"""

from pathlib import Path
from typing import Optional

from parley.core.config import get_settings
from parley.core.exceptions import StorageError
from parley.interfaces.storage_provider import IStorageProvider


class LocalStorageProvider(IStorageProvider):
    """
    Local file system storage implementation.

    Files are written flat under ``base_path`` and served by the static
    mount at ``/uploads``.
    """

    def __init__(self, base_path: Optional[str] = None, public_prefix: str = "/uploads"):
        """
        Initialize local storage provider.

        Args:
            base_path: Base directory for file storage (default: STORAGE_BASE_PATH)
            public_prefix: URL path the storage directory is mounted under
        """
        self.base_path = Path(base_path or get_settings().STORAGE_BASE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_prefix = public_prefix.rstrip("/")

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Write a file to local storage and return its absolute path."""
        try:
            file_path = self._resolve_path(path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            with open(file_path, "wb") as f:
                f.write(data)

            return str(file_path.absolute())

        except OSError as e:
            raise StorageError(f"Failed to upload file: {e}") from e

    async def exists(self, path: str) -> bool:
        """Check if a file exists."""
        return self._resolve_path(path).exists()

    def get_public_url(self, path: str) -> str:
        """Path under which the file is served, relative to the server root."""
        return f"{self.public_prefix}/{path}"

    def _resolve_path(self, path: str) -> Path:
        """Resolve a relative storage path, refusing anything outside base_path."""
        base = self.base_path.resolve()
        file_path = (base / path).resolve()
        if base != file_path and base not in file_path.parents:
            raise StorageError(f"Invalid storage path: {path}")
        return file_path
