"""
Attachment storage provider interface.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IStorageProvider(ABC):
    """Abstract interface for binary attachment storage."""

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Store a file and return its storage location."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file exists."""
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Get the URL under which a stored file is served."""
        pass
