"""
Storage Interface - contract for the document store behind every repository.

Repositories only talk to this interface, so the local filesystem backend can
be replaced by an object store without touching services.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class StorageInterface(ABC):
    """
    Abstract async document store keyed by relative paths.

    Implementations report I/O failures through falsy return values
    (``False``/``None``/``[]``) and log them; they do not raise.
    """

    @abstractmethod
    async def save(
        self,
        path: str,
        content: bytes | str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Write ``content`` to ``path``, replacing what is there.

        Args:
            path: Relative path, e.g. "bookings/<id>.json"
            content: Text or bytes to write
            metadata: Optional sidecar metadata stored next to the file

        Returns:
            bool: True if the write succeeded
        """

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """Return the file's bytes, or None when it does not exist."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Whether a document exists at ``path``."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Remove ``path``; False when nothing was deleted."""

    @abstractmethod
    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        """
        List documents under a directory.

        Args:
            path: Directory to list
            pattern: Optional glob, e.g. "*.json"
            recursive: Descend into subdirectories

        Returns:
            List[str]: Sorted relative paths
        """

    @abstractmethod
    async def get_metadata(self, path: str) -> Optional[Dict[str, Any]]:
        """Size, timestamps and any sidecar metadata for ``path``."""

    @abstractmethod
    async def append(self, path: str, content: str) -> bool:
        """Append text to ``path``, creating it if needed."""
