"""
Local filesystem implementation of the document store.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from .interface import StorageInterface

logger = logging.getLogger(__name__)

META_SUFFIX = '.meta'


class LocalStorage(StorageInterface):
    """Stores every document as a file under ``base_dir``."""

    def __init__(self, base_dir: str = "./data"):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        """Map a relative document path to a file inside ``base_dir``."""
        full_path = (self.base_dir / path).resolve()
        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid path: {path} - path traversal detected")
        return full_path

    @staticmethod
    def _meta_path(full_path: Path) -> Path:
        return full_path.with_suffix(full_path.suffix + META_SUFFIX)

    async def save(
        self,
        path: str,
        content: bytes | str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        try:
            full_path = self._resolve(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            if isinstance(content, str):
                async with aiofiles.open(full_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            else:
                async with aiofiles.open(full_path, 'wb') as f:
                    await f.write(content)

            if metadata:
                async with aiofiles.open(self._meta_path(full_path), 'w', encoding='utf-8') as f:
                    await f.write(json.dumps(metadata, indent=2, default=str))

            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error saving {path}: {e}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        try:
            full_path = self._resolve(path)
            if not full_path.is_file():
                return None
            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading {path}: {e}")
            return None

    async def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except ValueError:
            return False

    async def delete(self, path: str) -> bool:
        try:
            full_path = self._resolve(path)
            if not full_path.is_file():
                return False

            full_path.unlink()
            meta_path = self._meta_path(full_path)
            if meta_path.exists():
                meta_path.unlink()
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting {path}: {e}")
            return False

    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        try:
            directory = self._resolve(path)
            if not directory.is_dir():
                return []

            glob_pattern = pattern or "*"
            matches = directory.rglob(glob_pattern) if recursive else directory.glob(glob_pattern)

            return sorted(
                str(p.relative_to(self.base_dir))
                for p in matches
                if p.is_file() and not p.name.endswith(META_SUFFIX)
            )
        except (OSError, ValueError) as e:
            logger.error(f"Error listing {path}: {e}")
            return []

    async def get_metadata(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            full_path = self._resolve(path)
            if not full_path.is_file():
                return None

            stat = full_path.stat()
            metadata: Dict[str, Any] = {
                'path': path,
                'size': stat.st_size,
                'created_at': datetime.fromtimestamp(stat.st_ctime).isoformat(),
                'modified_at': datetime.fromtimestamp(stat.st_mtime).isoformat(),
            }

            meta_path = self._meta_path(full_path)
            if meta_path.exists():
                async with aiofiles.open(meta_path, 'r', encoding='utf-8') as f:
                    metadata.update(json.loads(await f.read()))

            return metadata
        except (OSError, ValueError) as e:
            logger.error(f"Error reading metadata for {path}: {e}")
            return None

    async def append(self, path: str, content: str) -> bool:
        try:
            full_path = self._resolve(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(full_path, 'a', encoding='utf-8') as f:
                await f.write(content)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error appending to {path}: {e}")
            return False
