"""Local file storage for resumes."""

from pathlib import Path
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class LocalStorage:
    """Stores files under a base directory, addressed by relative key."""

    def __init__(self, base_path: str = "./storage", public_url_prefix: str = "/files"):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for file storage
            public_url_prefix: Prefix used when building the stored file URL
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url_prefix = public_url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    async def upload(self, file_data: bytes, key: str, content_type: Optional[str] = None) -> str:
        """
        Write a file and return its URL.

        Args:
            file_data: File bytes
            key: Relative path, e.g. "JN-0001/jane_doe_1700000000_cv.pdf"
            content_type: Ignored for local storage

        Returns:
            URL the file can be referenced by
        """
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, file_data)
        logger.info(f"Saved file to {path}")
        return self.get_url(key)

    async def download(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {key}")
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted file: {path}")
        return True

    async def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def get_url(self, key: str) -> str:
        return f"{self.public_url_prefix}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.public_url_prefix}/"
        return url[len(prefix):] if url.startswith(prefix) else None
