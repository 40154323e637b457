"""
File storage and the file source used by the parse stage.

FileSource asks the configured FileStorage for a key first. When the key
is not there it falls back to the local sample-data directory, using the
key's basename (or the key itself when it is an absolute path and the
caller allows local paths).
"""
from abc import ABC, abstractmethod
import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

from configs import SAMPLE_DATA_DIR, STORAGE_DIR

logger = logging.getLogger("lakeschema.storage")


class FileStorage(ABC):
    """Object storage addressed by file key."""

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """Raises FileNotFoundError when the key does not exist."""
        pass

    @abstractmethod
    async def upload(self, key: str, data: bytes) -> None:
        pass


class LocalDirectoryStorage(FileStorage):
    """Keys are relative paths below a root directory."""

    def __init__(self, root: str = STORAGE_DIR):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key.lstrip("/\\")).resolve()
        if path != self.root and self.root not in path.parents:
            raise FileNotFoundError(f"File key escapes storage root: {key}")
        return path

    async def download(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise FileNotFoundError(f"{key} not found in {self.root}")
        return await asyncio.to_thread(path.read_bytes)

    async def upload(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)


class InMemoryStorage(FileStorage):

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files: Dict[str, bytes] = dict(files or {})

    async def download(self, key: str) -> bytes:
        if key not in self.files:
            raise FileNotFoundError(f"{key} not found in memory storage")
        return self.files[key]

    async def upload(self, key: str, data: bytes) -> None:
        self.files[key] = data


class FileSource:
    """
    Storage first, then local sample data.

    Absolute keys are read from the local filesystem only with
    allow_absolute_paths (the CLI); otherwise they resolve by basename
    like any other key.
    """

    def __init__(
        self,
        storage: FileStorage,
        sample_data_dir: Optional[str] = SAMPLE_DATA_DIR,
        allow_absolute_paths: bool = False,
    ):
        self.storage = storage
        self.sample_data_dir = Path(sample_data_dir) if sample_data_dir else None
        self.allow_absolute_paths = allow_absolute_paths

    def sample_path(self, key: str) -> Optional[Path]:
        candidate = Path(key)
        if candidate.is_absolute() and self.allow_absolute_paths:
            return candidate
        if self.sample_data_dir is None:
            return None
        return self.sample_data_dir / PurePosixPath(key.replace("\\", "/")).name

    async def read(self, key: str) -> bytes:
        """
        Raises:
            FileNotFoundError: the key exists neither in storage nor in sample data
        """
        try:
            return await self.storage.download(key)
        except FileNotFoundError as e:
            logger.info(f"{key} unavailable in storage ({e}); trying local sample data")

        path = self.sample_path(key)
        if path is None or not path.is_file():
            raise FileNotFoundError(f"{key} not found in storage or sample data")
        return await asyncio.to_thread(path.read_bytes)
