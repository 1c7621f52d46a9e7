"""
Key-value storage backends for server-side records (P2P orders).
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


class KVStore(ABC):
    """Async string key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def put(self, key: str, value: str):
        ...

    @abstractmethod
    async def delete(self, key: str):
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """Sorted keys starting with ``prefix``."""
        ...


class MemoryKVStore(KVStore):
    """In-process store; contents are lost on restart."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str):
        self._data[key] = value

    async def delete(self, key: str):
        self._data.pop(key, None)

    async def list(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class FileKVStore(KVStore):
    """
    One file per key under ``data_dir``.

    Keys are URL-encoded into file names so any key is a valid name on every
    platform. Writes go through a temp file and os.replace.
    """

    def __init__(self, data_dir: str = ".kv-data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.data_dir / quote(key, safe="")

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, value: str):
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def _remove(self, key: str):
        path = self._path(key)
        if path.exists():
            path.unlink()

    def _keys(self, prefix: str) -> List[str]:
        keys = [
            unquote(entry.name) for entry in self.data_dir.iterdir()
            if entry.is_file() and not entry.name.endswith(".tmp")
        ]
        return sorted(k for k in keys if k.startswith(prefix))

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, value: str):
        try:
            await asyncio.to_thread(self._write, key, value)
        except OSError as e:
            logger.error(f"Error putting key {key}: {e}")
            raise

    async def delete(self, key: str):
        try:
            await asyncio.to_thread(self._remove, key)
        except OSError as e:
            logger.error(f"Error deleting key {key}: {e}")
            raise

    async def list(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._keys, prefix)


def create_kv_store(data_dir: Optional[str] = None) -> KVStore:
    """File-backed store when ``data_dir`` is set, in-memory otherwise."""
    if data_dir:
        logger.info(f"Using file KV store at {data_dir}")
        return FileKVStore(data_dir)
    logger.info("Using in-memory KV store (KV_DATA_DIR not set)")
    return MemoryKVStore()
