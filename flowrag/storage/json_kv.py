"""
JSON KV Storage - One JSON file per key in a directory

Keys are percent-encoded into file names, so list() returns the original
keys (including ":" separators) on every platform. Keys too long for a
file name are stored under a digest name; the key is kept inside the file.
"""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

SUFFIX = ".json"
HASHED_PREFIX = "~"
MAX_NAME_LENGTH = 200


class JsonKVStorage:
    """File-backed KV store"""

    def __init__(self, directory: str):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        name = quote(key, safe='')
        if len(name) > MAX_NAME_LENGTH:
            name = HASHED_PREFIX + hashlib.sha256(key.encode('utf-8')).hexdigest()
        return self.directory / f"{name}{SUFFIX}"

    @staticmethod
    def _load(path: Path) -> dict:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        return self._load(path)["value"]

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        # One temp file per write, so concurrent writers of a key never share it
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.directory, prefix=path.name, suffix=".tmp", delete=False
        ) as f:
            json.dump({"key": key, "value": value}, f, ensure_ascii=False)
        try:
            os.replace(f.name, path)
        except OSError:
            os.unlink(f.name)
            raise

    def _keys(self) -> List[str]:
        keys = []
        for entry in os.scandir(self.directory):
            if not entry.name.endswith(SUFFIX):
                continue
            name = entry.name[:-len(SUFFIX)]
            if name.startswith(HASHED_PREFIX):
                keys.append(self._load(Path(entry.path))["key"])
            else:
                keys.append(unquote(name))
        return keys

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        keys = await asyncio.to_thread(self._keys)
        return sorted(k for k in keys if not prefix or k.startswith(prefix))

    async def clear(self) -> None:
        for key in await self.list():
            self._path(key).unlink(missing_ok=True)
        logger.info(f"Cleared KV store at {self.directory}")
