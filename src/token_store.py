"""
Credential store: where the access token lives between calls.

The token manager only needs two async operations, `get(key)` and
`put(key, value)`, with read-your-writes semantics for a single owner.
Two implementations are provided:

- MemoryTokenStore: a dict in process memory (default)
- JsonFileTokenStore: one JSON document on disk, so a restarted process can
  reuse a token that is still valid instead of hitting the token endpoint
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger("bol-mcp.store")


class TokenStore(Protocol):
    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def put(self, key: str, value: dict[str, Any]) -> None: ...


class MemoryTokenStore:
    """In-process store. Values are copied on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)


class JsonFileTokenStore:
    """
    Store backed by a single JSON file mapping keys to values.

    Writes go to a temporary file that is then renamed over the original, so a
    crash mid-write never leaves a truncated document behind. File access runs
    in a worker thread to keep the event loop free.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        value = data.get(key)
        return value if isinstance(value, dict) else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Token store at %s is not valid JSON, ignoring it", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp_path, self.path)


def create_token_store(path: Path | None) -> TokenStore:
    """Pick the file store when a path is configured, memory otherwise."""
    if path is None:
        return MemoryTokenStore()
    return JsonFileTokenStore(path)
