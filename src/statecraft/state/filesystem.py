from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path

import structlog

from statecraft.core.errors import StoreIOError
from statecraft.state.base import (
    Document,
    StateBackend,
    format_prefix,
    relative_key,
    storage_path,
)

logger = structlog.get_logger()

SUFFIX = ".json"


class FileSystemStateBackend(StateBackend):
    """One JSON file per key under ``root``; nested prefixes map to directories."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _file(self, prefix: str, key: str) -> Path:
        return self.root / (storage_path(prefix, key) + SUFFIX)

    async def init(self) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)

    async def get(self, prefix: str, key: str) -> Document | None:
        return await asyncio.to_thread(self._read, self._file(prefix, key))

    async def list(self, prefix: str) -> list[str]:
        return await asyncio.to_thread(self._list, prefix)

    async def set(self, prefix: str, key: str, document: Document) -> None:
        await asyncio.to_thread(self._write, self._file(prefix, key), document)

    async def delete(self, prefix: str, key: str) -> None:
        await asyncio.to_thread(self._remove, self._file(prefix, key))

    def _read(self, path: Path) -> Document | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("state_file_read_failed", path=str(path), error=str(exc))
            raise StoreIOError(f"Failed to read state file {path}") from exc

    def _write(self, path: Path, document: Document) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("state_file_write_failed", path=str(path), error=str(exc))
            raise StoreIOError(f"Failed to write state file {path}") from exc

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StoreIOError(f"Failed to delete state file {path}") from exc

    def _list(self, prefix: str) -> list[str]:
        formatted = format_prefix(prefix)
        base = self.root / formatted if formatted else self.root
        if not base.is_dir():
            return []
        keys = []
        # os.walk never yields the "." / ".." pseudo-entries
        for dirpath, _dirnames, filenames in os.walk(base):
            for filename in filenames:
                if not filename.endswith(SUFFIX):
                    continue
                full = Path(dirpath, filename[: -len(SUFFIX)])
                key = relative_key(prefix, full.relative_to(self.root).as_posix())
                if key is not None:
                    keys.append(key)
        return sorted(keys)
