"""Persisted record of previously parsed files.

The only structure with cross-run lifetime. A file whose mtime and module
name are unchanged reuses its recorded symbols instead of being re-parsed.

Artifact layout::

    {"version": 1, "entries": [{"filePath": ..., "mtime": ..., "module": ..., "symbols": [...]}]}
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog

from classmap.config.constants import SCAN_CACHE_VERSION
from classmap.index.models import ScanCacheEntry

logger = structlog.get_logger()


class ScanCache:
    """File path -> ScanCacheEntry mapping."""

    def __init__(self, entries: Iterable[ScanCacheEntry] = ()) -> None:
        self._entries: dict[str, ScanCacheEntry] = {}
        for entry in entries:
            self._entries[entry.file_path] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ScanCacheEntry]:
        return iter(self._entries.values())

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._entries

    def get(self, file_path: str) -> ScanCacheEntry | None:
        return self._entries.get(file_path)

    def lookup(self, file_path: str, mtime: int, module: str) -> ScanCacheEntry | None:
        """Return the entry only if it is still valid for this file."""
        entry = self._entries.get(file_path)
        if entry is None or entry.mtime != mtime or entry.module != module:
            return None
        return entry

    def put(self, entry: ScanCacheEntry) -> None:
        self._entries[entry.file_path] = entry

    def without_missing_files(self) -> ScanCache:
        """Copy of the cache with entries whose file no longer exists dropped."""
        return ScanCache(e for e in self._entries.values() if os.path.isfile(e.file_path))

    def to_payload(self) -> dict[str, Any]:
        return {
            "version": SCAN_CACHE_VERSION,
            "entries": [
                {
                    "filePath": e.file_path,
                    "mtime": e.mtime,
                    "module": e.module,
                    "symbols": list(e.symbols),
                }
                for e in sorted(self._entries.values(), key=lambda e: e.file_path)
            ],
        }

    @classmethod
    def from_payload(cls, payload: Any) -> ScanCache:
        """Build a cache from decoded JSON, ignoring anything it cannot trust."""
        if not isinstance(payload, dict):
            return cls()
        version = payload.get("version")
        if version != SCAN_CACHE_VERSION:
            logger.info("scan_cache_version_mismatch", found=version, expected=SCAN_CACHE_VERSION)
            return cls()

        entries: list[ScanCacheEntry] = []
        for raw in payload.get("entries") or []:
            entry = _entry_from_payload(raw)
            if entry is not None:
                entries.append(entry)
        return cls(entries)

    @classmethod
    def load(cls, path: Path) -> ScanCache:
        """Read the cache artifact. Missing, empty or unreadable files give an empty cache."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls()
        except OSError as e:
            logger.warning("scan_cache_unreadable", path=str(path), error=str(e))
            return cls()

        if not text.strip():
            return cls()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("scan_cache_corrupt", path=str(path), error=str(e))
            return cls()

        cache = cls.from_payload(payload)
        logger.debug("scan_cache_loaded", path=str(path), entries=len(cache))
        return cache


def _entry_from_payload(raw: Any) -> ScanCacheEntry | None:
    if not isinstance(raw, dict):
        return None
    file_path = raw.get("filePath")
    mtime = raw.get("mtime")
    module = raw.get("module")
    symbols = raw.get("symbols", [])
    if not isinstance(file_path, str) or not isinstance(module, str):
        return None
    if not isinstance(mtime, int) or isinstance(mtime, bool):
        return None
    if not isinstance(symbols, list) or not all(isinstance(s, str) for s in symbols):
        return None
    return ScanCacheEntry(file_path=file_path, mtime=mtime, module=module, symbols=tuple(symbols))
