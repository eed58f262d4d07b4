"""Persistent record of completed repository checkouts."""

from __future__ import annotations

import json
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Optional

from ..models import RepositoryCacheEntry

_INDEX_VERSION = 1
INDEX_FILENAME = "index.json"


class CacheIndex:
    """Stores checkout entries keyed by normalized repository URL.

    Only clones that finished are recorded, so a checkout directory without an
    entry is the remains of an interrupted run.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()
        if self._path is not None:
            self._load(self._path)

    def get(self, key: str) -> Optional[RepositoryCacheEntry]:
        with self._lock:
            raw = self._entries.get(key)
        if raw is None:
            return None
        return _entry_from_dict(raw)

    def record(self, key: str, entry: RepositoryCacheEntry) -> None:
        """Add an entry and flush the index to disk."""
        with self._lock:
            self._entries[key] = _entry_to_dict(entry)
            self._persist()

    def forget(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._persist()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {"version": _INDEX_VERSION, "entries": self._entries}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _INDEX_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, Dict[str, str]] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            if _entry_from_dict(raw) is None:
                continue
            valid_entries[key] = raw
        self._entries = valid_entries


def _entry_to_dict(entry: RepositoryCacheEntry) -> Dict[str, str]:
    return {
        "repository_url": entry.repository_url,
        "local_path": str(entry.local_path),
        "cloned_at": entry.cloned_at.astimezone(UTC).isoformat().replace("+00:00", "Z"),
    }


def _entry_from_dict(payload: object) -> Optional[RepositoryCacheEntry]:
    if not isinstance(payload, dict):
        return None
    url = payload.get("repository_url")
    local_path = payload.get("local_path")
    cloned_at = payload.get("cloned_at")
    if not isinstance(url, str) or not isinstance(local_path, str) or not isinstance(cloned_at, str):
        return None
    try:
        timestamp = datetime.fromisoformat(cloned_at.replace("Z", "+00:00"))
    except ValueError:
        return None
    return RepositoryCacheEntry(repository_url=url, local_path=Path(local_path), cloned_at=timestamp)


__all__ = ["CacheIndex", "INDEX_FILENAME"]
