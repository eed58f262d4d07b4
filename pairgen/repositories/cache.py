"""Local cache of cloned upstream repositories."""

from __future__ import annotations

import shutil
import threading
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import CloneFailed, TransientCloneError, TransportError
from ..logging import get_logger
from ..models import RepositoryCacheEntry
from .index import INDEX_FILENAME, CacheIndex
from .transport import GitTransport, Transport
from .urls import cache_directory_name, normalize_repository_url, repository_name

_TMP_PREFIX = ".tmp-"


class RepositoryCache:
    """Maps repository URLs to local checkouts, cloning each URL at most once.

    Requests for the same URL are serialized by a per-URL lock, so concurrent
    callers wait for the first clone and then share its checkout. Requests for
    different URLs proceed in parallel.
    """

    def __init__(
        self,
        root: Path,
        transport: Transport | None = None,
        *,
        depth: Optional[int] = 1,
        retries: int = 3,
        backoff: float = 2.0,
        max_backoff: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.root = root.expanduser().resolve()
        self.transport = transport or GitTransport()
        self.depth = depth
        self.retries = max(retries, 0)
        self.backoff = backoff
        self.max_backoff = max_backoff
        self._sleep = sleep
        self._index = CacheIndex(self.root / INDEX_FILENAME)
        self._entries: Dict[str, RepositoryCacheEntry] = {}
        self._failures: Dict[str, CloneFailed] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.logger = get_logger("cache")

    @property
    def entries(self) -> List[RepositoryCacheEntry]:
        """Checkouts acquired during this run."""
        with self._registry_lock:
            return list(self._entries.values())

    def acquire(self, repository_url: str) -> Path:
        """Return the local checkout for `repository_url`, cloning it on first use."""
        key = normalize_repository_url(repository_url)
        with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is not None:
                return entry.local_path

            failure = self._failures.get(key)
            if failure is not None:
                raise CloneFailed(failure.repository_url, failure.reason, transient=failure.transient)

            destination = self.root / cache_directory_name(repository_url)
            persisted = self._index.get(key)
            if persisted is not None and persisted.local_path == destination and _is_checkout(destination):
                self.logger.debug("Reusing cached checkout of %s at %s", repository_url, destination)
                entry = persisted
            else:
                try:
                    entry = self._clone(repository_url, key, destination)
                except CloneFailed as exc:
                    self._failures[key] = exc
                    raise

            with self._registry_lock:
                self._entries[key] = entry
            return entry.local_path

    def prune_partial(self) -> int:
        """Remove leftovers of interrupted clones and return how many were removed."""
        if not self.root.is_dir():
            return 0
        removed = 0
        for child in sorted(self.root.iterdir()):
            if not child.is_dir():
                continue
            if child.name.startswith(_TMP_PREFIX) or not self._is_recorded(child):
                self.logger.warning("Removing incomplete checkout %s", child)
                shutil.rmtree(child)
                removed += 1
        return removed

    def clear(self) -> bool:
        """Delete the whole cache root. Returns True when something was removed."""
        with self._registry_lock:
            existed = self.root.exists()
            if existed:
                shutil.rmtree(self.root)
            self._entries.clear()
            self._failures.clear()
            self._locks.clear()
            self._index = CacheIndex(self.root / INDEX_FILENAME)
        return existed

    # ------------------------------------------------------------------
    # Internal helpers

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _is_recorded(self, path: Path) -> bool:
        for key in self._index.keys():
            entry = self._index.get(key)
            if entry is not None and entry.local_path == path:
                return True
        return False

    def _clone(self, url: str, key: str, destination: Path) -> RepositoryCacheEntry:
        if destination.exists():
            self.logger.warning("Removing incomplete checkout %s", destination)
            shutil.rmtree(destination)
        self._index.forget(key)
        self.root.mkdir(parents=True, exist_ok=True)

        self.logger.info("Cloning %s", url)
        started = time.monotonic()
        try:
            self._clone_with_retry(url, destination)
        except TransportError as exc:
            raise CloneFailed(url, str(exc), transient=isinstance(exc, TransientCloneError)) from exc

        entry = RepositoryCacheEntry(
            repository_url=url,
            local_path=destination,
            cloned_at=datetime.now(UTC),
        )
        self._index.record(key, entry)
        self.logger.info("Cloned %s in %.1fs", repository_name(url), time.monotonic() - started)
        return entry

    def _clone_with_retry(self, url: str, destination: Path) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff, max=self.max_backoff),
            retry=retry_if_exception_type(TransientCloneError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self._clone_once(url, destination)

    def _clone_once(self, url: str, destination: Path) -> None:
        staging = destination.with_name(f"{_TMP_PREFIX}{destination.name}-{uuid.uuid4().hex[:8]}")
        try:
            self.transport.clone(url, staging, depth=self.depth)
            staging.rename(destination)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self.logger.warning(
            "Clone attempt %d failed (%s); retrying in %.1fs",
            retry_state.attempt_number,
            exc,
            delay,
        )


def _is_checkout(path: Path) -> bool:
    return (path / ".git").exists()


__all__ = ["RepositoryCache"]
