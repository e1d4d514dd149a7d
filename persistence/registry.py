"""
NameGuard Binding Registry

Fuses the online-only binding cache with the persistent store, and owns
the per-identity lock table.

    cache   identity_key → Binding (or a raw legacy map awaiting upgrade)
    locks   identity_key → re-entrant lock, created lazily, removed when
            its last holder or waiter leaves

Every operation that mutates a Binding is expected to run inside
``identity_lock(key)``. The registry itself never retries or rolls back a
failed store write; failures are logged and reported to the caller.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from core.schemas.binding import Binding, BindingFormatError
from persistence.binding_store import BindingStore, StorageError


logger = logging.getLogger(__name__)


CacheSlot = Union[Binding, Dict[str, Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _LockEntry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    refs: int = 0


class BindingRegistry:
    """
    Online binding cache in front of a BindingStore.

    Attributes:
        store: Persistent backend.
        purge_after_ms: Fingerprint age limit applied on flush (0 disables).
    """

    def __init__(
        self,
        store: BindingStore,
        purge_after_ms: int = 0,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.store = store
        self.purge_after_ms = purge_after_ms
        self._clock = clock
        self._cache: Dict[str, CacheSlot] = {}
        self._cache_lock = threading.Lock()
        self._locks: Dict[str, _LockEntry] = {}
        self._locks_guard = threading.Lock()

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    @contextmanager
    def identity_lock(self, identity_key: str) -> Iterator[None]:
        """Hold the per-identity lock. Re-entrant for the owning thread."""
        with self._locks_guard:
            entry = self._locks.get(identity_key)
            if entry is None:
                entry = _LockEntry()
                self._locks[identity_key] = entry
            entry.refs += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._locks[identity_key]

    @property
    def active_lock_count(self) -> int:
        with self._locks_guard:
            return len(self._locks)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, identity_key: str) -> Optional[Binding]:
        """Cached binding, or a store load that populates the cache."""
        cached = self._resolve_slot(identity_key)
        if cached is not None:
            return cached

        try:
            loaded = self.store.load(identity_key)
        except StorageError as e:
            logger.warning(f"Failed to load binding '{identity_key}': {e}")
            return None

        if loaded is not None:
            with self._cache_lock:
                self._cache[identity_key] = loaded
        return loaded

    def reload(self, identity_key: str, raise_on_error: bool = False) -> Optional[Binding]:
        """
        Authoritative load from the store.

        A stored record replaces whatever is cached; a clean absence evicts
        the cache slot. On a store failure the cached slot (if any) is used
        instead, unless ``raise_on_error`` is set.

        Raises:
            StorageError: only when raise_on_error is True.
        """
        try:
            loaded = self.store.load(identity_key)
        except StorageError as e:
            logger.warning(f"Authoritative reload failed for '{identity_key}': {e}")
            if raise_on_error:
                raise
            return self._resolve_slot(identity_key)

        with self._cache_lock:
            if loaded is None:
                self._cache.pop(identity_key, None)
            else:
                self._cache[identity_key] = loaded
        return loaded

    def peek(self, identity_key: str) -> Optional[Binding]:
        """
        Cached binding or a store load, without populating the cache.

        Raises:
            StorageError: if the store load fails.
        """
        cached = self._resolve_slot(identity_key)
        if cached is not None:
            return cached
        return self.store.load(identity_key)

    def is_online(self, identity_key: str) -> bool:
        with self._cache_lock:
            return identity_key in self._cache

    def online_keys(self) -> List[str]:
        with self._cache_lock:
            return list(self._cache.keys())

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def save(self, binding: Binding) -> bool:
        """Write through: cache, then store. Returns False if the store write failed."""
        with self._cache_lock:
            self._cache[binding.identity_key] = binding
        try:
            self.store.save(binding)
            return True
        except StorageError as e:
            logger.error(f"Failed to persist binding '{binding.identity_key}': {e}")
            return False

    def persist_offline(self, binding: Binding) -> bool:
        """Write to the store only and evict the cache slot. Returns False if the store write failed."""
        with self._cache_lock:
            self._cache.pop(binding.identity_key, None)
        try:
            self.store.save(binding)
            return True
        except StorageError as e:
            logger.error(f"Failed to persist binding '{binding.identity_key}': {e}")
            return False

    def remove(self, identity_key: str) -> bool:
        """Delete from both tiers. Returns False if the store delete failed."""
        with self.identity_lock(identity_key):
            with self._cache_lock:
                self._cache.pop(identity_key, None)
            try:
                self.store.remove(identity_key)
            except StorageError as e:
                logger.error(f"Failed to remove binding '{identity_key}': {e}")
                return False
        logger.info(f"Binding '{identity_key}' removed")
        return True

    def unload(self, identity_key: str) -> None:
        """Flush a cached binding to the store, then evict it."""
        with self.identity_lock(identity_key):
            binding = self._resolve_slot(identity_key)
            if binding is not None:
                self.save(binding)
            with self._cache_lock:
                self._cache.pop(identity_key, None)

    def warm(self, entries: Mapping[str, Any]) -> None:
        """Seed the cache, typically with raw maps read from an older release."""
        with self._cache_lock:
            for identity_key, slot in entries.items():
                self._cache[identity_key] = slot

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    def flush_all(self) -> int:
        """
        Purge stale fingerprints and persist every cached binding.

        Returns:
            Number of bindings written successfully.
        """
        flushed = 0
        purged = 0
        for identity_key in self.online_keys():
            with self.identity_lock(identity_key):
                binding = self._resolve_slot(identity_key)
                if binding is None:
                    continue
                if self.purge_after_ms > 0:
                    purged += binding.purge_old_fingerprints(
                        self.purge_after_ms, min_keep=1, now_ms=self._clock()
                    )
                if self.save(binding):
                    flushed += 1

        logger.info(f"Flushed {flushed} binding(s), purged {purged} stale fingerprint(s)")
        return flushed

    def reload_all(self) -> int:
        """Flush everything, then drop the cache so bindings reload from the store."""
        flushed = self.flush_all()
        with self._cache_lock:
            self._cache.clear()
        return flushed

    def shutdown(self) -> None:
        self.reload_all()
        self.store.shutdown()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve_slot(self, identity_key: str) -> Optional[Binding]:
        """Return the cached Binding, upgrading a legacy map in place. Corrupt slots are dropped."""
        with self._cache_lock:
            slot = self._cache.get(identity_key)
            if slot is None or isinstance(slot, Binding):
                return slot

            try:
                binding = Binding.from_dict(slot, identity_key=identity_key)
            except BindingFormatError as e:
                logger.warning(f"Dropping corrupt cached binding '{identity_key}': {e}")
                del self._cache[identity_key]
                return None

            self._cache[identity_key] = binding
            logger.info(f"Upgraded legacy binding '{identity_key}'")
            return binding
