"""
NameGuard Binding Store

Persistent-store interface for identity bindings, plus the in-process
backend used for tests and single-node deployments.

Backends:
    MemoryBindingStore    (this module)
    RedisBindingStore     (persistence.redis_store)
    SupabaseBindingStore  (persistence.supabase_store)

Every backend raises StorageError for its own failures so callers only
ever handle one exception type.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from core.schemas.binding import Binding, BindingFormatError


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A binding backend failed to load, save or remove a record."""
    pass


class BindingStore(ABC):
    """Per-identity persistence of Binding records."""

    @abstractmethod
    def load(self, identity_key: str) -> Optional[Binding]:
        """Load a binding. Returns None when no record exists."""

    @abstractmethod
    def save(self, binding: Binding) -> None:
        """Write a binding, replacing any previous record."""

    @abstractmethod
    def remove(self, identity_key: str) -> None:
        """Delete a binding. Removing a missing record is not an error."""

    def shutdown(self) -> None:
        """Release backend resources."""
        return None


def encode_binding(binding: Binding) -> str:
    return json.dumps(binding.to_dict(), separators=(",", ":"))


def decode_binding(raw: str, identity_key: str) -> Binding:
    """Decode a stored JSON record, mapping format problems to StorageError."""
    try:
        return Binding.from_dict(json.loads(raw), identity_key=identity_key)
    except (json.JSONDecodeError, BindingFormatError) as e:
        raise StorageError(f"Unreadable binding record for '{identity_key}': {e}") from e


class MemoryBindingStore(BindingStore):
    """
    Thread-safe in-memory backend.

    Records are kept in their serialized form so a loaded Binding never
    aliases the stored one, the same as with a remote backend.
    """

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, identity_key: str) -> Optional[Binding]:
        with self._lock:
            raw = self._records.get(identity_key)
        if raw is None:
            return None
        return decode_binding(raw, identity_key)

    def save(self, binding: Binding) -> None:
        encoded = encode_binding(binding)
        with self._lock:
            self._records[binding.identity_key] = encoded

    def remove(self, identity_key: str) -> None:
        with self._lock:
            self._records.pop(identity_key, None)

    def __contains__(self, identity_key: str) -> bool:
        with self._lock:
            return identity_key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
