"""
NameGuard Redis Binding Store

One JSON document per identity.

Key Schema:
    BINDING:{identity_key}  → Binding JSON (no TTL)
"""

from __future__ import annotations

import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

from core.schemas.binding import Binding
from persistence.binding_store import BindingStore, StorageError, decode_binding, encode_binding
from persistence.connection import get_redis_client


logger = logging.getLogger(__name__)


class RedisBindingStore(BindingStore):
    """Redis backend. Every RedisError surfaces as StorageError."""

    KEY_PREFIX = "BINDING"

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self.client = client if client is not None else get_redis_client()

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def _binding_key(self, identity_key: str) -> str:
        return f"{self.KEY_PREFIX}:{identity_key}"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def load(self, identity_key: str) -> Optional[Binding]:
        try:
            raw = self.client.get(self._binding_key(identity_key))
        except RedisError as e:
            raise StorageError(f"Failed to load binding '{identity_key}': {e}") from e
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return decode_binding(raw, identity_key)

    def save(self, binding: Binding) -> None:
        try:
            self.client.set(self._binding_key(binding.identity_key), encode_binding(binding))
        except RedisError as e:
            raise StorageError(f"Failed to save binding '{binding.identity_key}': {e}") from e

    def remove(self, identity_key: str) -> None:
        try:
            self.client.delete(self._binding_key(identity_key))
        except RedisError as e:
            raise StorageError(f"Failed to remove binding '{identity_key}': {e}") from e

    def shutdown(self) -> None:
        try:
            self.client.close()
        except RedisError as e:
            logger.warning(f"Failed to close Redis client: {e}")
