"""
NameGuard Supabase Binding Store

Supabase-based persistence for identity bindings.
Uses the identity_bindings table.

Schema:
    identity_bindings (
        identity_key TEXT PRIMARY KEY,
        payload      JSONB,
        updated_at   TIMESTAMPTZ DEFAULT now()
    )
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from supabase import Client

from core.schemas.binding import Binding, BindingFormatError
from persistence.binding_store import BindingStore, StorageError
from persistence.connection import get_supabase_client


logger = logging.getLogger(__name__)


class SupabaseBindingStore(BindingStore):
    """Supabase backend. Client and HTTP failures surface as StorageError."""

    TABLE_NAME = "identity_bindings"

    def __init__(self, client: Optional[Client] = None) -> None:
        self.client: Any = client if client is not None else get_supabase_client()
        if self.client is None:
            raise StorageError("Supabase credentials missing, cannot use the Supabase binding store")
        logger.info("SupabaseBindingStore initialized")

    def load(self, identity_key: str) -> Optional[Binding]:
        try:
            response = self.client.table(self.TABLE_NAME).select(
                "payload"
            ).eq("identity_key", identity_key).execute()
        except Exception as e:
            raise StorageError(f"Failed to load binding '{identity_key}': {e}") from e

        if not response.data:
            logger.debug(f"No stored binding for '{identity_key}'")
            return None

        try:
            return Binding.from_dict(response.data[0]["payload"], identity_key=identity_key)
        except (BindingFormatError, KeyError, TypeError) as e:
            raise StorageError(f"Unreadable binding record for '{identity_key}': {e}") from e

    def save(self, binding: Binding) -> None:
        record = {
            "identity_key": binding.identity_key,
            "payload": binding.to_dict(),
            "updated_at": "now()",
        }
        try:
            self.client.table(self.TABLE_NAME).upsert(
                record,
                on_conflict="identity_key"
            ).execute()
        except Exception as e:
            raise StorageError(f"Failed to save binding '{binding.identity_key}': {e}") from e
        logger.debug(f"Saved binding '{binding.identity_key}' to Supabase")

    def remove(self, identity_key: str) -> None:
        try:
            self.client.table(self.TABLE_NAME).delete().eq("identity_key", identity_key).execute()
        except Exception as e:
            raise StorageError(f"Failed to remove binding '{identity_key}': {e}") from e
