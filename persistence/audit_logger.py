"""
NameGuard Audit Logger

Fire-and-forget audit log writer that inserts one structured entry into
the Supabase `login_audit` table after every /login verdict.

Schema:
    login_audit (
        event_id TEXT PRIMARY KEY,
        payload  JSONB,
        created_at TIMESTAMPTZ DEFAULT now()
    )

Raw addresses are never written; the payload only carries the identity,
the client hints and the verdict.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from core.schemas.inputs import LoginAttempt
from core.schemas.verdict import Allowed, LoginVerdict
from persistence.connection import get_supabase_client

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Builds and inserts login audit entries into Supabase.

    All writes are best-effort. Errors are logged but never raised so the
    login path is never disrupted.
    """

    TABLE_NAME = "login_audit"
    ENGINE_VERSION = "v1.0.0"

    def __init__(self, client: Optional[Client] = None) -> None:
        self._client: Any = client if client is not None else get_supabase_client()
        if self._client is None:
            logger.warning("Supabase credentials missing, audit logging disabled")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log(self, attempt: LoginAttempt, identity_key: str, verdict: LoginVerdict) -> None:
        """
        Build and insert an audit log entry.

        Args:
            attempt:       The login attempt from the request.
            identity_key:  Normalized identity key of the attempt.
            verdict:       The verdict returned to the host.
        """
        if self._client is None:
            return

        try:
            entry = self.build_entry(attempt, identity_key, verdict)
            self._client.table(self.TABLE_NAME).insert({
                "event_id": entry["event_id"],
                "payload": entry,
            }).execute()
            logger.debug(f"Audit log inserted: {entry['event_id']}")
        except Exception as e:
            logger.error(f"Audit log insertion failed: {e}")

    # ------------------------------------------------------------------
    # Payload Builder
    # ------------------------------------------------------------------

    def build_entry(
        self,
        attempt: LoginAttempt,
        identity_key: str,
        verdict: LoginVerdict,
    ) -> Dict[str, Any]:
        """Assemble the full audit log payload."""
        now = datetime.now(timezone.utc)

        if isinstance(verdict, Allowed):
            outcome = {
                "decision": "ALLOW",
                "reason": None,
                "score": verdict.score,
                "new_binding": verdict.is_new_binding,
                "learned_fingerprint": verdict.learned_fingerprint,
                "trust": verdict.binding.trust.value,
            }
        else:
            outcome = {
                "decision": "DENY",
                "reason": verdict.reason.value,
                "score": verdict.score,
                "new_binding": False,
                "learned_fingerprint": False,
                "trust": None,
            }

        return {
            # Metadata
            "event_id": f"evt_{uuid.uuid4()}",
            "timestamp": now.isoformat(),
            "environment": os.getenv("NAMEGUARD_ENV", "production"),
            "engine_version": self.ENGINE_VERSION,

            # Actor
            "actor": {
                "username": attempt.username,
                "identity_key": identity_key,
                "account_type": attempt.account_type.value,
                "has_platform_id": bool(attempt.platform_id),
            },

            # Client
            "client_context": {
                "client_brand": attempt.client_brand,
                "device_os": attempt.device_os,
                "protocol_version": attempt.protocol_version,
            },

            # Verdict
            "verdict": outcome,
        }
