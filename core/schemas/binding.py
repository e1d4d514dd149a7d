"""
NameGuard Identity Binding

Mutable per-identity state: trust level, fingerprint history and session
bookkeeping. A Binding is only mutated while its identity lock is held
(see persistence.registry.BindingRegistry.identity_lock).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.schemas.fingerprint import AccountType, Fingerprint, LegacyFormatError


logger = logging.getLogger(__name__)


class TrustLevel(str, Enum):
    """Promotable trust classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    LOCKED = "LOCKED"

    @property
    def is_elevated(self) -> bool:
        """HIGH and LOCKED qualify for the trust-based gate bypasses."""
        return self in (TrustLevel.HIGH, TrustLevel.LOCKED)


class BindingFormatError(ValueError):
    """Raised when a stored binding cannot be turned into a Binding."""
    pass


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Binding:
    """Persistent record linking a normalized identity to its history."""

    identity_key: str
    preferred_display: str
    account_type: AccountType
    trust: TrustLevel = TrustLevel.LOW
    fingerprints: List[Fingerprint] = field(default_factory=list)
    created_at: int = field(default_factory=_now_ms)
    last_seen_at: int = field(default_factory=_now_ms)
    total_playtime_ms: int = 0

    @classmethod
    def create(
        cls,
        identity_key: str,
        preferred_display: str,
        account_type: AccountType,
        first_fingerprint: Fingerprint,
    ) -> Binding:
        """Reserve a new identity with its first fingerprint."""
        return cls(
            identity_key=identity_key,
            preferred_display=preferred_display,
            account_type=account_type,
            fingerprints=[first_fingerprint],
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def update_last_seen(self, now_ms: Optional[int] = None) -> None:
        self.last_seen_at = now_ms if now_ms is not None else _now_ms()

    def add_playtime(self, duration_ms: int) -> None:
        if duration_ms > 0:
            self.total_playtime_ms += duration_ms

    def add_fingerprint(self, fingerprint: Fingerprint, limit: int) -> None:
        """
        Append a fingerprint to the rolling history.

        An equal fingerprint already in history is moved to the newest
        position instead of being duplicated. The oldest entries are
        dropped once the history exceeds ``limit``.
        """
        limit = max(1, limit)
        self.fingerprints = [fp for fp in self.fingerprints if fp != fingerprint]
        self.fingerprints.append(fingerprint)
        if len(self.fingerprints) > limit:
            self.fingerprints = self.fingerprints[-limit:]

    def purge_old_fingerprints(
        self,
        max_age_ms: int,
        min_keep: int = 1,
        now_ms: Optional[int] = None,
    ) -> int:
        """
        Drop fingerprints older than ``max_age_ms``, keeping at least
        ``min_keep`` of the newest ones.

        Returns:
            Number of fingerprints removed.
        """
        if max_age_ms <= 0 or not self.fingerprints:
            return 0
        now_ms = now_ms if now_ms is not None else _now_ms()
        cutoff = now_ms - max_age_ms

        kept = [fp for fp in self.fingerprints if fp.created_at >= cutoff]
        if len(kept) < min_keep:
            newest = sorted(self.fingerprints, key=lambda fp: fp.created_at)[-min_keep:]
            newest_ids = {id(fp) for fp in newest}
            kept = [fp for fp in self.fingerprints if id(fp) in newest_ids]

        removed = len(self.fingerprints) - len(kept)
        self.fingerprints = kept
        return removed

    def normalize_preferred_display(self, stripped: str) -> bool:
        """Replace the stored display with its prefix-stripped form if they differ."""
        if self.preferred_display == stripped:
            return False
        self.preferred_display = stripped
        return True

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_key": self.identity_key,
            "preferred_display": self.preferred_display,
            "account_type": self.account_type.value,
            "trust": self.trust.value,
            "fingerprints": [fp.to_dict() for fp in self.fingerprints],
            "created_at": self.created_at,
            "last_seen_at": self.last_seen_at,
            "total_playtime_ms": self.total_playtime_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], identity_key: Optional[str] = None) -> Binding:
        """
        Rebuild a Binding from its stored form.

        Both the current layout and the camelCase layout of older releases
        (normalizedName, preferredName, accountType, lastSeen, totalPlaytime)
        are accepted. Unreadable fingerprints are skipped; a non-empty
        history that loses every entry is rejected as corrupt.

        Raises:
            BindingFormatError: if the record cannot be upgraded.
        """
        if not isinstance(data, dict):
            raise BindingFormatError(f"Expected a mapping, got {type(data).__name__}")

        try:
            key = data.get("identity_key") or data.get("normalizedName") or identity_key
            display = data.get("preferred_display") or data.get("preferredName")
            if not key or not display:
                raise BindingFormatError("Binding is missing its identity key or display name")

            account_type = AccountType.parse(
                data.get("account_type") or data.get("accountType") or AccountType.NATIVE
            )
            trust = TrustLevel(str(data.get("trust", TrustLevel.LOW.value)).upper())

            raw_fps = data.get("fingerprints") or []
            fingerprints: List[Fingerprint] = []
            for raw_fp in raw_fps:
                try:
                    fingerprints.append(Fingerprint.from_dict(raw_fp))
                except (LegacyFormatError, ValueError, TypeError, AttributeError) as e:
                    logger.warning(f"Skipping unreadable fingerprint for '{key}': {e}")

            if raw_fps and not fingerprints:
                raise BindingFormatError(f"No readable fingerprints left for '{key}'")

            return cls(
                identity_key=key,
                preferred_display=display,
                account_type=account_type,
                trust=trust,
                fingerprints=fingerprints,
                created_at=int(data.get("created_at", data.get("createdAt", _now_ms()))),
                last_seen_at=int(data.get("last_seen_at", data.get("lastSeen", _now_ms()))),
                total_playtime_ms=int(data.get("total_playtime_ms", data.get("totalPlaytime", 0))),
            )
        except BindingFormatError:
            raise
        except (KeyError, ValueError, TypeError) as e:
            raise BindingFormatError(f"Corrupt binding record: {e}") from e
