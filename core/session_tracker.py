"""
NameGuard Session Tracker

Thread-safe, in-memory session bookkeeping for admitted players:
- session start time per identity (set on allow, consumed on quit)
- freshly reserved identities awaiting their protection notice

On quit, the session's play time is added to the binding, LOW trust is
promoted to MEDIUM once enough play time accumulates, and the binding is
flushed and evicted from the online cache.

Usage:
    tracker = SessionTracker(config, registry)
    tracker.record_verdict("steve", verdict)
    tracker.on_join("steve")   # -> protection message or None
    tracker.on_quit("steve")
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Set

from core.config import GuardConfig
from core.schemas.binding import Binding, TrustLevel
from core.schemas.verdict import Allowed, LoginVerdict
from persistence.registry import BindingRegistry


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionTracker:
    """
    Host session hooks.

    Attributes:
        config: Engine configuration (ownership and message settings).
        registry: Binding registry used for play-time updates and unloads.
    """

    def __init__(
        self,
        config: GuardConfig,
        registry: BindingRegistry,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.config = config
        self.registry = registry
        self._clock = clock

        self._session_start: Dict[str, int] = {}
        self._new_bindings: Set[str] = set()
        self._lock = threading.Lock()

    def record_verdict(self, identity_key: str, verdict: LoginVerdict) -> None:
        """Start a session for an allowed login; remember newly reserved identities."""
        if not isinstance(verdict, Allowed):
            return
        with self._lock:
            self._session_start[identity_key] = self._clock()
            if verdict.is_new_binding:
                self._new_bindings.add(identity_key)

    def on_join(self, identity_key: str) -> Optional[str]:
        """
        Returns:
            The protection notice, once, for an identity reserved by this login.
        """
        with self._lock:
            if identity_key not in self._new_bindings:
                return None
            self._new_bindings.discard(identity_key)
        return self.config.messages.protection_success or None

    def on_quit(self, identity_key: str) -> int:
        """
        Close the session: accumulate play time, promote trust, unload.

        Returns:
            Session duration in milliseconds (0 if no session was open).
        """
        with self._lock:
            started = self._session_start.pop(identity_key, None)
            self._new_bindings.discard(identity_key)

        duration = 0
        if started is not None:
            duration = self._clock() - started
            if duration > 0:
                self._update_playtime(identity_key, duration)

        self.registry.unload(identity_key)
        return max(duration, 0)

    def is_in_session(self, identity_key: str) -> bool:
        with self._lock:
            return identity_key in self._session_start

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _update_playtime(self, identity_key: str, duration_ms: int) -> None:
        with self.registry.identity_lock(identity_key):
            binding = self.registry.get(identity_key)
            if binding is None:
                logger.warning(f"No binding to credit {duration_ms}ms of play time for '{identity_key}'")
                return
            binding.add_playtime(duration_ms)
            self._promote_if_eligible(binding)
            self.registry.save(binding)

    def _promote_if_eligible(self, binding: Binding) -> None:
        if (
            binding.trust == TrustLevel.LOW
            and binding.total_playtime_ms > self.config.low_trust_playtime_millis
        ):
            binding.trust = TrustLevel.MEDIUM
            logger.info(f"Updated trust level for '{binding.identity_key}' to MEDIUM")
