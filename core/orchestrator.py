"""
NameGuard Orchestrator

Sequences one login verification and produces a LoginVerdict.

Pipeline:
    Normalize → Fingerprint → [identity lock] Reload → New | Existing
    Existing: SpoofCheck → EditionCheck → Similarity → Gates → Classify

Classification:
    HARD_ALLOW   allow; strip a leftover bridge prefix from the stored display
    SOFT_ALLOW   allow and learn the fingerprint
    DENY         HARD_MISMATCH (optional admin notification)

Every branch that mutates a binding persists it before returning. Store
failures are logged and never change the verdict. Any unexpected
exception is converted to an INTERNAL_ERROR deny.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core.config import GuardConfig
from core.models.policy import Classification, GateOutcome, PolicyGate
from core.models.similarity import SimilarityEngine
from core.processors.context import FingerprintContextProcessor
from core.processors.normalizer import NameNormalizer
from core.schemas.binding import Binding
from core.schemas.fingerprint import Fingerprint
from core.schemas.inputs import LoginAttempt
from core.schemas.outputs import DenyReason
from core.schemas.verdict import Allowed, Denied, LoginVerdict
from persistence.binding_store import StorageError
from persistence.registry import BindingRegistry


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class VerificationOrchestrator:
    """
    Login decision engine.

    Attributes:
        config: Engine configuration.
        registry: Binding cache, lock table and store.
        context_processor: Builds the Fingerprint of an attempt.
        normalizer: Canonicalizes display names.
        notifier: Receives the admin mismatch notice, if configured.
    """

    def __init__(
        self,
        config: GuardConfig,
        registry: BindingRegistry,
        context_processor: FingerprintContextProcessor,
        normalizer: Optional[NameNormalizer] = None,
        notifier: Optional[Callable[[str], None]] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.config = config
        self.registry = registry
        self.context_processor = context_processor
        self.normalizer = normalizer or NameNormalizer(
            bridge_prefix_chars=config.normalization.bridge_prefix_chars,
            preserve_bridge_prefix=config.normalization.preserve_bridge_prefix,
        )
        self.notifier = notifier
        self._clock = clock

        self.similarity = SimilarityEngine(config)
        self.gate = PolicyGate(config)

    def identity_key(self, username: str) -> str:
        return self.normalizer.normalize(username)

    # =========================================================================
    # Verification
    # =========================================================================

    def verify_login(self, attempt: LoginAttempt) -> LoginVerdict:
        """
        Decide whether the connecting client may use the requested name.

        Never raises: unexpected failures fail closed with INTERNAL_ERROR.
        """
        try:
            identity_key = self.identity_key(attempt.username)
            if not identity_key:
                return self._deny(attempt, DenyReason.CONFUSABLE_NAME_SPOOF, detail="empty identity key")

            # Enrichment may block on DNS; keep it outside the identity lock
            fingerprint = self.context_processor.build(attempt)

            with self.registry.identity_lock(identity_key):
                return self._verify_locked(identity_key, attempt, fingerprint)
        except Exception as e:
            logger.exception(f"Error during login verification for '{attempt.username}': {e}")
            return self._deny(attempt, DenyReason.INTERNAL_ERROR)

    def _verify_locked(
        self,
        identity_key: str,
        attempt: LoginAttempt,
        fingerprint: Fingerprint,
    ) -> LoginVerdict:
        # Only active sessions stay cached; a denied attempt must not bring the binding online
        was_online = self.registry.is_online(identity_key)
        try:
            binding = self.registry.reload(
                identity_key,
                raise_on_error=self.config.security.fail_closed_on_load_error,
            )
        except StorageError:
            return self._deny(attempt, DenyReason.INTERNAL_ERROR, detail="binding load failed")

        display = self.normalizer.strip_legacy_prefix(attempt.username)

        if binding is None:
            return self._reserve(identity_key, display, fingerprint)

        binding.update_last_seen(self._clock())

        # 1. Display spoof check
        if self.normalizer.strip_legacy_prefix(binding.preferred_display) != display:
            self._persist_denied(binding, was_online)
            return self._deny(
                attempt,
                DenyReason.CONFUSABLE_NAME_SPOOF,
                detail=f"bound display is '{binding.preferred_display}'",
            )

        # 2. Edition lock
        if self.config.cross_edition_lock and binding.account_type != fingerprint.account_type:
            self._persist_denied(binding, was_online)
            return self._deny(
                attempt,
                DenyReason.CROSS_EDITION_LOCK,
                detail=f"bound to {binding.account_type.value}",
            )

        # 3. Similarity over the whole history
        best = self.similarity.best_match(fingerprint, binding.fingerprints)
        if best.strong_identity_conflict:
            self._persist_denied(binding, was_online)
            self._notify_admins(attempt.username)
            return self._deny(attempt, DenyReason.HARD_MISMATCH, detail="strong identity conflict")

        # 4. Gates
        outcome = self.gate.evaluate(
            best,
            binding.trust,
            fingerprint.country_code,
            [fp.country_code for fp in binding.fingerprints],
        )
        if outcome.fired:
            logger.info(
                f"Gates {outcome.fired} lowered score for '{identity_key}' "
                f"from {outcome.raw_score} to {outcome.effective_score}"
            )

        # 5. Classify
        return self._apply_classification(binding, attempt, fingerprint, outcome, display, was_online)

    def _reserve(self, identity_key: str, display: str, fingerprint: Fingerprint) -> Allowed:
        binding = Binding.create(identity_key, display, fingerprint.account_type, fingerprint)
        self.registry.save(binding)
        logger.info(f"New binding created for '{identity_key}' ({fingerprint.account_type.value})")
        return Allowed(binding=binding, is_new_binding=True, learned_fingerprint=False)

    def _apply_classification(
        self,
        binding: Binding,
        attempt: LoginAttempt,
        fingerprint: Fingerprint,
        outcome: GateOutcome,
        display: str,
        was_online: bool,
    ) -> LoginVerdict:
        score = outcome.effective_score

        if outcome.classification == Classification.HARD_ALLOW:
            if binding.normalize_preferred_display(display):
                logger.info(f"Normalized stored display of '{binding.identity_key}' to '{display}'")
            self.registry.save(binding)
            logger.info(
                f"Hard allow for '{binding.identity_key}' "
                f"(score={score}, override={outcome.strong_identity_override})"
            )
            return Allowed(binding=binding, is_new_binding=False, learned_fingerprint=False, score=score)

        if outcome.classification == Classification.SOFT_ALLOW:
            binding.add_fingerprint(fingerprint, self.config.rolling_fp_limit)
            self.registry.save(binding)
            logger.info(f"Soft allow for '{binding.identity_key}', fingerprint learned (score={score})")
            return Allowed(binding=binding, is_new_binding=False, learned_fingerprint=True, score=score)

        self._persist_denied(binding, was_online)
        self._notify_admins(attempt.username)
        return self._deny(
            attempt,
            DenyReason.HARD_MISMATCH,
            score=score,
            detail=f"score {outcome.raw_score} -> {score}, network matches {outcome.network_matches}",
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _persist_denied(self, binding: Binding, was_online: bool) -> None:
        """Persist last-seen after a deny; keep the binding cached only if its owner is in session."""
        if was_online:
            self.registry.save(binding)
        else:
            self.registry.persist_offline(binding)

    def _deny(
        self,
        attempt: LoginAttempt,
        reason: DenyReason,
        score: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> Denied:
        if self.config.debug.log_failed_attempts:
            suffix = f" ({detail})" if detail else ""
            logger.warning(
                f"Denied login for '{attempt.username}': {reason.value}{suffix} "
                f"(IP: {attempt.ip_address})"
            )
        return Denied(
            reason=reason,
            user_message=self.config.kick_message(reason.message_key),
            score=score,
        )

    def _notify_admins(self, username: str) -> None:
        template = self.config.messages.admin_mismatch_notify
        if not template or self.notifier is None:
            return
        try:
            self.notifier(template.replace("{player}", username))
        except Exception as e:
            logger.warning(f"Admin notification failed: {e}")
