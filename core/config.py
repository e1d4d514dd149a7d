"""
NameGuard Configuration

Pydantic V2 models for every tunable of the verification engine.
Keys use camelCase aliases so existing config files load unchanged:

    {
        "crossEditionLock": true,
        "scoreHardAllow": 70,
        "strict": {"requireNetworkOverlap": true},
        "geo": {"policy": {"disallowHardAllowOnCountryMismatch": true}}
    }

Usage:
    config = load_config()
    config.strict.require_network_overlap
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PLACEHOLDER_SECRETS = {"", "DEFAULT_SALT_CHANGE_ME", "CHANGE_ME"}

DEFAULT_REASONS: Dict[str, str] = {
    "confusableName": "This name is already protected with a different spelling.",
    "crossEditionLock": "This name is bound to another client edition.",
    "hardMismatch": "Your connection does not match the owner of this name.",
    "internalError": "Internal error while verifying your identity. Try again later.",
}


class _Section(BaseModel):
    """Base for config sections: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Scoring
# =============================================================================

class SignalWeights(_Section):
    """Additive weights for client and network signals."""
    device_os: int = Field(30, ge=0)
    brand: int = Field(25, ge=0)
    edition: int = Field(15, ge=0)
    subnet: int = Field(15, ge=0)
    pseudo_asn: int = Field(8, ge=0)
    ptr_domain: int = Field(5, ge=0)
    ip_version: int = Field(2, ge=0)


class StrictConfig(_Section):
    """Network-overlap requirements for hard allow."""
    require_network_overlap: bool = True
    min_network_matches_for_hard_allow: int = Field(1, ge=0, le=3)
    allow_zero_network_for_trust_high: bool = False
    trust_client_assigned_identity: bool = Field(
        False,
        description="Treat native client ids as strong identity (online-mode servers only)",
    )


class GeoWeights(_Section):
    country: int = Field(18, ge=0)
    asn: int = Field(12, ge=0)
    city: int = Field(6, ge=0)


class GeoPolicy(_Section):
    disallow_hard_allow_on_country_mismatch: bool = True
    allow_country_mismatch_for_trust_high: bool = True


class GeoConfig(_Section):
    """GeoLite2 enrichment and country-consistency policy."""
    enabled: bool = True
    cache_ttl_minutes: int = Field(720, ge=0)
    city_db_path: str = "assets/GeoLite2-City.mmdb"
    asn_db_path: Optional[str] = "assets/GeoLite2-ASN.mmdb"
    weights: GeoWeights = Field(default_factory=GeoWeights)
    policy: GeoPolicy = Field(default_factory=GeoPolicy)


# =============================================================================
# Ownership, Normalization, Security
# =============================================================================

class OwnershipConfig(_Section):
    low_trust_playtime_minutes: int = Field(15, ge=0)


class NormalizationConfig(_Section):
    """
    Bridge prefix handling.

    Protocol-translation bridges prepend marker characters (usually ".")
    to the names of their players. By default the markers are stripped so
    ".Steve" and "Steve" share one identity key; preserve_bridge_prefix keeps
    them apart instead.
    """
    bridge_prefix_chars: str = "."
    preserve_bridge_prefix: bool = False


class RateLimitConfig(_Section):
    enabled: bool = True
    attempts: int = Field(5, ge=1)
    block_duration_seconds: int = Field(300, ge=1)


class SecurityConfig(_Section):
    hmac_secret: str = ""
    signal_timeout_millis: int = Field(1000, ge=0)
    fail_closed_on_load_error: bool = False
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


class MessagesConfig(_Section):
    kick_message: str = "[NameGuard]\nConnection refused.\nReason: {reason}"
    reasons: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_REASONS))
    admin_mismatch_notify: str = "[NameGuard] Blocked a login attempt for {player}."
    protection_success: str = "[NameGuard] Your name is now protected."


class DebugConfig(_Section):
    log_failed_attempts: bool = True


# =============================================================================
# Root
# =============================================================================

class GuardConfig(_Section):
    """Root configuration of the verification engine."""

    cross_edition_lock: bool = True
    rolling_fp_limit: int = Field(5, ge=1)
    fingerprint_purge_days: int = Field(90, ge=0)
    score_hard_allow: int = Field(70, ge=1)
    score_soft_allow: int = Field(40, ge=1)

    weight: SignalWeights = Field(default_factory=SignalWeights)
    strict: StrictConfig = Field(default_factory=StrictConfig)
    geo: GeoConfig = Field(default_factory=GeoConfig)
    ownership: OwnershipConfig = Field(default_factory=OwnershipConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)

    @model_validator(mode="after")
    def _check_thresholds(self) -> GuardConfig:
        if self.score_soft_allow > self.score_hard_allow:
            raise ValueError(
                f"scoreSoftAllow ({self.score_soft_allow}) must not exceed "
                f"scoreHardAllow ({self.score_hard_allow})"
            )
        return self

    @property
    def fingerprint_purge_millis(self) -> int:
        return self.fingerprint_purge_days * 24 * 60 * 60 * 1000

    @property
    def low_trust_playtime_millis(self) -> int:
        return self.ownership.low_trust_playtime_minutes * 60 * 1000

    def kick_message(self, reason_key: str) -> str:
        """Render the user-facing kick message for a reason key."""
        reason = self.messages.reasons.get(reason_key, "Unknown reason.")
        return self.messages.kick_message.replace("{reason}", reason)


def load_config(path: Optional[str] = None) -> GuardConfig:
    """
    Load configuration from .env, an optional JSON file and the environment.

    Args:
        path: JSON config file. Defaults to $NAMEGUARD_CONFIG.

    Environment:
        NAMEGUARD_CONFIG: path of the JSON config file
        NAMEGUARD_HMAC_SECRET: deployment secret for network hashes
    """
    load_dotenv()

    path = path or os.getenv("NAMEGUARD_CONFIG")
    raw: Dict = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        logger.info(f"Loaded NameGuard config from {path}")

    config = GuardConfig.model_validate(raw)

    env_secret = os.getenv("NAMEGUARD_HMAC_SECRET")
    if env_secret:
        config.security.hmac_secret = env_secret

    if config.security.hmac_secret in PLACEHOLDER_SECRETS:
        logger.warning("=" * 67)
        logger.warning("SECURITY WARNING: security.hmacSecret is not set or insecure.")
        logger.warning("Generating a temporary secret. Network hashes will not survive a restart.")
        logger.warning("=" * 67)
        config.security.hmac_secret = secrets.token_hex(32)

    return config
