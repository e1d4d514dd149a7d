"""
NameGuard Output Schemas

Pydantic V2 models for API responses, plus the decision enums shared with
the orchestrator.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class LoginDecision(str, Enum):
    """Final login decision."""
    ALLOW = "ALLOW"
    DENY = "DENY"


class DenyReason(str, Enum):
    """Why a login was denied."""
    CONFUSABLE_NAME_SPOOF = "CONFUSABLE_NAME_SPOOF"
    CROSS_EDITION_LOCK = "CROSS_EDITION_LOCK"
    HARD_MISMATCH = "HARD_MISMATCH"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def message_key(self) -> str:
        """Key into messages.reasons."""
        return _MESSAGE_KEYS[self]


_MESSAGE_KEYS = {
    DenyReason.CONFUSABLE_NAME_SPOOF: "confusableName",
    DenyReason.CROSS_EDITION_LOCK: "crossEditionLock",
    DenyReason.HARD_MISMATCH: "hardMismatch",
    DenyReason.INTERNAL_ERROR: "internalError",
}


# =============================================================================
# Responses
# =============================================================================

class LoginVerdictResponse(BaseModel):
    """Response for POST /login."""
    decision: LoginDecision = Field(..., description="ALLOW or DENY")
    identity_key: str = Field(..., description="Normalized identity key")
    reason: Optional[DenyReason] = Field(None, description="Deny reason, if denied")
    message: Optional[str] = Field(None, description="Kick message to show the player")
    new_binding: bool = Field(False, description="A new identity was reserved")
    learned_fingerprint: bool = Field(False, description="The attempt was added to history")


class JoinResponse(BaseModel):
    """Response for POST /sessions/join."""
    message: Optional[str] = Field(
        None, description="Protection notice for freshly bound names"
    )


class FingerprintView(BaseModel):
    """Public view of one stored fingerprint (hashes are not exposed)."""
    account_type: str
    ip_version: str
    client_brand: Optional[str] = None
    device_os: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None
    network_signals: int = Field(..., ge=0, le=3, description="Number of network hashes present")
    created_at: int


class BindingView(BaseModel):
    """Response for GET /bindings/{name}."""
    identity_key: str
    preferred_display: str
    account_type: str
    trust: str
    online: bool
    total_playtime_ms: int = Field(..., ge=0)
    created_at: int
    last_seen_at: int
    fingerprints: List[FingerprintView] = Field(default_factory=list)


class ReloadResponse(BaseModel):
    """Response for POST /admin/reload."""
    flushed: int = Field(..., ge=0, description="Number of bindings written back")
