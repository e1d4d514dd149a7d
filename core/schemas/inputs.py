"""
NameGuard Input Schemas

Pydantic V2 models for the host session hooks:
- Login attempt (pre-login reservation event)
- Join / quit notifications
"""

from typing import Optional

from pydantic import BaseModel, Field

from core.schemas.fingerprint import AccountType


# =============================================================================
# Login Attempt
# =============================================================================

class LoginAttempt(BaseModel):
    """
    Pre-login event raised by the host before the player is admitted.

    Carries the raw display name, the connecting address and whatever
    identity hints the host (or a protocol bridge) could supply.
    """
    username: str = Field(..., min_length=1, max_length=64, description="Raw display name")
    ip_address: str = Field(..., min_length=1, description="Connecting IPv4 or IPv6 address")
    bridged: bool = Field(False, description="Connected through a protocol-translation bridge")
    platform_id: Optional[str] = Field(
        None, description="Platform-issued strong identifier (bridged clients)"
    )
    client_id: Optional[str] = Field(
        None, description="Client-assigned identifier (native clients)"
    )
    client_brand: Optional[str] = Field(None, description="Client brand reported by the host")
    device_os: Optional[str] = Field(None, description="Device operating system, if known")
    protocol_version: Optional[str] = Field(None, description="Client protocol version")

    @property
    def account_type(self) -> AccountType:
        return AccountType.BRIDGED if self.bridged else AccountType.NATIVE


# =============================================================================
# Session Events
# =============================================================================

class SessionEventPayload(BaseModel):
    """Join or quit notification for an admitted player."""
    username: str = Field(..., min_length=1, max_length=64, description="Raw display name")
