"""
NameGuard Core Schemas

Public exports for domain records, input and output models.
"""

# Domain records
from core.schemas.fingerprint import AccountType, Fingerprint, LegacyFormatError
from core.schemas.binding import Binding, BindingFormatError, TrustLevel
from core.schemas.verdict import Allowed, Denied, LoginVerdict

# Input schemas
from core.schemas.inputs import LoginAttempt, SessionEventPayload

# Output schemas
from core.schemas.outputs import (
    BindingView,
    DenyReason,
    FingerprintView,
    JoinResponse,
    LoginDecision,
    LoginVerdictResponse,
    ReloadResponse,
)

__all__ = [
    # Domain
    "AccountType",
    "Fingerprint",
    "LegacyFormatError",
    "Binding",
    "BindingFormatError",
    "TrustLevel",
    "Allowed",
    "Denied",
    "LoginVerdict",
    # Input
    "LoginAttempt",
    "SessionEventPayload",
    # Output
    "LoginDecision",
    "DenyReason",
    "LoginVerdictResponse",
    "JoinResponse",
    "FingerprintView",
    "BindingView",
    "ReloadResponse",
]
