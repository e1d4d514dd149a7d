"""
NameGuard Fingerprint

Immutable snapshot of the identity, network, client and geo signals of a
single login attempt. Network signals are keyed hashes; raw addresses are
never stored.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional


class AccountType(str, Enum):
    """Client protocol family."""
    NATIVE = "NATIVE"
    BRIDGED = "BRIDGED"

    @classmethod
    def parse(cls, value: Any) -> AccountType:
        """Parse current and legacy ("JAVA"/"BEDROCK") spellings."""
        if isinstance(value, AccountType):
            return value
        text = str(value).strip().upper()
        if text in _LEGACY_ACCOUNT_TYPES:
            return _LEGACY_ACCOUNT_TYPES[text]
        return cls(text)


_LEGACY_ACCOUNT_TYPES = {
    "JAVA": AccountType.NATIVE,
    "BEDROCK": AccountType.BRIDGED,
}


class LegacyFormatError(ValueError):
    """Raised for stored fingerprints in a layout that can no longer be read."""
    pass


# camelCase keys written by older releases
_LEGACY_KEYS = {
    "createdAt": "created_at",
    "xuid": "platform_id",
    "javaUuid": "client_id",
    "ipVersion": "ip_version",
    "hashedPrefix": "hashed_prefix",
    "hashedPtr": "hashed_ptr",
    "hashedPseudoAsn": "hashed_pseudo_asn",
    "clientBrand": "client_brand",
    "protocolVersion": "protocol_version",
    "edition": "account_type",
    "deviceOs": "device_os",
    "countryCode": "country_code",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Fingerprint:
    """
    Multi-factor fingerprint of one login attempt.

    Equality covers every signal field; created_at is bookkeeping and is
    ignored so that a re-seen connection deduplicates against history.
    """

    account_type: AccountType
    ip_version: str

    # Strong identity
    platform_id: Optional[str] = None
    client_id: Optional[str] = None

    # Keyed network hashes
    hashed_prefix: Optional[str] = None
    hashed_pseudo_asn: Optional[str] = None
    hashed_ptr: Optional[str] = None

    # Client
    client_brand: Optional[str] = None
    protocol_version: Optional[str] = None
    device_os: Optional[str] = None

    # Geo
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    asn: Optional[str] = None
    org: Optional[str] = None
    isp: Optional[str] = None

    created_at: int = field(default_factory=_now_ms, compare=False)

    def __post_init__(self) -> None:
        if self.account_type is None:
            raise ValueError("Fingerprint requires an account_type")
        if not self.ip_version:
            raise ValueError("Fingerprint requires an ip_version")
        if not isinstance(self.account_type, AccountType):
            object.__setattr__(self, "account_type", AccountType.parse(self.account_type))

    @property
    def network_hashes(self) -> tuple:
        return (self.hashed_prefix, self.hashed_pseudo_asn, self.hashed_ptr)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["account_type"] = self.account_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Fingerprint:
        """
        Rebuild a fingerprint from its stored form.

        Accepts the current snake_case layout and the camelCase layout of
        older releases. The first-generation hash/GeoIP layout (keys "value",
        "country") cannot be mapped onto the current signals and raises
        LegacyFormatError.
        """
        if "value" in data or "country" in data:
            raise LegacyFormatError("Legacy fingerprint format detected, rebinding required")

        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            normalized[_LEGACY_KEYS.get(key, key)] = value

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in normalized.items() if k in known}
        kwargs.setdefault("ip_version", "v4")
        kwargs["account_type"] = AccountType.parse(kwargs.get("account_type", AccountType.NATIVE))
        if kwargs.get("created_at") is not None:
            kwargs["created_at"] = int(kwargs["created_at"])
        else:
            kwargs.pop("created_at", None)
        return cls(**kwargs)
