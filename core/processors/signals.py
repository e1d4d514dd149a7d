"""
NameGuard Network Signal Provider

Derives privacy-preserving network heuristics from a connecting address:
- IP version ("v4" / "v6")
- Subnet prefix (/24 IPv4, /48 IPv6)
- Pseudo-ASN block (/16 IPv4, /32 IPv6)
- Reverse-DNS domain (best-effort, bounded wait)

Every value is keyed with HMAC-SHA256 using the deployment secret before it
leaves this module, so raw network data is never persisted.
"""

import hashlib
import hmac
import ipaddress
import logging
import socket
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional


logger = logging.getLogger(__name__)


UNKNOWN_IP_VERSION = "unknown"


@dataclass(frozen=True)
class NetworkSignals:
    """Keyed network heuristics for one address."""
    ip_version: str
    hashed_prefix: Optional[str] = None
    hashed_pseudo_asn: Optional[str] = None
    hashed_ptr: Optional[str] = None


def _reverse_lookup(ip: str) -> str:
    return socket.gethostbyaddr(ip)[0]


class NetworkSignalProvider:
    """
    Computes NetworkSignals without ever blocking the login path for longer
    than ``ptr_timeout`` seconds. Failures only omit the affected signal.
    """

    def __init__(
        self,
        secret: str,
        ptr_timeout: float = 1.0,
        reverse_lookup: Callable[[str], str] = _reverse_lookup,
        max_workers: int = 4,
    ) -> None:
        if not secret:
            raise ValueError("NetworkSignalProvider requires a non-empty secret")
        self._key = secret.encode("utf-8")
        self.ptr_timeout = ptr_timeout
        self._reverse_lookup = reverse_lookup
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="nameguard-ptr")

    def collect(self, ip_address: str) -> NetworkSignals:
        """Collect all network signals for an address. Never raises."""
        try:
            ip = ipaddress.ip_address(ip_address.strip())
        except ValueError:
            logger.warning(f"Unparseable client address '{ip_address}', network signals omitted")
            return NetworkSignals(ip_version=UNKNOWN_IP_VERSION)

        ip_version = f"v{ip.version}"
        prefix = self.subnet_prefix(ip)
        pseudo_asn = self.pseudo_asn(ip)
        ptr = self.ptr_domain(str(ip))

        return NetworkSignals(
            ip_version=ip_version,
            hashed_prefix=self.keyed_hash(prefix),
            hashed_pseudo_asn=self.keyed_hash(pseudo_asn),
            hashed_ptr=self.keyed_hash(ptr) if ptr else None,
        )

    # -------------------------------------------------------------------------
    # Heuristics
    # -------------------------------------------------------------------------

    @staticmethod
    def subnet_prefix(ip) -> str:
        bits = 24 if ip.version == 4 else 48
        return str(ipaddress.ip_network(f"{ip}/{bits}", strict=False))

    @staticmethod
    def pseudo_asn(ip) -> str:
        """Coarse provider block standing in for a real ASN lookup."""
        bits = 16 if ip.version == 4 else 32
        return "pasn:" + str(ipaddress.ip_network(f"{ip}/{bits}", strict=False))

    def ptr_domain(self, ip: str) -> Optional[str]:
        """
        Reverse-DNS domain with the host label dropped
        ("cpe-1-2-3-4.dyn.example.net" -> "dyn.example.net").
        """
        future = self._executor.submit(self._reverse_lookup, ip)
        try:
            hostname = future.result(timeout=self.ptr_timeout)
        except FutureTimeout:
            logger.debug(f"PTR lookup timed out for {ip}")
            future.cancel()
            return None
        except Exception as e:
            logger.debug(f"PTR lookup failed for {ip}: {e}")
            return None

        if not hostname:
            return None
        labels = hostname.lower().rstrip(".").split(".")
        if len(labels) > 2:
            labels = labels[1:]
        return ".".join(labels)

    def keyed_hash(self, value: str) -> str:
        return hmac.new(self._key, value.encode("utf-8"), hashlib.sha256).hexdigest()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
