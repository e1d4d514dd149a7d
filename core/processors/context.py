"""
NameGuard Fingerprint Context Processor

Enriches a raw login attempt into an immutable Fingerprint.
No decisions. No blocking beyond the providers' bounded waits.
"""

import logging
from typing import Optional

from core.processors.geo import GeoData, GeoResolver
from core.processors.signals import NetworkSignalProvider, NetworkSignals, UNKNOWN_IP_VERSION
from core.schemas.fingerprint import AccountType, Fingerprint
from core.schemas.inputs import LoginAttempt


logger = logging.getLogger(__name__)


# Default client brands when the host does not report one
NATIVE_BRAND = "native"
BRIDGED_BRAND = "bridge"


class FingerprintContextProcessor:
    """
    Builds the Fingerprint of a login attempt from:
    1. Network heuristics (keyed hashes)
    2. Client and strong-identity hints carried by the attempt
    3. Optional GeoIP enrichment

    Provider failures never fail the login; the affected signals are
    simply absent.
    """

    def __init__(
        self,
        signal_provider: NetworkSignalProvider,
        geo_resolver: Optional[GeoResolver] = None,
    ) -> None:
        self.signal_provider = signal_provider
        self.geo_resolver = geo_resolver

    def build(self, attempt: LoginAttempt) -> Fingerprint:
        account_type = attempt.account_type
        network = self._collect_network(attempt.ip_address)
        geo = self._lookup_geo(attempt.ip_address) or GeoData()

        if account_type == AccountType.BRIDGED:
            platform_id, client_id = attempt.platform_id, None
            default_brand = BRIDGED_BRAND
        else:
            platform_id, client_id = None, attempt.client_id
            default_brand = NATIVE_BRAND

        return Fingerprint(
            account_type=account_type,
            ip_version=network.ip_version,
            platform_id=platform_id or None,
            client_id=client_id or None,
            hashed_prefix=network.hashed_prefix,
            hashed_pseudo_asn=network.hashed_pseudo_asn,
            hashed_ptr=network.hashed_ptr,
            client_brand=attempt.client_brand or default_brand,
            protocol_version=attempt.protocol_version,
            device_os=attempt.device_os,
            country_code=geo.country_code,
            region=geo.region,
            city=geo.city,
            asn=geo.asn,
            org=geo.org,
            isp=geo.isp,
        )

    def _collect_network(self, ip_address: str) -> NetworkSignals:
        try:
            return self.signal_provider.collect(ip_address)
        except Exception as e:
            logger.warning(f"Network signal collection failed for {ip_address}: {e}")
            return NetworkSignals(ip_version=UNKNOWN_IP_VERSION)

    def _lookup_geo(self, ip_address: str) -> Optional[GeoData]:
        if self.geo_resolver is None:
            return None
        try:
            return self.geo_resolver.lookup(ip_address)
        except Exception as e:
            logger.debug(f"Geo lookup failed for {ip_address}: {e}")
            return None
