"""
NameGuard Geo Resolver

GeoLite2 lookups (country, region, city, ASN, organization, ISP) for the
connecting address, with an in-process TTL cache. Fails open: a missing
database, a private address or a lookup error all yield ``None``.
"""

import ipaddress
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import geoip2.database
import geoip2.errors


logger = logging.getLogger(__name__)


# Negative results are cached briefly so a failing address is not re-queried on every attempt
NEGATIVE_CACHE_SECONDS = 60.0

# Expired entries are swept once the cache reaches this size; the oldest go if it is still full
MAX_CACHE_ENTRIES = 10_000


@dataclass(frozen=True)
class GeoData:
    """Geo signals for one address. Every field is optional."""
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    asn: Optional[str] = None
    org: Optional[str] = None
    isp: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.country_code, self.region, self.city, self.asn, self.org, self.isp))


class GeoResolver:
    """
    Resolves addresses against GeoLite2 City (and optionally ASN) databases.

    Attributes:
        enabled: When False, lookup() always returns None.
        ttl_seconds: Lifetime of cached results.
    """

    def __init__(
        self,
        city_db_path: Optional[str],
        asn_db_path: Optional[str] = None,
        ttl_seconds: float = 720 * 60,
        enabled: bool = True,
        max_entries: int = MAX_CACHE_ENTRIES,
        city_reader: Any = None,
        asn_reader: Any = None,
    ) -> None:
        self.enabled = enabled
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._cache: Dict[str, Tuple[Optional[GeoData], float]] = {}
        self._cache_lock = threading.Lock()

        self.city_reader = city_reader
        self.asn_reader = asn_reader
        if not enabled:
            return

        # GeoIP - Fail open if a database is unavailable
        if self.city_reader is None and city_db_path:
            try:
                self.city_reader = geoip2.database.Reader(city_db_path)
            except Exception as e:
                logger.warning(f"GeoIP city database unavailable, geo signals disabled: {e}")
        if self.asn_reader is None and asn_db_path:
            try:
                self.asn_reader = geoip2.database.Reader(asn_db_path)
            except Exception as e:
                logger.warning(f"GeoIP ASN database unavailable, ASN signals disabled: {e}")

    def lookup(self, ip_address: str) -> Optional[GeoData]:
        """
        Resolve an address to GeoData.

        Returns:
            GeoData, or None when geo is disabled, the address is private or
            reserved, or nothing could be resolved.
        """
        if not self.enabled or (self.city_reader is None and self.asn_reader is None):
            return None
        if self._is_private_ip(ip_address):
            return None

        now = time.monotonic()
        with self._cache_lock:
            cached = self._cache.get(ip_address)
            if cached is not None:
                if cached[1] > now:
                    return cached[0]
                del self._cache[ip_address]

        resolved = self._resolve(ip_address)

        if resolved is None or resolved.is_empty():
            expires = now + min(NEGATIVE_CACHE_SECONDS, self.ttl_seconds)
            resolved = None
        else:
            expires = now + self.ttl_seconds

        with self._cache_lock:
            if len(self._cache) >= self.max_entries:
                self._evict(now)
            self._cache[ip_address] = (resolved, expires)
        return resolved

    def sweep_expired(self) -> int:
        """Drop expired cache entries. Returns the number removed."""
        with self._cache_lock:
            return self._drop_expired(time.monotonic())

    def close(self) -> None:
        for reader in (self.city_reader, self.asn_reader):
            if reader is not None:
                try:
                    reader.close()
                except Exception as e:
                    logger.debug(f"Failed to close GeoIP reader: {e}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _drop_expired(self, now: float) -> int:
        """Caller holds _cache_lock."""
        expired = [ip for ip, (_, expires) in self._cache.items() if expires <= now]
        for ip in expired:
            del self._cache[ip]
        return len(expired)

    def _evict(self, now: float) -> None:
        """Make room for one entry. Caller holds _cache_lock."""
        self._drop_expired(now)
        while self._cache and len(self._cache) >= self.max_entries:
            # dicts keep insertion order: the first key is the oldest entry
            del self._cache[next(iter(self._cache))]

    def _resolve(self, ip_address: str) -> Optional[GeoData]:
        country_code = region = city = asn = org = isp = None

        if self.city_reader is not None:
            try:
                response = self.city_reader.city(ip_address)
                country_code = response.country.iso_code or None
                city = response.city.name or None
                subdivision = response.subdivisions.most_specific
                region = subdivision.name or None
                isp = getattr(response.traits, "isp", None) or None
                if getattr(response.traits, "autonomous_system_number", None):
                    asn = str(response.traits.autonomous_system_number)
                    org = getattr(response.traits, "autonomous_system_organization", None) or None
            except geoip2.errors.AddressNotFoundError:
                logger.debug(f"GeoIP city lookup found nothing for {ip_address}")
            except Exception as e:
                logger.debug(f"GeoIP city lookup failed for {ip_address}: {e}")

        if self.asn_reader is not None and asn is None:
            try:
                response = self.asn_reader.asn(ip_address)
                if response.autonomous_system_number:
                    asn = str(response.autonomous_system_number)
                org = response.autonomous_system_organization or None
            except geoip2.errors.AddressNotFoundError:
                logger.debug(f"GeoIP ASN lookup found nothing for {ip_address}")
            except Exception as e:
                logger.debug(f"GeoIP ASN lookup failed for {ip_address}: {e}")

        return GeoData(
            country_code=country_code,
            region=region,
            city=city,
            asn=asn,
            org=org,
            isp=isp or org,
        )

    @staticmethod
    def _is_private_ip(ip_address: str) -> bool:
        try:
            ip = ipaddress.ip_address(ip_address)
        except ValueError:
            return True
        return ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local
