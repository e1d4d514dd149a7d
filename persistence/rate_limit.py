"""
NameGuard Login Rate Limiter

Per-address fixed-window counter in Redis. Once an address exceeds the
allowed number of login attempts it is blocked for a cool-down period.

Key Schema:
    LOGIN_RATE:{hashed_ip}   → attempt counter (expires after the block duration)
    LOGIN_BLOCK:{hashed_ip}  → block marker    (expires after the block duration)

Addresses are keyed through the same HMAC used for network signals, so no
raw address is written to Redis.

Fails open: a Redis outage never blocks a login.
"""

from __future__ import annotations

import logging
from typing import Callable

import redis
from redis.exceptions import RedisError


logger = logging.getLogger(__name__)


class LoginRateLimiter:
    """Redis-backed per-address login throttle."""

    def __init__(
        self,
        client: redis.Redis,
        key_hasher: Callable[[str], str],
        attempts: int = 5,
        block_duration_seconds: int = 300,
    ) -> None:
        self.client = client
        self.key_hasher = key_hasher
        self.attempts = attempts
        self.block_duration_seconds = block_duration_seconds

    def _rate_key(self, ip_address: str) -> str:
        return f"LOGIN_RATE:{self.key_hasher(ip_address)}"

    def _block_key(self, ip_address: str) -> str:
        return f"LOGIN_BLOCK:{self.key_hasher(ip_address)}"

    def allow(self, ip_address: str) -> bool:
        """Count one attempt. Returns False while the address is blocked."""
        rate_key = self._rate_key(ip_address)
        block_key = self._block_key(ip_address)
        try:
            if self.client.exists(block_key):
                return False

            count = self.client.incr(rate_key)
            if count == 1:
                self.client.expire(rate_key, self.block_duration_seconds)

            if count > self.attempts:
                self.client.setex(block_key, self.block_duration_seconds, 1)
                self.client.delete(rate_key)
                logger.warning(f"Login rate limit exceeded for {ip_address}, blocked for {self.block_duration_seconds}s")
                return False
            return True
        except RedisError as e:
            logger.warning(f"Login rate limit check failed: {e}")
            return True  # Fail open

    def reset(self, ip_address: str) -> None:
        """Forget the counter after a successful login."""
        try:
            self.client.delete(self._rate_key(ip_address))
        except RedisError as e:
            logger.debug(f"Failed to reset login rate counter for {ip_address}: {e}")
