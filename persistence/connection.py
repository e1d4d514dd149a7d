import os
import logging
from functools import lru_cache
from typing import Optional

import redis
from redis.exceptions import RedisError, AuthenticationError
from supabase import create_client, Client

# Configure module-level logger
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Creates a singleton Redis client with a connection pool.

    Reads configuration from environment variables:
    - REDIS_HOST: Hostname (default: localhost)
    - REDIS_PORT: Port (default: 6379)
    - REDIS_PASSWORD: Password (REQUIRED)
    - REDIS_DB: Database index (default: 0)
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    db = int(os.getenv("REDIS_DB", 0))
    password = os.getenv("REDIS_PASSWORD")

    if not password:
        logger.critical("REDIS_PASSWORD environment variable is not set.")
        raise ValueError("REDIS_PASSWORD is required for production security.")

    try:
        # Bindings are small JSON documents; a modest pool covers the login worker threads
        pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,
            max_connections=50,
            socket_timeout=5.0
        )

        client = redis.Redis(connection_pool=pool)

        # Health check: Ping immediately to verify connection
        client.ping()
        logger.info(f"Connected to Redis binding backend at {host}:{port}/{db}")

        return client

    except AuthenticationError:
        logger.critical("Redis authentication failed. Check REDIS_PASSWORD.")
        raise
    except RedisError as e:
        logger.critical(f"Could not connect to Redis: {e}")
        raise


def get_supabase_client() -> Optional[Client]:
    """
    Creates a Supabase client from SUPABASE_URL / SUPABASE_KEY.

    Returns None when the credentials are not configured so callers can
    disable the features that depend on it.
    """
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")
    if not url or not key:
        logger.warning("Supabase credentials not configured")
        return None
    return create_client(url, key)
