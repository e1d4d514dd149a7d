"""
NameGuard API

FastAPI application exposing the host session hooks:
- POST /login            → login verdict (429 when rate limited)
- POST /sessions/join    → protection notice for freshly bound names
- POST /sessions/quit    → 204 (no body)

Admin:
- GET    /bindings/{name}
- DELETE /bindings/{name} → 204
- POST   /admin/reload    → number of flushed bindings

Admin endpoints carry no authentication of their own and are expected to
sit behind the host's access control.
"""

from contextlib import asynccontextmanager
import logging
import os
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from redis.exceptions import RedisError

from core.config import GuardConfig, load_config
from core.orchestrator import VerificationOrchestrator
from core.processors import FingerprintContextProcessor, GeoResolver, NameNormalizer, NetworkSignalProvider
from core.schemas import (
    Allowed,
    Binding,
    BindingView,
    FingerprintView,
    JoinResponse,
    LoginAttempt,
    LoginDecision,
    LoginVerdictResponse,
    ReloadResponse,
    SessionEventPayload,
)
from core.session_tracker import SessionTracker
from persistence.audit_logger import AuditLogger
from persistence.binding_store import BindingStore, MemoryBindingStore, StorageError
from persistence.connection import get_redis_client
from persistence.rate_limit import LoginRateLimiter
from persistence.redis_store import RedisBindingStore
from persistence.registry import BindingRegistry
from persistence.supabase_store import SupabaseBindingStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    config: Optional[GuardConfig] = None
    registry: Optional[BindingRegistry] = None
    normalizer: Optional[NameNormalizer] = None
    signal_provider: Optional[NetworkSignalProvider] = None
    geo_resolver: Optional[GeoResolver] = None
    orchestrator: Optional[VerificationOrchestrator] = None
    tracker: Optional[SessionTracker] = None
    rate_limiter: Optional[LoginRateLimiter] = None
    audit: Optional[AuditLogger] = None


state = AppState()


def build_store(backend: str) -> BindingStore:
    """Create the binding backend named by NAMEGUARD_STORAGE."""
    backend = backend.lower()
    if backend == "memory":
        logger.warning("Using in-memory binding store; bindings will not survive a restart")
        return MemoryBindingStore()
    if backend == "supabase":
        return SupabaseBindingStore()
    if backend == "redis":
        return RedisBindingStore()
    raise ValueError(f"Unknown NAMEGUARD_STORAGE backend '{backend}'")


def build_rate_limiter(config: GuardConfig, key_hasher: Callable[[str], str]) -> Optional[LoginRateLimiter]:
    limits = config.security.rate_limit
    if not limits.enabled:
        return None
    try:
        client = get_redis_client()
    except (ValueError, RedisError) as e:
        logger.warning(f"Login rate limiting disabled, Redis unavailable: {e}")
        return None
    return LoginRateLimiter(client, key_hasher, limits.attempts, limits.block_duration_seconds)


def notify_admins(message: str) -> None:
    logger.warning(message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting NameGuard API...")
    config = load_config()
    state.config = config

    state.registry = BindingRegistry(
        build_store(os.getenv("NAMEGUARD_STORAGE", "redis")),
        purge_after_ms=config.fingerprint_purge_millis,
    )
    state.normalizer = NameNormalizer(
        bridge_prefix_chars=config.normalization.bridge_prefix_chars,
        preserve_bridge_prefix=config.normalization.preserve_bridge_prefix,
    )
    state.signal_provider = NetworkSignalProvider(
        config.security.hmac_secret,
        ptr_timeout=config.security.signal_timeout_millis / 1000.0,
    )
    state.geo_resolver = GeoResolver(
        config.geo.city_db_path,
        config.geo.asn_db_path,
        ttl_seconds=config.geo.cache_ttl_minutes * 60,
        enabled=config.geo.enabled,
    )
    state.orchestrator = VerificationOrchestrator(
        config,
        state.registry,
        FingerprintContextProcessor(state.signal_provider, state.geo_resolver),
        normalizer=state.normalizer,
        notifier=notify_admins,
    )
    state.tracker = SessionTracker(config, state.registry)
    state.rate_limiter = build_rate_limiter(config, state.signal_provider.keyed_hash)
    state.audit = AuditLogger()
    logger.info("NameGuard ready")

    yield

    # Shutdown
    logger.info("Shutting down NameGuard API...")
    state.registry.shutdown()
    state.signal_provider.shutdown()
    state.geo_resolver.close()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="NameGuard",
    description="Identity binding and anti-impersonation engine",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
        "online_bindings": len(state.registry.online_keys()) if state.registry else 0,
    }


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    from fastapi.responses import RedirectResponse
    return RedirectResponse(url="/docs")


# =============================================================================
# Session Hooks
# =============================================================================

@app.post("/login", response_model=LoginVerdictResponse)
def login(attempt: LoginAttempt):
    """
    Verify a pre-login attempt.

    - Rate limited per address
    - Returns ALLOW or DENY with the kick message
    - Never admits an identity on internal failure
    """
    if state.rate_limiter is not None and not state.rate_limiter.allow(attempt.ip_address):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts, try again later"
        )

    identity_key = state.orchestrator.identity_key(attempt.username)
    verdict = state.orchestrator.verify_login(attempt)
    state.tracker.record_verdict(identity_key, verdict)
    state.audit.log(attempt, identity_key, verdict)

    if isinstance(verdict, Allowed):
        if state.rate_limiter is not None:
            state.rate_limiter.reset(attempt.ip_address)
        return LoginVerdictResponse(
            decision=LoginDecision.ALLOW,
            identity_key=identity_key,
            new_binding=verdict.is_new_binding,
            learned_fingerprint=verdict.learned_fingerprint,
        )

    return LoginVerdictResponse(
        decision=LoginDecision.DENY,
        identity_key=identity_key,
        reason=verdict.reason,
        message=verdict.user_message,
    )


@app.post("/sessions/join", response_model=JoinResponse)
def session_join(payload: SessionEventPayload):
    """Player admitted; returns the protection notice once for new bindings."""
    identity_key = state.normalizer.normalize(payload.username)
    return JoinResponse(message=state.tracker.on_join(identity_key))


@app.post("/sessions/quit", status_code=status.HTTP_204_NO_CONTENT)
def session_quit(payload: SessionEventPayload):
    """Player left; credits play time, promotes trust and unloads the binding."""
    identity_key = state.normalizer.normalize(payload.username)
    try:
        state.tracker.on_quit(identity_key)
    except Exception as e:
        logger.error(f"Quit handling failed for '{identity_key}': {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error processing quit"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Admin Endpoints
# =============================================================================

def _binding_view(binding: Binding) -> BindingView:
    return BindingView(
        identity_key=binding.identity_key,
        preferred_display=binding.preferred_display,
        account_type=binding.account_type.value,
        trust=binding.trust.value,
        online=state.registry.is_online(binding.identity_key),
        total_playtime_ms=binding.total_playtime_ms,
        created_at=binding.created_at,
        last_seen_at=binding.last_seen_at,
        fingerprints=[
            FingerprintView(
                account_type=fp.account_type.value,
                ip_version=fp.ip_version,
                client_brand=fp.client_brand,
                device_os=fp.device_os,
                country_code=fp.country_code,
                city=fp.city,
                network_signals=sum(1 for h in fp.network_hashes if h),
                created_at=fp.created_at,
            )
            for fp in binding.fingerprints
        ],
    )


def _lookup(name: str) -> Binding:
    identity_key = state.normalizer.normalize(name)
    try:
        binding = state.registry.peek(identity_key)
    except StorageError as e:
        logger.error(f"Binding lookup failed for '{identity_key}': {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Binding store unavailable"
        )
    if binding is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No binding for '{identity_key}'"
        )
    return binding


@app.get("/bindings/{name}", response_model=BindingView)
def get_binding(name: str):
    """Inspect the binding of a name (network hashes are not exposed)."""
    binding = _lookup(name)
    with state.registry.identity_lock(binding.identity_key):
        return _binding_view(binding)


@app.delete("/bindings/{name}", status_code=status.HTTP_204_NO_CONTENT)
def delete_binding(name: str):
    """Explicit unbind: the next login under this name reserves it afresh."""
    binding = _lookup(name)
    if not state.registry.remove(binding.identity_key):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove binding"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/admin/reload", response_model=ReloadResponse)
def admin_reload():
    """Flush every cached binding and clear the cache."""
    return ReloadResponse(flushed=state.registry.reload_all())


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
