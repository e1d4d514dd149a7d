"""
NameGuard Core

Identity binding and anti-impersonation engine.

Submodules:
    core.orchestrator      login decision engine
    core.session_tracker   join / quit hooks, play time and trust
    core.models            similarity scoring and policy gates
    core.processors        normalization and fingerprint enrichment
    core.schemas           domain records and API models

Nothing is imported eagerly here: persistence depends on core.schemas and
the orchestrator depends on persistence.
"""

__version__ = "1.0.0"
