"""
NameGuard Core Models

Stateless scoring and gating.
"""

from core.models.similarity import SimilarityEngine, SimilarityResult, NO_MATCH
from core.models.policy import Classification, GateOutcome, PolicyGate

__all__ = [
    "SimilarityEngine",
    "SimilarityResult",
    "NO_MATCH",
    "Classification",
    "GateOutcome",
    "PolicyGate",
]
