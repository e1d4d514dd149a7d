"""
NameGuard Persistence

Binding stores (memory, Redis, Supabase), the binding registry, the login
rate limiter and the audit logger.
"""

from persistence.binding_store import BindingStore, MemoryBindingStore, StorageError
from persistence.registry import BindingRegistry

__all__ = [
    "BindingStore",
    "MemoryBindingStore",
    "StorageError",
    "BindingRegistry",
]
