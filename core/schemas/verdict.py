"""
NameGuard Login Verdict

Tagged result of one login verification: Allowed or Denied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from core.schemas.binding import Binding
from core.schemas.outputs import DenyReason


@dataclass(frozen=True)
class Allowed:
    binding: Binding
    is_new_binding: bool
    learned_fingerprint: bool
    score: Optional[int] = None


@dataclass(frozen=True)
class Denied:
    reason: DenyReason
    user_message: str
    score: Optional[int] = None


LoginVerdict = Union[Allowed, Denied]
