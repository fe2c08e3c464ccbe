"""
infrastructure package

Shared infrastructure of the horizon planner.

Modules:
    - interfaces: Base interface for planning engines
    - dead_end_cache: Per-solve memory of failed search subtrees
"""

from infrastructure.dead_end_cache import DeadEndTable
from infrastructure.interfaces import BaseReasoningEngine, ReasoningResult

__all__ = [
    "BaseReasoningEngine",
    "DeadEndTable",
    "ReasoningResult",
]
