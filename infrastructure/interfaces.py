"""
infrastructure/interfaces.py

Engine contract shared by the planner front ends.

An engine answers a query string plus a context mapping with a
ReasoningResult. The planner puts its domain description under
``context["planning_problem"]``; other keys are engine specific.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from component_8_proof_explanation import ProofTree


@dataclass
class ReasoningResult:
    """
    Outcome of ``BaseReasoningEngine.reason``.

    ``confidence`` is 1.0 when the returned plan re-simulates to the goal;
    ``computation_cost`` is the share of the search budget consumed.
    Status details (no plan, aborted, configuration error) live in
    ``metadata``.
    """

    success: bool
    answer: str = ""
    confidence: float = 0.0
    proof_tree: Optional[ProofTree] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    strategy_used: str = ""
    computation_cost: float = 0.0

    def __post_init__(self) -> None:
        for name in ("confidence", "computation_cost"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must lie in [0, 1], got {value}")


class BaseReasoningEngine(ABC):
    """Engines keep per-call state local, so one instance may serve threads."""

    @abstractmethod
    def reason(self, query: str, context: Dict[str, Any]) -> ReasoningResult:
        ...

    @abstractmethod
    def get_capabilities(self) -> List[str]:
        """Capability identifiers, lowercase with underscores."""

    @abstractmethod
    def estimate_cost(self, query: str) -> float:
        """Relative cost in [0, 1]; exhaustive search sits at the top."""

    def supports_capability(self, capability: str) -> bool:
        return capability in self.get_capabilities()
