"""
Component 7: Plan Extractor

Converts a successful search trace into the externally visible plan:
the ordered (step, action) pairs of the non-idle steps. The full timeline
(every state, idle steps included) stays available for diagnostics.

Time steps are 1-based: state 1 is the initial state, state `horizon` is
the final state, and the choice made at step t leads to state t+1.

Author: Horizon Planner Team
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterator, List, Optional, Tuple

from component_2_state_model import Literal, State
from component_3_domain_schema import ActionInstance


@dataclass(frozen=True)
class PlanStep:
    """An action occurring at a time step."""

    step: int
    action: ActionInstance

    def __str__(self) -> str:
        return f"{self.step}: {self.action}"


@dataclass
class Plan:
    """Ordered action sequence with time steps (idle steps omitted)."""

    steps: List[PlanStep] = field(default_factory=list)

    @property
    def actions(self) -> List[ActionInstance]:
        return [s.action for s in self.steps]

    def to_list(self) -> List[Tuple[int, str]]:
        """[(step, "stack(a,b)"), ...] for presenters and serialization."""
        return [(s.step, s.action.name) for s in self.steps]

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self.steps)

    def __str__(self) -> str:
        if not self.steps:
            return "<empty plan>"
        return "\n".join(str(s) for s in self.steps)


@dataclass
class Timeline:
    """
    States 1..horizon and the choice made at each step 1..horizon-1.

    Attributes:
        states: states[i] is the state at step i+1
        choices: choices[i] is the action occurring at step i+1 (None = idle)
    """

    states: List[State]
    choices: List[Optional[ActionInstance]]

    def __post_init__(self):
        if len(self.choices) != max(len(self.states) - 1, 0):
            raise ValueError(
                f"Timeline with {len(self.states)} states needs "
                f"{max(len(self.states) - 1, 0)} choices, got {len(self.choices)}"
            )

    @property
    def horizon(self) -> int:
        return len(self.states)

    @property
    def final_state(self) -> State:
        return self.states[-1]

    def state_at(self, step: int) -> State:
        if not 1 <= step <= self.horizon:
            raise ValueError(f"Step {step} outside timeline 1..{self.horizon}")
        return self.states[step - 1]

    def action_at(self, step: int) -> Optional[ActionInstance]:
        if not 1 <= step < self.horizon:
            raise ValueError(f"No choice at step {step} (horizon {self.horizon})")
        return self.choices[step - 1]

    def idle_steps(self) -> List[int]:
        return [i + 1 for i, choice in enumerate(self.choices) if choice is None]

    def goal_reached_at(self, goal: AbstractSet[Literal]) -> Optional[int]:
        """First step at which every goal literal holds, or None."""
        for i, state in enumerate(self.states):
            if state.satisfies(goal):
                return i + 1
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "horizon": self.horizon,
            "states": [sorted(str(f) for f in s.true_fluents) for s in self.states],
            "choices": [c.name if c is not None else None for c in self.choices],
        }


def extract_plan(timeline: Timeline) -> Plan:
    """
    Ordered (step, action) pairs for every non-idle step, increasing step order.
    """
    return Plan(
        steps=[
            PlanStep(step=i + 1, action=choice)
            for i, choice in enumerate(timeline.choices)
            if choice is not None
        ]
    )
