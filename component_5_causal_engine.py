"""
Component 5: Causal / Inertia Engine

Computes the unique successor state of a time step:

    1. Start with an empty next state.
    2. If an action occurs, every literal in its effect set holds at t+1
       and the contrary of each such literal does not.
    3. Every fluent not decided in step 2 keeps its value from t
       (frame rule / inertia).

Effect sets are fully known before the frame rule runs, so the successor is
computed in one deterministic pass and no fluent's value depends on another
undecided fluent at the same step. The result is a total, consistent
assignment by construction, given that the schema never declares an action
causing both a literal and its contrary (checked in DomainSchema).

Author: Horizon Planner Team
"""

from typing import Optional, Set

from component_1_logging_config import get_logger
from component_2_state_model import Fluent, State
from component_3_domain_schema import ActionInstance, DomainSchema
from component_4_executability import is_executable, missing_preconditions
from planner_exceptions import InvariantViolationError

logger = get_logger(__name__)


def advance(state: State, action: Optional[ActionInstance]) -> State:
    """
    Successor of `state` when `action` occurs (None = idle step).

    Args:
        state: State at step t
        action: Occurring action instance, or None

    Returns:
        State at step t+1
    """
    if action is None:
        return state

    next_true: Set[Fluent] = set()
    decided: Set[Fluent] = set()

    # Caused literals
    for effect in action.effects:
        decided.add(effect.fluent)
        if effect.positive:
            next_true.add(effect.fluent)

    # Inertia
    for fluent in state.true_fluents:
        if fluent not in decided:
            next_true.add(fluent)

    return State(next_true, state.universe)


class CausalEngine:
    """
    Schema-bound wrapper around `advance` that asserts the internal
    invariants on every transition.

    Invariant violations are defects. They halt the solve with the full
    diagnostic state instead of producing a plausible-looking wrong plan.
    """

    def __init__(self, schema: DomainSchema, check_invariants: bool = True):
        """
        Args:
            schema: Domain schema (read-only)
            check_invariants: Verify preconditions, consistency and the
                physical arrangement on every transition
        """
        self.schema = schema
        self.check_invariants = check_invariants
        self.transitions = 0

    def advance(
        self, state: State, action: Optional[ActionInstance], step: Optional[int] = None
    ) -> State:
        """
        Successor state of step `step`.

        Raises:
            InvariantViolationError: action not executable, or the successor
                is not a consistent and physically sane state
        """
        if self.check_invariants and action is not None and not is_executable(action, state):
            missing = missing_preconditions(action, state)
            raise InvariantViolationError(
                f"Action {action} occurs without its preconditions "
                f"{[str(m) for m in missing]}",
                step=step,
                state=state.to_string(separator=", "),
                action=action.name,
            )

        successor = advance(state, action)
        self.transitions += 1

        if self.check_invariants and action is not None:
            self.verify(successor, step=None if step is None else step + 1, action=action)

        return successor

    def verify(
        self,
        state: State,
        step: Optional[int] = None,
        action: Optional[ActionInstance] = None,
    ) -> None:
        """
        Raises:
            InvariantViolationError: inconsistent or physically impossible state
        """
        state.check_consistency(step=step)
        problems = self.schema.arrangement_violations(state)
        if problems:
            logger.error(
                "Invariant violation after transition",
                extra={"step": step, "action": str(action), "problems": problems},
            )
            raise InvariantViolationError(
                f"Invalid state reached: {'; '.join(problems)}",
                step=step,
                state=state.to_string(separator=", "),
                action=action.name if action is not None else None,
            )
