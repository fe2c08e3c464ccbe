"""
Component 4: Executability Checker

Decides whether an action instance may legally occur in a state: true iff
every literal of its precondition set holds. Pure functions of
(action, state); the search engine guarantees the time step is below the
horizon before asking.

Author: Horizon Planner Team
"""

from typing import List

from component_2_state_model import Literal, State
from component_3_domain_schema import ActionInstance, DomainSchema


def is_executable(action: ActionInstance, state: State) -> bool:
    """Check if every precondition literal of the action holds in state."""
    return all(state.holds(literal) for literal in action.preconditions)


def executable_actions(schema: DomainSchema, state: State) -> List[ActionInstance]:
    """
    All executable action instances in canonical order
    (operator name, then argument identifiers).
    """
    return [action for action in schema.actions if is_executable(action, state)]


def missing_preconditions(action: ActionInstance, state: State) -> List[Literal]:
    """Precondition literals that do not hold, sorted (for diagnostics)."""
    return state.missing(action.preconditions)
