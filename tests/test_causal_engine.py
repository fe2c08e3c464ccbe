"""
tests/test_causal_engine.py

Unit tests for component_4_executability and component_5_causal_engine.

Tests cover:
- Executability (all preconditions hold) and canonical ordering
- Successor computation: effects, contraries, inertia
- Idle steps leave the state unchanged
- Invariant checks raise InvariantViolationError with diagnostics
"""

import pytest

from component_2_state_model import Fluent, State, neg, pos
from component_4_executability import (
    executable_actions,
    is_executable,
    missing_preconditions,
)
from component_5_causal_engine import CausalEngine, advance
from planner_exceptions import InvariantViolationError


def _action(schema, name):
    return next(a for a in schema.actions if a.name == name)


class TestExecutability:
    def test_only_top_piece_can_be_taken(self, mini_schema, mini_initial):
        names = [a.name for a in executable_actions(mini_schema, mini_initial)]
        assert names == ["unstack(b,a)"]

    def test_is_executable(self, mini_schema, mini_initial):
        assert is_executable(_action(mini_schema, "unstack(b,a)"), mini_initial)
        assert not is_executable(_action(mini_schema, "pick_up(a,s1)"), mini_initial)

    def test_missing_preconditions(self, mini_schema, mini_initial):
        missing = missing_preconditions(_action(mini_schema, "pick_up(a,s1)"), mini_initial)
        assert missing == [pos("clear", "a")]

    def test_executable_after_unstack(self, mini_schema, mini_initial):
        state = advance(mini_initial, _action(mini_schema, "unstack(b,a)"))
        names = [a.name for a in executable_actions(mini_schema, state)]
        assert names == ["put_down(b,s2)", "stack(b,a)"]


class TestAdvance:
    def test_effects_hold_at_next_step(self, mini_schema, mini_initial):
        action = _action(mini_schema, "unstack(b,a)")
        successor = advance(mini_initial, action)
        for effect in action.effects:
            assert successor.holds(effect)
            assert not successor.holds(effect.contrary())

    def test_inertia_keeps_untouched_fluents(self, mini_schema, mini_initial):
        successor = advance(mini_initial, _action(mini_schema, "unstack(b,a)"))
        assert successor.holds(pos("on", "a", "s1"))
        assert successor.holds(pos("clear", "s2"))
        assert successor.holds(neg("on", "a", "b"))

    def test_idle_step_is_identity(self, mini_initial):
        assert advance(mini_initial, None) == mini_initial

    def test_successor_shares_universe(self, mini_schema, mini_initial):
        successor = advance(mini_initial, _action(mini_schema, "unstack(b,a)"))
        assert successor.universe is mini_initial.universe

    def test_input_state_unchanged(self, mini_schema, mini_initial):
        before = set(mini_initial.true_fluents)
        advance(mini_initial, _action(mini_schema, "unstack(b,a)"))
        assert set(mini_initial.true_fluents) == before


class TestCausalEngine:
    def test_counts_transitions(self, mini_schema, mini_initial):
        engine = CausalEngine(mini_schema)
        state = engine.advance(mini_initial, _action(mini_schema, "unstack(b,a)"), step=1)
        engine.advance(state, None, step=2)
        assert engine.transitions == 2

    def test_non_executable_action_is_a_defect(self, mini_schema, mini_initial):
        engine = CausalEngine(mini_schema)
        with pytest.raises(InvariantViolationError) as exc_info:
            engine.advance(mini_initial, _action(mini_schema, "pick_up(a,s1)"), step=4)
        context = exc_info.value.context
        assert context["step"] == 4
        assert context["action"] == "pick_up(a,s1)"
        assert "on(b,a)" in context["state"]

    def test_unchecked_engine_skips_verification(self, mini_schema, mini_initial):
        engine = CausalEngine(mini_schema, check_invariants=False)
        engine.advance(mini_initial, _action(mini_schema, "pick_up(a,s1)"), step=1)
        assert engine.transitions == 1

    def test_verify_rejects_insane_arrangement(self, mini_schema):
        # Two pieces on one slot, hand claims to be empty
        state = State(
            [
                Fluent("on", ("a", "s1")),
                Fluent("on", ("b", "s1")),
                Fluent("clear", ("a",)),
                Fluent("clear", ("b",)),
                Fluent("clear", ("s2",)),
                Fluent("handempty"),
            ],
            mini_schema.universe,
        )
        with pytest.raises(InvariantViolationError):
            CausalEngine(mini_schema).verify(state, step=2)

    def test_verify_rejects_held_object_with_occupant(self, mini_schema):
        state = State(
            [
                Fluent("holding", ("a",)),
                Fluent("on", ("b", "a")),
                Fluent("clear", ("b",)),
                Fluent("clear", ("s1",)),
                Fluent("clear", ("s2",)),
            ],
            mini_schema.universe,
        )
        assert mini_schema.arrangement_violations(state) == ["held object a carries 1 objects"]
        with pytest.raises(InvariantViolationError):
            CausalEngine(mini_schema).verify(state, step=3)

    def test_verify_accepts_initial_state(self, mini_schema, mini_initial):
        CausalEngine(mini_schema).verify(mini_initial, step=1)
