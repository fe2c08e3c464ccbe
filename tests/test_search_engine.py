"""
tests/test_search_engine.py

Unit tests for component_6_search_engine.

Tests cover:
- Leftmost-first plan selection (idle before actions)
- Goal exactness at the horizon and idle padding
- NO_PLAN_WITHIN_HORIZON as a normal result
- Node budget and cancellation (ABORTED, never "no plan")
- Dead-end table does not change results
- Determinism across repeated runs
"""

import pytest

from component_2_state_model import pos
from component_6_search_engine import (
    BudgetExhausted,
    BudgetMeter,
    HorizonSearchEngine,
    PlanningProblem,
    SearchBudget,
    SearchStatus,
)
from component_7_plan_extractor import extract_plan
from component_10_horizon_planner import HorizonPlanner
from planner_exceptions import ConfigurationError


def _problem(make_mini, **kwargs):
    return HorizonPlanner.build_problem(make_mini(**kwargs))


# ==================== Plan Selection ====================


class TestLeftmostFirst:
    def test_minimal_horizon_plan(self, make_mini):
        problem = _problem(make_mini, horizon=5)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)

        assert outcome.status == SearchStatus.SUCCESS
        assert extract_plan(outcome.timeline).to_list() == [
            (1, "unstack(b,a)"),
            (2, "put_down(b,s2)"),
            (3, "pick_up(a,s1)"),
            (4, "stack(a,b)"),
        ]

    def test_idle_steps_come_first(self, make_mini):
        # Idle is the first candidate of every step, so spare steps are spent
        # before the first action
        problem = _problem(make_mini, horizon=7)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)

        plan = extract_plan(outcome.timeline)
        assert [s.step for s in plan] == [3, 4, 5, 6]
        assert outcome.timeline.idle_steps() == [1, 2]

    def test_goal_holds_exactly_at_horizon(self, make_mini):
        goal = [pos("holding", "b")]
        problem = _problem(make_mini, goal=goal, horizon=3)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)

        assert outcome.success
        assert extract_plan(outcome.timeline).to_list() == [(2, "unstack(b,a)")]
        assert outcome.timeline.horizon == 3
        assert outcome.timeline.final_state.satisfies(problem.goal)

    def test_goal_initially_true_is_padded_with_idle(self, make_mini):
        problem = _problem(make_mini, goal=[pos("on", "a", "s1")], horizon=4)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)

        assert outcome.success
        assert len(extract_plan(outcome.timeline)) == 0
        assert outcome.timeline.idle_steps() == [1, 2, 3]
        assert outcome.timeline.goal_reached_at(problem.goal) == 1

    def test_horizon_one(self, make_mini):
        solved = _problem(make_mini, goal=[pos("on", "b", "a")], horizon=1)
        outcome = HorizonSearchEngine(solved.schema).solve(solved)
        assert outcome.success
        assert outcome.timeline.horizon == 1
        assert outcome.timeline.choices == []

        unsolved = _problem(make_mini, horizon=1)
        outcome = HorizonSearchEngine(unsolved.schema).solve(unsolved)
        assert outcome.status == SearchStatus.NO_PLAN_WITHIN_HORIZON


class TestNoPlan:
    def test_horizon_too_short(self, make_mini):
        problem = _problem(make_mini, horizon=4)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)

        assert outcome.status == SearchStatus.NO_PLAN_WITHIN_HORIZON
        assert outcome.timeline is None
        assert outcome.abort_reason is None
        assert outcome.statistics.backtracks > 0

    def test_unreachable_goal(self, make_mini):
        # Both pieces cannot sit on s1
        goal = [pos("on", "a", "s1"), pos("on", "b", "s1")]
        problem = _problem(make_mini, goal=goal, horizon=6)
        outcome = HorizonSearchEngine(problem.schema).solve(problem)
        assert outcome.status == SearchStatus.NO_PLAN_WITHIN_HORIZON


# ==================== Budget ====================


class TestBudget:
    def test_zero_node_budget_aborts(self, make_mini):
        problem = _problem(make_mini, horizon=5)
        engine = HorizonSearchEngine(problem.schema, budget=SearchBudget(max_nodes=0))
        outcome = engine.solve(problem)

        assert outcome.status == SearchStatus.ABORTED
        assert outcome.abort_reason == "node_budget"
        assert outcome.statistics.nodes == 0

    def test_small_node_budget_aborts(self, make_mini):
        problem = _problem(make_mini, horizon=5)
        engine = HorizonSearchEngine(problem.schema, budget=SearchBudget(max_nodes=3))
        outcome = engine.solve(problem)

        assert outcome.status == SearchStatus.ABORTED
        assert outcome.statistics.nodes == 3

    def test_aborted_is_not_no_plan(self, make_mini):
        # Unsolvable instance, but the budget ends the search first
        problem = _problem(make_mini, horizon=4)
        engine = HorizonSearchEngine(problem.schema, budget=SearchBudget(max_nodes=2))
        assert engine.solve(problem).status == SearchStatus.ABORTED

    def test_zero_time_limit_aborts(self, make_mini):
        problem = _problem(make_mini, horizon=5)
        engine = HorizonSearchEngine(problem.schema, budget=SearchBudget(time_limit=0))
        outcome = engine.solve(problem)
        assert outcome.status == SearchStatus.ABORTED
        assert outcome.abort_reason == "time_limit"

    def test_negative_budget_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            SearchBudget(max_nodes=-1)
        with pytest.raises(ConfigurationError):
            SearchBudget(time_limit=-0.5)

    def test_meter_cancel(self):
        meter = BudgetMeter(SearchBudget())
        meter.start()
        meter.charge()
        meter.cancel()
        with pytest.raises(BudgetExhausted) as exc_info:
            meter.charge()
        assert exc_info.value.reason == "cancelled"

    def test_meter_uses_injected_clock(self):
        ticks = iter([0.0, 5.0])
        meter = BudgetMeter(SearchBudget(time_limit=1.0), clock=lambda: next(ticks))
        meter.start()
        with pytest.raises(BudgetExhausted) as exc_info:
            meter.charge()
        assert exc_info.value.reason == "time_limit"


# ==================== Dead-End Table / Determinism ====================


class TestDeadEndsAndDeterminism:
    @pytest.mark.parametrize("horizon", [4, 5, 6, 7])
    def test_dead_end_table_does_not_change_result(self, make_mini, horizon):
        problem = _problem(make_mini, horizon=horizon)
        with_table = HorizonSearchEngine(problem.schema).solve(problem)
        without_table = HorizonSearchEngine(problem.schema, use_dead_end_cache=False).solve(
            problem
        )

        assert with_table.status == without_table.status
        if with_table.success:
            assert with_table.timeline.states == without_table.timeline.states
            assert with_table.timeline.choices == without_table.timeline.choices

    def test_dead_end_table_prunes(self, make_mini):
        problem = _problem(make_mini, horizon=7)
        with_table = HorizonSearchEngine(problem.schema).solve(problem)
        without_table = HorizonSearchEngine(problem.schema, use_dead_end_cache=False).solve(
            problem
        )
        assert with_table.statistics.dead_end_hits > 0
        assert with_table.statistics.nodes < without_table.statistics.nodes

    def test_repeated_solves_are_identical(self, make_mini):
        problem = _problem(make_mini, horizon=6)
        engine = HorizonSearchEngine(problem.schema)
        first = engine.solve(problem)
        second = engine.solve(problem)
        assert first.timeline.choices == second.timeline.choices
        assert first.statistics.nodes == second.statistics.nodes


class TestPlanningProblem:
    @pytest.mark.parametrize("horizon", [0, -3, 2.5, True, "5"])
    def test_invalid_horizon(self, mini_schema, mini_initial, horizon):
        with pytest.raises(ConfigurationError):
            PlanningProblem(mini_schema, mini_initial, frozenset(), horizon)

    def test_start_step_outside_horizon(self, mini_schema, mini_initial):
        engine = HorizonSearchEngine(mini_schema)
        with pytest.raises(ValueError):
            engine.search(mini_initial, [], horizon=3, start_step=4)
