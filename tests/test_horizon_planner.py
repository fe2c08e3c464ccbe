"""
tests/test_horizon_planner.py

Integration tests for component_10_horizon_planner.

Tests cover:
- The reference scenarios (slot blocks, tower puzzle, configuration error,
  zero budget)
- Plan validation, simulation and failure diagnosis
- BaseReasoningEngine interface (reason, proof tree, capabilities)
- Command line entry point
"""

import json
import logging

import pytest

from component_2_state_model import pos
from component_3_domain_schema import DomainObject
from component_6_search_engine import HorizonSearchEngine, SearchBudget
from component_7_plan_extractor import Plan, PlanStep
from component_8_proof_explanation import StepType
from component_9_domain_loader import domain_description_to_dict
from component_10_horizon_planner import (
    EXIT_ABORTED,
    EXIT_CONFIGURATION_ERROR,
    EXIT_NO_PLAN,
    EXIT_SUCCESS,
    HorizonPlanner,
    SolveStatus,
    main,
)
from planner_exceptions import ConfigurationError, InvariantViolationError, UndeclaredObjectError


# ==================== Scenarios ====================


class TestScenarios:
    def test_slot_blocks_within_horizon(self, planner, blocks_description):
        result = planner.solve(blocks_description)

        assert result.status == SolveStatus.SUCCESS
        assert len(result.plan) <= 10
        assert result.timeline.horizon == 11
        assert result.timeline.final_state.satisfies(result.problem.goal)
        assert planner.validate_plan(result.problem, result.plan) == (True, None)

    def test_slot_blocks_horizon_too_short(self, planner, blocks_description):
        result = planner.solve(blocks_description.with_horizon(2))

        assert result.status == SolveStatus.NO_PLAN_WITHIN_HORIZON
        assert result.plan is None
        assert not result.success

    def test_tower_puzzle(self, planner, tower_description):
        result = planner.solve(tower_description)

        assert result.success
        assert result.timeline.horizon == 13
        assert result.timeline.final_state.satisfies(result.problem.goal)
        assert planner.validate_plan(result.problem, result.plan) == (True, None)

    def test_undeclared_object_is_configuration_error(
        self, planner, blocks_description, monkeypatch
    ):
        def no_search(*args, **kwargs):
            raise AssertionError("search must not run")

        monkeypatch.setattr(HorizonSearchEngine, "solve", no_search)
        blocks_description.initial.append(pos("on", "Z", "slot4"))

        with pytest.raises(ConfigurationError) as exc_info:
            planner.solve(blocks_description)
        assert isinstance(exc_info.value, UndeclaredObjectError)

    def test_zero_budget_aborts(self, blocks_description):
        planner = HorizonPlanner(budget=SearchBudget(max_nodes=0))
        result = planner.solve(blocks_description)

        assert result.status == SolveStatus.ABORTED
        assert result.status != SolveStatus.NO_PLAN_WITHIN_HORIZON
        assert result.abort_reason == "node_budget"
        assert result.plan is None

    def test_parallel_planner_finds_same_plan(self, planner, tower_description):
        sequential = planner.solve(tower_description)
        parallel = HorizonPlanner(max_workers=3).solve(tower_description)
        assert parallel.plan.to_list() == sequential.plan.to_list()


class TestConfiguration:
    def test_undeclared_category(self, planner, make_mini):
        description = make_mini()
        description.objects.append(DomainObject("z", "ghost"))
        with pytest.raises(ConfigurationError):
            planner.solve(description)

    def test_zero_horizon(self, planner, make_mini):
        with pytest.raises(ConfigurationError):
            planner.solve(make_mini(horizon=0))

    def test_invalid_worker_count(self):
        with pytest.raises(ConfigurationError):
            HorizonPlanner(max_workers=0)

    def test_solve_accepts_prepared_problem(self, planner, make_mini):
        problem = HorizonPlanner.build_problem(make_mini())
        assert planner.solve(problem).success


# ==================== Plan Checking ====================


class TestPlanChecking:
    @pytest.fixture
    def solved(self, planner, make_mini):
        return planner.solve(make_mini(horizon=5))

    def test_simulate_matches_search_timeline(self, planner, solved):
        timeline = planner.simulate_plan(solved.problem, solved.plan)
        assert timeline.states == solved.timeline.states
        assert timeline.choices == solved.timeline.choices

    def test_simulate_with_idle_padding(self, planner, make_mini):
        result = planner.solve(make_mini(horizon=5))
        longer = HorizonPlanner.build_problem(make_mini(horizon=8))
        timeline = planner.simulate_plan(longer, result.plan)
        assert timeline.horizon == 8
        assert timeline.idle_steps() == [5, 6, 7]
        assert timeline.final_state.satisfies(longer.goal)

    def test_simulate_rejects_non_executable_action(self, planner, solved):
        shuffled = Plan(
            [PlanStep(1, solved.plan.steps[2].action), PlanStep(2, solved.plan.steps[0].action)]
        )
        with pytest.raises(InvariantViolationError):
            planner.simulate_plan(solved.problem, shuffled)

    def test_validate_rejects_truncated_plan(self, planner, solved):
        truncated = Plan(solved.plan.steps[:3])
        valid, error = planner.validate_plan(solved.problem, truncated)
        assert not valid
        assert "Goal" in error

    def test_validate_rejects_step_beyond_horizon(self, planner, solved):
        late = Plan([PlanStep(s.step + 1, s.action) for s in solved.plan])
        valid, error = planner.validate_plan(solved.problem, late)
        assert not valid
        assert "horizon" in error

    def test_validate_rejects_unordered_steps(self, planner, solved):
        steps = list(solved.plan)
        valid, _ = planner.validate_plan(solved.problem, Plan([steps[1], steps[0]]))
        assert not valid

    def test_diagnose_missing_precondition(self, planner, solved):
        skipped = Plan(solved.plan.steps[1:])
        diagnosis = planner.diagnose_failure(solved.problem, skipped)
        assert diagnosis["failed_at"] == 2
        assert diagnosis["failed_action"].name == "put_down(b,s2)"
        assert pos("holding", "b") in diagnosis["missing_preconditions"]

    def test_diagnose_goal_not_reached(self, planner, solved):
        diagnosis = planner.diagnose_failure(solved.problem, Plan(solved.plan.steps[:2]))
        assert diagnosis["failed_at"] == 5
        assert diagnosis["failed_action"] is None
        assert pos("on", "a", "b") in diagnosis["missing_preconditions"]

    def test_action_after_goal_holds_is_rejected(self, planner, make_mini):
        problem = HorizonPlanner.build_problem(make_mini(goal=[pos("on", "b", "a")], horizon=4))
        by_name = {action.name: action for action in problem.schema.actions}
        plan = Plan([PlanStep(1, by_name["unstack(b,a)"]), PlanStep(2, by_name["stack(b,a)"])])

        valid, error = planner.validate_plan(problem, plan)
        assert not valid
        assert "after the goal held at step 1" in error

        diagnosis = planner.diagnose_failure(problem, plan)
        assert diagnosis["failed_at"] == 1
        assert diagnosis["failed_action"].name == "unstack(b,a)"
        assert diagnosis["goal_reached_at"] == 1

    def test_action_after_goal_reached_mid_plan(self, planner, solved, make_mini):
        longer = HorizonPlanner.build_problem(make_mini(horizon=7))
        by_name = {action.name: action for action in longer.schema.actions}
        padded = Plan(list(solved.plan) + [PlanStep(5, by_name["unstack(a,b)"])])

        valid, error = planner.validate_plan(longer, padded)
        assert not valid
        assert "after the goal held at step 5" in error

    def test_diagnose_valid_plan(self, planner, solved):
        assert planner.diagnose_failure(solved.problem, solved.plan) == {"error": None}


# ==================== Reasoning Interface ====================


class TestReasoningInterface:
    def test_reason_success(self, planner, make_mini):
        result = planner.reason("rebuild a on b", {"planning_problem": make_mini()})

        assert result.success
        assert result.confidence == 1.0
        assert result.strategy_used == "horizon_dfs"
        assert result.metadata["plan_length"] == 4
        assert result.metadata["is_valid"] is True

        tree = result.proof_tree
        assert tree.query == "rebuild a on b"
        assert len(tree.steps_of_type(StepType.PREMISE)) == 2
        assert len(tree.steps_of_type(StepType.INFERENCE)) == 4
        assert len(tree.steps_of_type(StepType.CONCLUSION)) == 1
        assert tree.get_step_by_id("plan_step_1").rule_name == "unstack(b,a)"

    def test_reason_idle_steps_in_proof(self, planner, make_mini):
        result = planner.reason("q", {"planning_problem": make_mini(horizon=7)})
        assert len(result.proof_tree.steps_of_type(StepType.INERTIA)) == 2

    def test_reason_no_plan(self, planner, make_mini):
        result = planner.reason("q", {"planning_problem": make_mini(horizon=3)})
        assert not result.success
        assert result.metadata["status"] == "no_plan_within_horizon"
        assert result.proof_tree.steps_of_type(StepType.CONTRADICTION)

    def test_reason_aborted(self, make_mini):
        planner = HorizonPlanner(budget=SearchBudget(max_nodes=1))
        result = planner.reason("q", {"planning_problem": make_mini()})
        assert not result.success
        assert result.metadata["abort_reason"] == "node_budget"
        assert result.computation_cost == 1.0

    def test_reason_configuration_error(self, planner, make_mini):
        description = make_mini(goal=[pos("on", "a", "zz")])
        result = planner.reason("q", {"planning_problem": description})
        assert not result.success
        assert result.metadata["error"] == "configuration_error"

    def test_reason_without_problem(self, planner):
        result = planner.reason("q", {})
        assert not result.success
        assert result.metadata["error"] == "missing_planning_problem"

    def test_reason_without_proof(self, planner, make_mini):
        result = planner.reason("q", {"planning_problem": make_mini(), "enable_proof": False})
        assert result.proof_tree is None

    def test_capabilities_and_cost(self, planner):
        assert planner.supports_capability("planning")
        assert planner.supports_capability("bounded_horizon_planning")
        assert 0.0 <= planner.estimate_cost("anything") <= 1.0

    def test_result_to_dict(self, planner, make_mini):
        data = planner.solve(make_mini()).to_dict(include_timeline=True)
        assert data["status"] == "success"
        assert data["plan"][0] == {"step": 1, "action": "unstack(b,a)"}
        assert data["goal_reached_at"] == 5
        assert len(data["timeline"]["states"]) == 5


# ==================== Command Line ====================


class TestCommandLine:
    @pytest.fixture(autouse=True)
    def restore_logging(self):
        # main() reconfigures the root logger
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_example_json(self, capsys):
        code = main(["--example", "tower", "--json"])
        assert code == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["status"] == "success"
        assert data["horizon"] == 13

    def test_text_output_with_explanation(self, capsys):
        code = main(["--example", "blocks", "--explain"])
        out = capsys.readouterr().out
        assert code == EXIT_SUCCESS
        assert "Status: success" in out
        assert "Plan explanation for: slot_blocks" in out

    def test_no_plan_exit_code(self, capsys):
        assert main(["--example", "blocks", "--horizon", "2"]) == EXIT_NO_PLAN
        assert "no_plan_within_horizon" in capsys.readouterr().out

    def test_aborted_exit_code(self, capsys):
        assert main(["--example", "blocks", "--max-nodes", "0"]) == EXIT_ABORTED
        assert "Aborted: node_budget" in capsys.readouterr().out

    def test_domain_file(self, tmp_path, capsys, make_mini):
        path = tmp_path / "mini.json"
        path.write_text(json.dumps(domain_description_to_dict(make_mini())), encoding="utf-8")
        assert main(["--domain", str(path), "--json", "--timeline"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert len(data["plan"]) == 4
        assert "timeline" in data

    def test_configuration_error_exit_code(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{}", encoding="utf-8")
        assert main(["--domain", str(path)]) == EXIT_CONFIGURATION_ERROR
        assert "invalid" in capsys.readouterr().err

    def test_wrongly_shaped_file_exit_code(self, tmp_path, capsys, make_mini):
        data = domain_description_to_dict(make_mini())
        data["categories"] = list(data["categories"])
        path = tmp_path / "shape.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        assert main(["--domain", str(path)]) == EXIT_CONFIGURATION_ERROR
        assert "categories must be dict" in capsys.readouterr().err

    def test_source_is_required(self):
        with pytest.raises(SystemExit):
            main([])
