"""
Component 10: Horizon Planner

Public entry point of the planner:

    solve(domain description or planning problem)
        -> SUCCESS (plan) | NO_PLAN_WITHIN_HORIZON | ABORTED

Configuration errors (undeclared objects/categories, invalid or
contradictory literals, bad horizon) are raised as ConfigurationError before
any search starts. "No plan" and "budget exhausted" are results, not
exceptions.

Also offers plan validation, simulation and failure diagnosis, the
BaseReasoningEngine interface and a command line:

    python component_10_horizon_planner.py --example blocks --horizon 11
    python component_10_horizon_planner.py --domain puzzle.json --json

Author: Horizon Planner Team
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from common.constants import (
    DEAD_END_CACHE_MAXSIZE,
    DEFAULT_MAX_NODES,
    DEFAULT_PARALLEL_WORKERS,
    DEFAULT_TIME_LIMIT_SECONDS,
)
from component_1_logging_config import (
    get_logger,
    log_component_end,
    log_component_error,
    log_component_start,
    setup_logging,
)
from component_2_state_model import State
from component_3_domain_schema import DomainSchema
from component_4_executability import is_executable, missing_preconditions
from component_5_causal_engine import CausalEngine, advance
from component_6_parallel_search import ParallelSearchEngine
from component_6_search_engine import (
    HorizonSearchEngine,
    PlanningProblem,
    SearchBudget,
    SearchOutcome,
    SearchStatistics,
    SearchStatus,
)
from component_7_plan_extractor import Plan, Timeline, extract_plan
from component_8_proof_explanation import ProofStep, ProofTree, StepType, format_proof_tree
from component_9_domain_builders import EXAMPLES
from component_9_domain_loader import DomainDescription, load_domain_description
from infrastructure.interfaces import BaseReasoningEngine, ReasoningResult
from planner_exceptions import (
    ConfigurationError,
    PlannerException,
    get_user_friendly_message,
)

logger = get_logger(__name__)

# Externally visible outcome of a solve
SolveStatus = SearchStatus

EXIT_SUCCESS = 0
EXIT_NO_PLAN = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_ABORTED = 3


# ============================================================================
# Results
# ============================================================================


@dataclass
class SolveResult:
    """
    Result of HorizonPlanner.solve.

    Attributes:
        status: SUCCESS, NO_PLAN_WITHIN_HORIZON or ABORTED
        problem: The validated problem that was searched
        plan: Non-idle (step, action) pairs (SUCCESS only)
        timeline: Every state 1..horizon with the choice per step (SUCCESS only)
        statistics: Search counters
        abort_reason: Why the search was aborted (ABORTED only)
    """

    status: SolveStatus
    problem: PlanningProblem
    plan: Optional[Plan] = None
    timeline: Optional[Timeline] = None
    statistics: SearchStatistics = field(default_factory=SearchStatistics)
    abort_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == SolveStatus.SUCCESS

    @property
    def goal_reached_at(self) -> Optional[int]:
        if self.timeline is None:
            return None
        return self.timeline.goal_reached_at(self.problem.goal)

    def to_dict(self, include_timeline: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "horizon": self.problem.horizon,
            "plan": (
                [{"step": step, "action": name} for step, name in self.plan.to_list()]
                if self.plan is not None
                else None
            ),
            "goal_reached_at": self.goal_reached_at,
            "abort_reason": self.abort_reason,
            "statistics": self.statistics.to_dict(),
        }
        if include_timeline and self.timeline is not None:
            data["timeline"] = self.timeline.to_dict()
        return data


# ============================================================================
# Planner
# ============================================================================


class HorizonPlanner(BaseReasoningEngine):
    """
    Bounded-horizon planner facade.

    Holds no state between solves: every solve builds its own search engine
    and dead-end table, so one planner may serve several threads.
    """

    def __init__(
        self,
        budget: Optional[SearchBudget] = None,
        max_workers: int = 1,
        use_dead_end_cache: bool = True,
        dead_end_cache_size: int = DEAD_END_CACHE_MAXSIZE,
        check_invariants: bool = True,
    ):
        """
        Initialize planner.

        Args:
            budget: Node/time budget per solve (default: unlimited)
            max_workers: >1 explores the first-step branches on a thread pool
            use_dead_end_cache: Prune subtrees already proven to fail
            dead_end_cache_size: Bound of the per-solve dead-end table
            check_invariants: Verify every transition (defects raise
                InvariantViolationError)
        """
        if max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be >= 1, got {max_workers}",
                context={"max_workers": max_workers},
            )
        self.budget = budget or SearchBudget()
        self.max_workers = max_workers
        self.use_dead_end_cache = use_dead_end_cache
        self.dead_end_cache_size = dead_end_cache_size
        self.check_invariants = check_invariants

    # ------------------------------------------------------------------
    # Problem construction
    # ------------------------------------------------------------------

    @staticmethod
    def build_problem(description: DomainDescription) -> PlanningProblem:
        """
        Validate a domain description and build the planning problem.

        Raises:
            ConfigurationError: any malformed declaration, literal or horizon
        """
        schema = DomainSchema(description.objects, description.categories)
        initial_state = schema.build_initial_state(description.initial)
        goal = schema.build_goal(description.goal)
        return PlanningProblem(
            schema=schema,
            initial_state=initial_state,
            goal=goal,
            horizon=description.horizon,
        )

    def _engine(self, schema: DomainSchema):
        if self.max_workers > 1:
            return ParallelSearchEngine(
                schema,
                max_workers=self.max_workers,
                budget=self.budget,
                use_dead_end_cache=self.use_dead_end_cache,
                dead_end_cache_size=self.dead_end_cache_size,
                check_invariants=self.check_invariants,
            )
        return HorizonSearchEngine(
            schema,
            budget=self.budget,
            use_dead_end_cache=self.use_dead_end_cache,
            dead_end_cache_size=self.dead_end_cache_size,
            check_invariants=self.check_invariants,
        )

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def solve(self, problem: Union[DomainDescription, PlanningProblem]) -> SolveResult:
        """
        Search for a plan reaching the goal exactly at the horizon.

        Args:
            problem: Domain description (validated here) or a prepared problem

        Returns:
            SolveResult

        Raises:
            ConfigurationError: invalid description, before any search
            InvariantViolationError: internal defect detected during search
        """
        if isinstance(problem, DomainDescription):
            problem = self.build_problem(problem)

        log_component_start(
            logger,
            "solve",
            horizon=problem.horizon,
            goal_literals=len(problem.goal),
            actions=len(problem.schema.actions),
            workers=self.max_workers,
        )

        try:
            outcome: SearchOutcome = self._engine(problem.schema).solve(problem)
        except PlannerException as e:
            log_component_error(logger, "solve", e, horizon=problem.horizon)
            raise

        result = SolveResult(
            status=outcome.status,
            problem=problem,
            statistics=outcome.statistics,
            abort_reason=outcome.abort_reason,
        )
        if outcome.success:
            result.timeline = outcome.timeline
            result.plan = extract_plan(outcome.timeline)

        log_component_end(
            logger,
            "solve",
            status=result.status.value,
            plan_length=len(result.plan) if result.plan is not None else None,
            **result.statistics.to_dict(),
        )
        return result

    # ------------------------------------------------------------------
    # Plan checking
    # ------------------------------------------------------------------

    def _check_steps(self, problem: PlanningProblem, plan: Plan) -> Optional[str]:
        previous = 0
        for plan_step in plan:
            if plan_step.step <= previous:
                return f"Step {plan_step.step} is not after step {previous}"
            if plan_step.step >= problem.horizon:
                return (
                    f"Action {plan_step.action} at step {plan_step.step} "
                    f"does not fit before horizon {problem.horizon}"
                )
            previous = plan_step.step
        return None

    def validate_plan(self, problem: PlanningProblem, plan: Plan) -> Tuple[bool, Optional[str]]:
        """
        Validate that the plan achieves the goal exactly at the horizon.

        Steps without an action are idle. Once the goal holds, every later
        step must be idle.

        Returns:
            (success, error_message)
        """
        diagnosis = self.diagnose_failure(problem, plan)
        if diagnosis["error"] is not None:
            return False, diagnosis["error"]
        return True, None

    def simulate_plan(self, problem: PlanningProblem, plan: Plan) -> Timeline:
        """
        Execute the plan and return the full timeline 1..horizon.

        Raises:
            ValueError: step numbers out of order or beyond the horizon
            InvariantViolationError: an action without its preconditions
        """
        error = self._check_steps(problem, plan)
        if error is not None:
            raise ValueError(error)

        by_step = {plan_step.step: plan_step.action for plan_step in plan}
        causal = CausalEngine(problem.schema, check_invariants=True)
        states: List[State] = [problem.initial_state]
        choices = []
        for step in range(1, problem.horizon):
            choice = by_step.get(step)
            states.append(causal.advance(states[-1], choice, step))
            choices.append(choice)

        return Timeline(states=states, choices=choices)

    def diagnose_failure(self, problem: PlanningProblem, plan: Plan) -> Dict[str, Any]:
        """
        Analyze why a plan fails (root-cause analysis).

        Returns:
            Diagnostic information, or {"error": None} for a valid plan:
            - failed_at: Step where the plan fails (horizon if the goal is missed)
            - failed_action: The failing action
            - missing_preconditions: Literals that do not hold
            - state_before: State at the failing step
            - goal_reached_at: Step at which the goal first held, if it did
        """
        error = self._check_steps(problem, plan)
        if error is not None:
            return {
                "failed_at": None,
                "failed_action": None,
                "missing_preconditions": [],
                "state_before": None,
                "goal_reached_at": None,
                "error": error,
            }

        state = problem.initial_state
        goal_reached_at = 1 if problem.is_goal(state) else None
        for plan_step in plan:
            if goal_reached_at is not None:
                return {
                    "failed_at": plan_step.step,
                    "failed_action": plan_step.action,
                    "missing_preconditions": [],
                    "state_before": state,
                    "goal_reached_at": goal_reached_at,
                    "error": (
                        f"Action {plan_step.action} at step {plan_step.step} "
                        f"after the goal held at step {goal_reached_at}"
                    ),
                }
            if not is_executable(plan_step.action, state):
                missing = missing_preconditions(plan_step.action, state)
                return {
                    "failed_at": plan_step.step,
                    "failed_action": plan_step.action,
                    "missing_preconditions": missing,
                    "state_before": state,
                    "goal_reached_at": None,
                    "error": (
                        f"Action {plan_step.action} not executable at step {plan_step.step}: "
                        f"requires {[str(m) for m in missing]}"
                    ),
                }
            state = advance(state, plan_step.action)
            if problem.is_goal(state):
                goal_reached_at = plan_step.step + 1

        if goal_reached_at is None:
            missing_goals = state.missing(problem.goal)
            return {
                "failed_at": problem.horizon,
                "failed_action": None,
                "missing_preconditions": missing_goals,
                "state_before": state,
                "goal_reached_at": None,
                "error": (
                    f"Goal does not hold at step {problem.horizon}. "
                    f"Missing: {[str(m) for m in missing_goals]}"
                ),
            }

        return {"error": None}

    # ========================================================================
    # BaseReasoningEngine Interface Implementation
    # ========================================================================

    def reason(self, query: str, context: Dict[str, Any]) -> ReasoningResult:
        """
        Execute planning on the given query.

        Context should contain:
        - 'planning_problem': PlanningProblem or DomainDescription
        - 'enable_proof': Whether to generate an explanation tree (default: True)

        Returns:
            ReasoningResult with plan or failure indication
        """
        problem = context.get("planning_problem")
        if problem is None:
            return ReasoningResult(
                success=False,
                answer="No planning problem provided in context",
                confidence=0.0,
                strategy_used="horizon_dfs",
                metadata={"error": "missing_planning_problem"},
            )

        try:
            result = self.solve(problem)
        except ConfigurationError as e:
            return ReasoningResult(
                success=False,
                answer=get_user_friendly_message(e),
                confidence=0.0,
                strategy_used="horizon_dfs",
                metadata={"error": "configuration_error", "details": str(e)},
            )

        proof_tree = None
        if context.get("enable_proof", True):
            proof_tree = self._create_plan_proof_tree(query, result)

        metadata = {"status": result.status.value, **result.statistics.to_dict()}

        if result.success:
            is_valid, error_msg = self.validate_plan(result.problem, result.plan)
            metadata.update(
                {
                    "plan": [str(s) for s in result.plan],
                    "plan_length": len(result.plan),
                    "goal_reached_at": result.goal_reached_at,
                    "is_valid": is_valid,
                    "validation_error": error_msg,
                }
            )
            return ReasoningResult(
                success=True,
                answer=f"Plan with {len(result.plan)} actions: {[a.name for a in result.plan.actions]}",
                confidence=1.0 if is_valid else 0.8,
                proof_tree=proof_tree,
                strategy_used=self._strategy_name(),
                computation_cost=self._budget_share(result),
                metadata=metadata,
            )

        if result.status == SolveStatus.ABORTED:
            metadata["abort_reason"] = result.abort_reason
            answer = f"Search aborted ({result.abort_reason})"
        else:
            answer = f"No plan within horizon {result.problem.horizon}"

        return ReasoningResult(
            success=False,
            answer=answer,
            confidence=0.0,
            proof_tree=proof_tree,
            strategy_used=self._strategy_name(),
            computation_cost=self._budget_share(result),
            metadata=metadata,
        )

    def explain(self, result: SolveResult, query: Optional[str] = None) -> ProofTree:
        """Explanation tree of a finished solve."""
        return self._create_plan_proof_tree(query or "solve", result)

    def _strategy_name(self) -> str:
        return "horizon_dfs_parallel" if self.max_workers > 1 else "horizon_dfs"

    def _budget_share(self, result: SolveResult) -> float:
        if result.status == SolveStatus.ABORTED:
            return 1.0
        if self.budget.max_nodes:
            return min(1.0, result.statistics.nodes / self.budget.max_nodes)
        return 0.0

    def _create_plan_proof_tree(self, query: str, result: SolveResult) -> ProofTree:
        """
        Create ProofTree documenting the solve.

        Args:
            query: Original planning query
            result: Solve result

        Returns:
            ProofTree with one step per time step
        """
        problem = result.problem
        steps = [
            ProofStep(
                step_id="plan_initial_state",
                step_type=StepType.PREMISE,
                output=f"State 1: {problem.initial_state.to_string(separator=', ')}",
                explanation_text="Initial state of the planning problem",
                metadata={"state": sorted(str(f) for f in problem.initial_state.true_fluents)},
            ),
            ProofStep(
                step_id="plan_goal",
                step_type=StepType.PREMISE,
                output=f"Goal: {', '.join(sorted(str(g) for g in problem.goal))}",
                explanation_text=f"Goal literals that must hold at step {problem.horizon}",
                metadata={"horizon": problem.horizon},
            ),
        ]

        if not result.success:
            reason = (
                f"search aborted ({result.abort_reason})"
                if result.status == SolveStatus.ABORTED
                else f"no plan reaches the goal at step {problem.horizon}"
            )
            steps.append(
                ProofStep(
                    step_id="plan_failed",
                    step_type=StepType.CONTRADICTION,
                    output=result.status.value,
                    explanation_text=f"Planning failed: {reason}",
                    parent_steps=["plan_initial_state", "plan_goal"],
                    metadata=result.statistics.to_dict(),
                )
            )
        else:
            parent_step = "plan_initial_state"
            timeline = result.timeline
            for step, choice in enumerate(timeline.choices, start=1):
                step_id = f"plan_step_{step}"
                if choice is None:
                    steps.append(
                        ProofStep(
                            step_id=step_id,
                            step_type=StepType.INERTIA,
                            output=f"State {step + 1} = state {step}",
                            explanation_text=f"Step {step}: idle, every fluent persists",
                            parent_steps=[parent_step],
                            time_step=step,
                        )
                    )
                else:
                    steps.append(
                        ProofStep(
                            step_id=step_id,
                            step_type=StepType.INFERENCE,
                            inputs=sorted(str(p) for p in choice.preconditions),
                            rule_name=choice.name,
                            output=", ".join(sorted(str(e) for e in choice.effects)),
                            explanation_text=f"Step {step}: {choice.name}",
                            parent_steps=[parent_step],
                            time_step=step,
                        )
                    )
                parent_step = step_id

            steps.append(
                ProofStep(
                    step_id="plan_goal_achieved",
                    step_type=StepType.CONCLUSION,
                    time_step=problem.horizon,
                    output=f"Goal holds at step {problem.horizon}",
                    explanation_text=(
                        f"Plan with {len(result.plan)} actions reaches the goal at "
                        f"step {result.goal_reached_at}"
                    ),
                    parent_steps=[parent_step, "plan_goal"],
                    metadata={"plan_length": len(result.plan)},
                )
            )

        return ProofTree(
            query=query,
            root_steps=steps,
            metadata={
                "planner": "HorizonPlanner",
                "algorithm": "depth-first, idle first",
                "status": result.status.value,
                "search_stats": result.statistics.to_dict(),
            },
        )

    def get_capabilities(self) -> List[str]:
        """
        Return planning capabilities.
        """
        return [
            "planning",
            "bounded_horizon_planning",
            "depth_first_search",
            "forward_planning",
            "frame_reasoning",
            "goal_achievement",
            "plan_validation",
        ]

    def estimate_cost(self, query: str) -> float:
        """
        Estimate computational cost for planning.

        Exhaustive search: cost grows exponentially with the horizon.
        """
        return 0.7


# ============================================================================
# Command Line
# ============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horizon-planner",
        description="Bounded-horizon planner for stacking puzzles",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--domain", help="JSON domain description file")
    source.add_argument("--example", choices=sorted(EXAMPLES), help="Built-in example")
    parser.add_argument("--horizon", type=int, help="Override the description's horizon")
    parser.add_argument(
        "--max-nodes", type=int, default=DEFAULT_MAX_NODES, help="Node budget (default: unlimited)"
    )
    parser.add_argument(
        "--time-limit",
        type=float,
        default=DEFAULT_TIME_LIMIT_SECONDS,
        help="Wall-clock budget in seconds (default: unlimited)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help=f"Worker threads for first-step branches (e.g. {DEFAULT_PARALLEL_WORKERS})",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--timeline", action="store_true", help="Include every state")
    parser.add_argument("--explain", action="store_true", help="Print the plan explanation")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level",
    )
    parser.add_argument("--log-file", help="Also log to this file")
    return parser


def _print_result(result: SolveResult, show_timeline: bool) -> None:
    print(f"Status: {result.status.value}")
    if result.success:
        print(f"Plan ({len(result.plan)} actions, horizon {result.problem.horizon}):")
        for plan_step in result.plan:
            print(f"  {plan_step}")
        print(f"Goal first reached at step {result.goal_reached_at}")
        if show_timeline:
            for step, state in enumerate(result.timeline.states, start=1):
                print(f"  [{step}] {state.to_string(separator=', ')}")
    elif result.status == SolveStatus.ABORTED:
        print(f"Aborted: {result.abort_reason}")
    stats = ", ".join(f"{k}={v}" for k, v in result.statistics.to_dict().items())
    print(f"Statistics: {stats}")


def main(argv: Optional[List[str]] = None) -> int:
    """Solve a domain description from the command line."""
    args = _build_parser().parse_args(argv)
    setup_logging(
        console_level=getattr(logging, args.log_level),
        log_file=args.log_file,
    )

    try:
        if args.domain:
            description = load_domain_description(args.domain)
        else:
            description = EXAMPLES[args.example]()
        if args.horizon is not None:
            description = description.with_horizon(args.horizon)

        planner = HorizonPlanner(
            budget=SearchBudget(max_nodes=args.max_nodes, time_limit=args.time_limit),
            max_workers=args.workers,
        )
        result = planner.solve(description)
    except ConfigurationError as e:
        print(get_user_friendly_message(e, include_details=True), file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    if args.json:
        print(json.dumps(result.to_dict(include_timeline=args.timeline), indent=2))
    else:
        _print_result(result, args.timeline)
        if args.explain:
            tree = planner.explain(result, description.name)
            print()
            print(format_proof_tree(tree))

    if result.success:
        return EXIT_SUCCESS
    if result.status == SolveStatus.ABORTED:
        return EXIT_ABORTED
    return EXIT_NO_PLAN


if __name__ == "__main__":
    sys.exit(main())
