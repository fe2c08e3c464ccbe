"""
Component 6: Parallel First-Step Exploration

Explores the candidates of step 1 (idle, then executable actions in
canonical order) as independent branches on a thread pool. Each branch runs
its own HorizonSearchEngine with its own dead-end table and state copies; the
domain schema is the only shared object and is read-only.

Determinism:
    Results are collected in canonical candidate order. A branch's success is
    accepted only after every branch to its left has failed, so the returned
    plan is the leftmost-first plan of the sequential engine. With a node or
    time budget, which branch consumes the shared budget first depends on
    scheduling, so ABORTED outcomes are not reproducible bit for bit.

Author: Horizon Planner Team
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from common.constants import DEAD_END_CACHE_MAXSIZE, DEFAULT_PARALLEL_WORKERS
from component_1_logging_config import get_logger
from component_3_domain_schema import ActionInstance, DomainSchema
from component_5_causal_engine import CausalEngine
from component_6_search_engine import (
    BudgetExhausted,
    BudgetMeter,
    HorizonSearchEngine,
    PlanningProblem,
    SearchBudget,
    SearchOutcome,
    SearchStatistics,
    SearchStatus,
)
from component_7_plan_extractor import Timeline

logger = get_logger(__name__)


class ParallelSearchEngine:
    """
    Thread-parallel search over the first-step branches.
    """

    def __init__(
        self,
        schema: DomainSchema,
        max_workers: int = DEFAULT_PARALLEL_WORKERS,
        budget: Optional[SearchBudget] = None,
        use_dead_end_cache: bool = True,
        dead_end_cache_size: int = DEAD_END_CACHE_MAXSIZE,
        check_invariants: bool = True,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.schema = schema
        self.max_workers = max_workers
        self.budget = budget or SearchBudget()
        self.use_dead_end_cache = use_dead_end_cache
        self.dead_end_cache_size = dead_end_cache_size
        self.check_invariants = check_invariants

    def _branch_engine(self) -> HorizonSearchEngine:
        return HorizonSearchEngine(
            self.schema,
            budget=self.budget,
            use_dead_end_cache=self.use_dead_end_cache,
            dead_end_cache_size=self.dead_end_cache_size,
            check_invariants=self.check_invariants,
        )

    def solve(self, problem: PlanningProblem) -> SearchOutcome:
        """
        Solve with first-step branches explored concurrently.

        Returns:
            The same SUCCESS/NO_PLAN_WITHIN_HORIZON outcome as the sequential
            engine; ABORTED if any branch left of the first success ran out
            of budget.
        """
        meter = BudgetMeter(self.budget)
        meter.start()
        stats = SearchStatistics()
        initial = problem.initial_state
        causal = CausalEngine(self.schema, check_invariants=self.check_invariants)

        # Nothing to branch on: the sequential engine decides
        if problem.horizon == 1 or problem.is_goal(initial):
            return self._branch_engine().search(
                initial, problem.goal, problem.horizon, meter=meter
            )

        try:
            meter.charge()
        except BudgetExhausted as e:
            return SearchOutcome(SearchStatus.ABORTED, statistics=stats, abort_reason=e.reason)
        stats.nodes += 1
        stats.max_step = 1
        if self.check_invariants:
            causal.verify(initial, step=1)

        candidates: List[Optional[ActionInstance]] = self._branch_engine().candidates(initial)
        logger.info(
            "Parallel search started",
            extra={"branches": len(candidates), "workers": self.max_workers},
        )

        outcome = SearchOutcome(SearchStatus.NO_PLAN_WITHIN_HORIZON, statistics=stats)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: List[Future] = []
            for choice in candidates:
                successor = causal.advance(initial, choice, 1)
                futures.append(
                    pool.submit(
                        self._branch_engine().search,
                        successor,
                        problem.goal,
                        problem.horizon,
                        2,
                        meter,
                    )
                )

            for choice, future in zip(candidates, futures):
                branch: SearchOutcome = future.result()
                stats.merge(branch.statistics)
                if branch.status == SearchStatus.NO_PLAN_WITHIN_HORIZON:
                    continue
                if branch.success:
                    timeline = Timeline(
                        states=[initial, *branch.timeline.states],
                        choices=[choice, *branch.timeline.choices],
                    )
                    outcome = SearchOutcome(
                        SearchStatus.SUCCESS, timeline=timeline, statistics=stats
                    )
                else:
                    outcome = SearchOutcome(
                        SearchStatus.ABORTED,
                        statistics=stats,
                        abort_reason=branch.abort_reason,
                    )
                # Branches to the right are no longer needed
                meter.cancel()
                break

        stats.transitions += causal.transitions
        stats.elapsed_ms = meter.elapsed * 1000
        logger.info(
            "Parallel search finished",
            extra={"status": outcome.status.value, **stats.to_dict()},
        )
        return outcome
