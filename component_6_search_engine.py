"""
Component 6: Search Engine

Depth-first backtracking over the per-step choice "idle or exactly one
executable action", the operational counterpart of bounded stable-model
planning.

Algorithm:
- Start at step 1 with the state derived from the initial literals.
- If the goal holds in the current state, every remaining step is idle:
  advance by inertia until the horizon and report success.
- Otherwise try the candidates of the current step in canonical order:
  idle first, then executable actions by (operator, arguments).
- A branch that reaches the horizon without the goal holding fails; the goal
  must hold exactly at step `horizon`.
- When every candidate of a step fails, backtrack to the previous step.
- Exhausting step 1 yields NO_PLAN_WITHIN_HORIZON, a normal negative result.
- An exhausted node or wall-clock budget yields ABORTED, never "no plan".

State machine of one solve:
    SEARCHING(step, state, partial plan) -> SUCCESS | FAILURE | ABORTED

The traversal uses an explicit frame stack, so the horizon is not bounded by
the interpreter's recursion limit. A per-solve dead-end table prunes subtrees
already proven to fail; it never changes which plan is returned.

Author: Horizon Planner Team
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from common.constants import (
    DEAD_END_CACHE_MAXSIZE,
    DEFAULT_MAX_NODES,
    DEFAULT_TIME_LIMIT_SECONDS,
    MIN_HORIZON,
)
from component_1_logging_config import PerformanceLogger, get_logger
from component_2_state_model import Literal, State
from component_3_domain_schema import ActionInstance, DomainSchema
from component_4_executability import executable_actions
from component_5_causal_engine import CausalEngine
from component_7_plan_extractor import Timeline
from infrastructure.dead_end_cache import DeadEndTable
from planner_exceptions import ConfigurationError

logger = get_logger(__name__)


# ============================================================================
# Results
# ============================================================================


class SearchStatus(Enum):
    """Terminal states of a solve."""

    SUCCESS = "success"
    NO_PLAN_WITHIN_HORIZON = "no_plan_within_horizon"
    ABORTED = "aborted"


@dataclass
class SearchStatistics:
    """Counters collected during one search."""

    nodes: int = 0
    backtracks: int = 0
    dead_end_hits: int = 0
    transitions: int = 0
    max_step: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": self.nodes,
            "backtracks": self.backtracks,
            "dead_end_hits": self.dead_end_hits,
            "transitions": self.transitions,
            "max_step": self.max_step,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }

    def merge(self, other: "SearchStatistics") -> None:
        self.nodes += other.nodes
        self.backtracks += other.backtracks
        self.dead_end_hits += other.dead_end_hits
        self.transitions += other.transitions
        self.max_step = max(self.max_step, other.max_step)


@dataclass
class SearchOutcome:
    """
    Result of a search.

    Attributes:
        status: SUCCESS, NO_PLAN_WITHIN_HORIZON or ABORTED
        timeline: States start_step..horizon and choices (SUCCESS only)
        statistics: Search counters
        abort_reason: "node_budget", "time_limit" or "cancelled" (ABORTED only)
        start_step: Step of the first timeline state
    """

    status: SearchStatus
    timeline: Optional[Timeline] = None
    statistics: SearchStatistics = field(default_factory=SearchStatistics)
    abort_reason: Optional[str] = None
    start_step: int = 1

    @property
    def success(self) -> bool:
        return self.status == SearchStatus.SUCCESS


# ============================================================================
# Budget
# ============================================================================


@dataclass(frozen=True)
class SearchBudget:
    """
    External search budget.

    Attributes:
        max_nodes: Maximum node visits (None = unlimited, 0 = abort at once)
        time_limit: Wall-clock limit in seconds (None = unlimited)
    """

    max_nodes: Optional[int] = DEFAULT_MAX_NODES
    time_limit: Optional[float] = DEFAULT_TIME_LIMIT_SECONDS

    def __post_init__(self):
        if self.max_nodes is not None and self.max_nodes < 0:
            raise ConfigurationError(
                f"max_nodes must be >= 0, got {self.max_nodes}",
                context={"max_nodes": self.max_nodes},
            )
        if self.time_limit is not None and self.time_limit < 0:
            raise ConfigurationError(
                f"time_limit must be >= 0, got {self.time_limit}",
                context={"time_limit": self.time_limit},
            )

    @property
    def unlimited(self) -> bool:
        return self.max_nodes is None and self.time_limit is None


class BudgetExhausted(Exception):
    """Unwinds the search when the budget runs out. Never leaves the engine."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class BudgetMeter:
    """
    Thread-safe consumption tracker for a SearchBudget.

    One meter may be shared by several workers; cancel() makes every
    subsequent charge() fail.
    """

    def __init__(self, budget: SearchBudget, clock=time.monotonic):
        self.budget = budget
        self._clock = clock
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._started_at: Optional[float] = None
        self.nodes = 0

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def charge(self) -> None:
        """
        Account for one node visit.

        Raises:
            BudgetExhausted: budget used up or meter cancelled
        """
        if self._cancelled.is_set():
            raise BudgetExhausted("cancelled")
        with self._lock:
            if self.budget.max_nodes is not None and self.nodes >= self.budget.max_nodes:
                raise BudgetExhausted("node_budget")
            self.nodes += 1
        if self.budget.time_limit is not None and self.elapsed >= self.budget.time_limit:
            raise BudgetExhausted("time_limit")


# ============================================================================
# Planning Problem
# ============================================================================


@dataclass
class PlanningProblem:
    """
    A validated problem instance.

    Attributes:
        schema: Domain schema (shared, read-only)
        initial_state: State at step 1
        goal: Goal literal set that must hold at step `horizon`
        horizon: Number of states in the timeline (>= 1)
    """

    schema: DomainSchema
    initial_state: State
    goal: FrozenSet[Literal]
    horizon: int

    def __post_init__(self):
        if isinstance(self.horizon, bool) or not isinstance(self.horizon, int):
            raise ConfigurationError(
                f"Horizon must be an integer, got {self.horizon!r}",
                context={"horizon": self.horizon},
            )
        if self.horizon < MIN_HORIZON:
            raise ConfigurationError(
                f"Horizon must be >= {MIN_HORIZON}, got {self.horizon}",
                context={"horizon": self.horizon},
            )
        self.goal = frozenset(self.goal)

    def is_goal(self, state: State) -> bool:
        """Check if state satisfies the goal literals."""
        return state.satisfies(self.goal)


# ============================================================================
# Search Engine
# ============================================================================


@dataclass
class _Frame:
    """One SEARCHING configuration on the explicit DFS stack."""

    step: int
    state: State
    candidates: Optional[List[Optional[ActionInstance]]] = None
    index: int = 0
    choice: Optional[ActionInstance] = None


class HorizonSearchEngine:
    """
    Deterministic depth-first, leftmost-first bounded-horizon search.

    Repeated searches on identical input return identical timelines.
    """

    def __init__(
        self,
        schema: DomainSchema,
        budget: Optional[SearchBudget] = None,
        use_dead_end_cache: bool = True,
        dead_end_cache_size: int = DEAD_END_CACHE_MAXSIZE,
        check_invariants: bool = True,
    ):
        """
        Initialize the engine.

        Args:
            schema: Domain schema (read-only, may be shared)
            budget: External node/time budget (default: unlimited)
            use_dead_end_cache: Prune subtrees already proven to fail
            dead_end_cache_size: Bound of the dead-end table
            check_invariants: Assert consistency and preconditions on every
                transition
        """
        self.schema = schema
        self.budget = budget or SearchBudget()
        self.use_dead_end_cache = use_dead_end_cache
        self.dead_end_cache_size = dead_end_cache_size
        self.check_invariants = check_invariants
        self.last_statistics = SearchStatistics()

    def candidates(self, state: State) -> List[Optional[ActionInstance]]:
        """Canonical candidate order: idle (None) first, then executable actions."""
        return [None, *executable_actions(self.schema, state)]

    def solve(self, problem: PlanningProblem) -> SearchOutcome:
        """Search a validated planning problem from step 1."""
        return self.search(problem.initial_state, problem.goal, problem.horizon)

    def search(
        self,
        initial_state: State,
        goal: Iterable[Literal],
        horizon: int,
        start_step: int = 1,
        meter: Optional[BudgetMeter] = None,
    ) -> SearchOutcome:
        """
        Search for choices at steps start_step..horizon-1 reaching the goal
        exactly at step `horizon`.

        Args:
            initial_state: State at `start_step`
            goal: Goal literal set
            horizon: Final step
            start_step: First step to decide (1 for a full solve)
            meter: Shared budget meter (default: a fresh meter for self.budget)

        Returns:
            SearchOutcome (SUCCESS carries the timeline from start_step)
        """
        if not 1 <= start_step <= horizon:
            raise ValueError(f"start_step {start_step} outside 1..{horizon}")

        goal = frozenset(goal)
        if meter is None:
            meter = BudgetMeter(self.budget)
        meter.start()

        causal = CausalEngine(self.schema, check_invariants=self.check_invariants)
        dead_ends = (
            DeadEndTable(maxsize=self.dead_end_cache_size)
            if self.use_dead_end_cache
            else None
        )
        stats = SearchStatistics()
        self.last_statistics = stats

        logger.debug(
            "Search started",
            extra={
                "start_step": start_step,
                "horizon": horizon,
                "goal_literals": len(goal),
                "budget_nodes": self.budget.max_nodes,
                "budget_seconds": self.budget.time_limit,
            },
        )

        if self.check_invariants:
            causal.verify(initial_state, step=start_step)

        with PerformanceLogger(logger, "horizon_search", horizon=horizon) as perf:
            try:
                outcome = self._run(
                    initial_state, goal, horizon, start_step, meter, causal, dead_ends, stats
                )
            except BudgetExhausted as e:
                outcome = SearchOutcome(
                    status=SearchStatus.ABORTED,
                    statistics=stats,
                    abort_reason=e.reason,
                    start_step=start_step,
                )

        stats.transitions = causal.transitions
        stats.elapsed_ms = perf.duration_ms

        logger.debug(
            "Search finished",
            extra={"status": outcome.status.value, **stats.to_dict()},
        )
        return outcome

    def _run(
        self,
        initial_state: State,
        goal: FrozenSet[Literal],
        horizon: int,
        start_step: int,
        meter: BudgetMeter,
        causal: CausalEngine,
        dead_ends: Optional[DeadEndTable],
        stats: SearchStatistics,
    ) -> SearchOutcome:
        frames: List[_Frame] = [_Frame(step=start_step, state=initial_state)]

        while frames:
            frame = frames[-1]

            if frame.candidates is None:
                # Fresh SEARCHING configuration
                meter.charge()
                stats.nodes += 1
                stats.max_step = max(stats.max_step, frame.step)
                remaining = horizon - frame.step

                if frame.state.satisfies(goal):
                    timeline = self._park_at_goal(frames, causal, horizon)
                    return SearchOutcome(
                        status=SearchStatus.SUCCESS,
                        timeline=timeline,
                        statistics=stats,
                        start_step=start_step,
                    )

                if remaining == 0:
                    if dead_ends is not None:
                        dead_ends.record(frame.state, 0)
                    frames.pop()
                    continue

                if dead_ends is not None and dead_ends.is_dead_end(frame.state, remaining):
                    stats.dead_end_hits += 1
                    frames.pop()
                    continue

                frame.candidates = self.candidates(frame.state)

            if frame.index < len(frame.candidates):
                choice = frame.candidates[frame.index]
                frame.index += 1
                frame.choice = choice
                successor = causal.advance(frame.state, choice, frame.step)
                frames.append(_Frame(step=frame.step + 1, state=successor))
            else:
                # Every candidate failed: backtrack
                if dead_ends is not None:
                    dead_ends.record(frame.state, horizon - frame.step)
                frames.pop()
                stats.backtracks += 1

        return SearchOutcome(
            status=SearchStatus.NO_PLAN_WITHIN_HORIZON,
            statistics=stats,
            start_step=start_step,
        )

    def _park_at_goal(
        self, frames: List[_Frame], causal: CausalEngine, horizon: int
    ) -> Timeline:
        """Goal reached: remaining steps are idle until the horizon."""
        states = [f.state for f in frames]
        choices: List[Optional[ActionInstance]] = [f.choice for f in frames[:-1]]
        step = frames[-1].step
        while step < horizon:
            states.append(causal.advance(states[-1], None, step))
            choices.append(None)
            step += 1
        return Timeline(states=states, choices=choices)
