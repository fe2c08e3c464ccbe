"""
Centralized constants for the horizon planner.

This module provides a single source of truth for default budgets, cache
sizes and search settings used throughout the planner. Every value here is a
default: components accept constructor parameters that override it, and the
command line exposes the most common ones as flags.

Organization:
    - Search Budget: node-count and wall-clock limits
    - Dead-End Cache: memory bounds for failed-subtree memoization
    - Parallel Search: worker pool sizing
    - Horizon: default bound for examples

Usage:
    from common.constants import DEFAULT_MAX_NODES, DEAD_END_CACHE_MAXSIZE
"""

# =============================================================================
# Search Budget
# =============================================================================

DEFAULT_MAX_NODES = None
"""
Default node-count budget for a single solve (None = unlimited).

A node is one visit of a (step, state) pair by the depth-first search.
When the budget is exhausted the solve ends with status ABORTED, which is
distinct from NO_PLAN_WITHIN_HORIZON.

Used by:
    - component_6_search_engine.py: SearchBudget defaults
    - component_10_horizon_planner.py: --max-nodes flag
"""

DEFAULT_TIME_LIMIT_SECONDS = None
"""
Default wall-clock budget for a single solve in seconds (None = unlimited).

Used by:
    - component_6_search_engine.py: SearchBudget defaults
    - component_10_horizon_planner.py: --time-limit flag
"""

# =============================================================================
# Dead-End Cache
# =============================================================================

DEAD_END_CACHE_MAXSIZE: int = 200_000
"""
Maximum number of states remembered as proven dead ends per solve.

Each entry maps a state to the largest number of remaining steps from
which the search has already failed. Evicting an entry only costs
re-exploration, never correctness.

Rationale:
    Blocks-style domains with a handful of pieces have a few thousand
    reachable states. The bound keeps memory flat for larger domains.

Used by:
    - infrastructure/dead_end_cache.py: LRU-backed dead-end table
"""

# =============================================================================
# Parallel Search
# =============================================================================

DEFAULT_PARALLEL_WORKERS: int = 4
"""
Default number of worker threads for first-step parallel exploration.

Used by:
    - component_6_parallel_search.py: ParallelSearchEngine
"""

# =============================================================================
# Horizon
# =============================================================================

MIN_HORIZON: int = 1
"""
Smallest admissible horizon. A horizon of 1 means the goal must already
hold in the initial state.
"""

FLUENT_ON: str = "on"
FLUENT_CLEAR: str = "clear"
FLUENT_HOLDING: str = "holding"
FLUENT_HANDEMPTY: str = "handempty"

OP_PICK_UP: str = "pick_up"
OP_PUT_DOWN: str = "put_down"
OP_STACK: str = "stack"
OP_UNSTACK: str = "unstack"
