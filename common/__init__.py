"""
Common constants for the horizon planner.

This package provides centralized default values shared by the search
engine, the parallel explorer and the command line.
"""

from common.constants import *

__all__ = [
    # Search Budget
    "DEFAULT_MAX_NODES",
    "DEFAULT_TIME_LIMIT_SECONDS",
    # Dead-End Cache
    "DEAD_END_CACHE_MAXSIZE",
    # Parallel Search
    "DEFAULT_PARALLEL_WORKERS",
    # Horizon
    "MIN_HORIZON",
    # Fluent and operator names
    "FLUENT_ON",
    "FLUENT_CLEAR",
    "FLUENT_HOLDING",
    "FLUENT_HANDEMPTY",
    "OP_PICK_UP",
    "OP_PUT_DOWN",
    "OP_STACK",
    "OP_UNSTACK",
]
