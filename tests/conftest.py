"""
tests/conftest.py

Shared fixtures for the planner tests.

The "mini" domain has two pieces a, b and two slots s1, s2 with b on a on s1.
It is small enough to reason about every search step by hand.
"""

import pytest

from component_2_state_model import pos
from component_3_domain_schema import CategoryCapability, DomainObject, DomainSchema
from component_9_domain_builders import SlotBlocksBuilder, TowerPuzzleBuilder
from component_9_domain_loader import DomainDescription
from component_10_horizon_planner import HorizonPlanner


def mini_categories():
    return [
        CategoryCapability("piece", max_occupants=1, allowed_occupants=frozenset({"piece"})),
        CategoryCapability(
            "slot", max_occupants=1, allowed_occupants=frozenset({"piece"}), movable=False
        ),
    ]


def mini_objects():
    return [
        DomainObject("a", "piece"),
        DomainObject("b", "piece"),
        DomainObject("s1", "slot"),
        DomainObject("s2", "slot"),
    ]


def mini_description(goal=None, horizon=5, initial=None):
    """b on a on s1; default goal a on b on s2."""
    return DomainDescription(
        categories=mini_categories(),
        objects=mini_objects(),
        initial=initial if initial is not None else [pos("on", "a", "s1"), pos("on", "b", "a")],
        goal=goal if goal is not None else [pos("on", "b", "s2"), pos("on", "a", "b")],
        horizon=horizon,
        name="mini",
    )


@pytest.fixture
def mini_schema():
    return DomainSchema(mini_objects(), mini_categories())


@pytest.fixture
def mini_initial(mini_schema):
    return mini_schema.build_initial_state([pos("on", "a", "s1"), pos("on", "b", "a")])


@pytest.fixture
def planner():
    return HorizonPlanner()


@pytest.fixture
def blocks_description():
    return SlotBlocksBuilder.example(horizon=11)


@pytest.fixture
def tower_description():
    return TowerPuzzleBuilder.example(horizon=13)


@pytest.fixture
def make_mini():
    """Factory for mini domain descriptions with custom goal/horizon."""
    return mini_description
