"""
Component 2: Literal & State Model

Core state primitives of the horizon planner:
- Fluent: parameterized boolean world property, e.g. ("on", ("a", "slot1"))
- Literal: a fluent or its negation (its contrary)
- State: a total, consistent truth assignment over a fluent universe

A State stores only the fluents that hold. Every fluent of the universe that
is not stored is false, so for every fluent exactly one of {F, -F} holds by
construction. States compare and hash structurally, which lets the search
engine deduplicate them.

Author: Horizon Planner Team
"""

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, List, Optional, Tuple

from planner_exceptions import (
    ContradictoryLiteralsError,
    InvalidFluentError,
    InvariantViolationError,
)

# ============================================================================
# Fluents and Literals
# ============================================================================


@dataclass(frozen=True, order=True)
class Fluent:
    """
    Parameterized boolean property.

    Attributes:
        name: Fluent name ("on", "clear", "holding", "handempty")
        args: Object arguments (empty for nullary fluents)
    """

    name: str
    args: Tuple[str, ...] = ()

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}({','.join(self.args)})"

    def __repr__(self) -> str:
        return f"Fluent({str(self)!r})"


@dataclass(frozen=True, order=True)
class Literal:
    """
    A fluent (positive=True) or its negation (positive=False).
    """

    fluent: Fluent
    positive: bool = True

    def contrary(self) -> "Literal":
        """The negation of this literal."""
        return Literal(self.fluent, not self.positive)

    def __str__(self) -> str:
        return str(self.fluent) if self.positive else f"-{self.fluent}"

    def __repr__(self) -> str:
        return f"Literal({str(self)!r})"


def pos(name: str, *args: str) -> Literal:
    """Shorthand for a positive literal."""
    return Literal(Fluent(name, tuple(args)), True)


def neg(name: str, *args: str) -> Literal:
    """Shorthand for a negative literal."""
    return Literal(Fluent(name, tuple(args)), False)


def check_no_contraries(literals: Iterable[Literal], label: str = "literal set") -> None:
    """
    Raise ContradictoryLiteralsError if a literal and its contrary both appear.
    """
    seen = set(literals)
    for literal in sorted(seen):
        if literal.positive and literal.contrary() in seen:
            raise ContradictoryLiteralsError(
                f"{label} declares both {literal} and {literal.contrary()}",
                fluent=str(literal.fluent),
            )


# ============================================================================
# State Representation
# ============================================================================


class State:
    """
    Closed-world truth assignment over a fixed fluent universe.

    Only true fluents are stored; unlisted fluents are false. Two states are
    equal iff they assign the same truth values.
    """

    __slots__ = ("true_fluents", "universe", "_hash")

    def __init__(
        self, true_fluents: Iterable[Fluent], universe: AbstractSet[Fluent]
    ):
        self.true_fluents: FrozenSet[Fluent] = frozenset(true_fluents)
        self.universe: AbstractSet[Fluent] = universe
        self._hash = hash(self.true_fluents)

    @classmethod
    def from_literals(
        cls, literals: Iterable[Literal], universe: AbstractSet[Fluent]
    ) -> "State":
        """
        Build a state from an explicit literal set.

        Unlisted fluents are false. Listing both F and -F, or naming a fluent
        outside the universe, is a configuration error.
        """
        literals = list(literals)
        for literal in literals:
            if literal.fluent not in universe:
                raise InvalidFluentError(
                    f"Fluent {literal.fluent} is not part of the domain",
                    fluent=str(literal.fluent),
                )
        check_no_contraries(literals, "initial literal set")
        return cls((lit.fluent for lit in literals if lit.positive), universe)

    def holds(self, literal: Literal) -> bool:
        """Truth of a literal. Total: never undefined."""
        return (literal.fluent in self.true_fluents) == literal.positive

    def is_true(self, fluent: Fluent) -> bool:
        return fluent in self.true_fluents

    def satisfies(self, literals: Iterable[Literal]) -> bool:
        """Check if every literal holds."""
        return all(self.holds(lit) for lit in literals)

    def missing(self, literals: Iterable[Literal]) -> List[Literal]:
        """Literals of the given set that do not hold, sorted."""
        return sorted(lit for lit in literals if not self.holds(lit))

    def literals(self) -> List[Literal]:
        """The full assignment as a sorted list of literals (one per fluent)."""
        return [Literal(f, f in self.true_fluents) for f in sorted(self.universe)]

    def check_consistency(self, step: Optional[int] = None) -> None:
        """
        Verify the completeness/consistency invariant.

        Raises:
            InvariantViolationError: if a true fluent lies outside the universe
        """
        stray = self.true_fluents - self.universe
        if stray:
            raise InvariantViolationError(
                f"State holds fluents outside the domain: {sorted(map(str, stray))}",
                step=step,
                state=self.to_string(),
            )

    def __eq__(self, other) -> bool:
        if not isinstance(other, State):
            return False
        return self.true_fluents == other.true_fluents

    def __hash__(self) -> int:
        return self._hash

    def __len__(self) -> int:
        return len(self.true_fluents)

    def __repr__(self) -> str:
        return f"State({self.to_string(separator=', ')})"

    def to_string(self, separator: str = "\n") -> str:
        """Human-readable state description (true fluents only)."""
        if not self.true_fluents:
            return "Empty State"
        return separator.join(str(f) for f in sorted(self.true_fluents))
