"""
Component 3: Domain Schema

Declares the planning domain and derives everything the search needs:
- Object categories with their support capability
  (how many objects, and of which categories, may rest directly on top)
- The universe of category-valid fluents
- The action instances of the four fixed operator templates
  (pick_up, put_down, stack, unstack) with their precondition/effect sets
- Completion and validation of initial and goal literal sets

The schema is validated once and is read-only afterwards, so a single
instance can be shared between concurrent solves.

Category capability:
    max_occupants = 0     nothing may rest on the object (cap pieces)
    max_occupants = 1     at most one occupant, tracked by clear(X)
    max_occupants = None  unbounded support (a table), never needs to be clear

Author: Horizon Planner Team
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from common.constants import (
    FLUENT_CLEAR,
    FLUENT_HANDEMPTY,
    FLUENT_HOLDING,
    FLUENT_ON,
    OP_PICK_UP,
    OP_PUT_DOWN,
    OP_STACK,
    OP_UNSTACK,
)
from component_1_logging_config import get_logger
from component_2_state_model import Fluent, Literal, State, check_no_contraries
from planner_exceptions import (
    ConfigurationError,
    ContradictoryLiteralsError,
    InvalidFluentError,
    UndeclaredCategoryError,
    UndeclaredObjectError,
)

logger = get_logger(__name__)

FLUENT_ARITY: Dict[str, int] = {
    FLUENT_ON: 2,
    FLUENT_CLEAR: 1,
    FLUENT_HOLDING: 1,
    FLUENT_HANDEMPTY: 0,
}


# ============================================================================
# Declarations
# ============================================================================


@dataclass(frozen=True)
class CategoryCapability:
    """
    Support capability of an object category.

    Attributes:
        name: Category identifier (e.g. "piece", "cap", "slot")
        max_occupants: 0, 1 or None (unbounded)
        allowed_occupants: Categories that may be placed directly on top
        movable: False for fixed slots and pegs
    """

    name: str
    max_occupants: Optional[int] = 1
    allowed_occupants: FrozenSet[str] = field(default_factory=frozenset)
    movable: bool = True

    def __post_init__(self):
        object.__setattr__(self, "allowed_occupants", frozenset(self.allowed_occupants))

    @property
    def receives_occupants(self) -> bool:
        return self.max_occupants != 0 and bool(self.allowed_occupants)

    @property
    def tracks_clear(self) -> bool:
        """One-occupant supports carry a clear(X) fluent."""
        return self.max_occupants == 1


@dataclass(frozen=True, order=True)
class DomainObject:
    """An identifier with a category tag. Immutable once declared."""

    name: str
    category: str


@dataclass(frozen=True)
class ActionTemplate:
    """
    Operator template.

    Attributes:
        name: Operator name
        support_movable: True if the second argument is a movable piece
        places: True if the operator puts the held object onto the support
    """

    name: str
    support_movable: bool
    places: bool


ACTION_TEMPLATES: Tuple[ActionTemplate, ...] = (
    ActionTemplate(OP_PICK_UP, support_movable=False, places=False),
    ActionTemplate(OP_PUT_DOWN, support_movable=False, places=True),
    ActionTemplate(OP_STACK, support_movable=True, places=True),
    ActionTemplate(OP_UNSTACK, support_movable=True, places=False),
)


@dataclass(frozen=True)
class ActionInstance:
    """
    Grounded action.

    Attributes:
        operator: Operator template name
        args: (object, support)
        preconditions: Literals required to hold for executability
        effects: Literals the action causes to hold at the next step
    """

    operator: str
    args: Tuple[str, ...]
    preconditions: FrozenSet[Literal] = field(compare=False)
    effects: FrozenSet[Literal] = field(compare=False)

    @property
    def name(self) -> str:
        return f"{self.operator}({','.join(self.args)})"

    @property
    def sort_key(self) -> Tuple[str, Tuple[str, ...]]:
        """Canonical order: operator name, then argument identifiers."""
        return (self.operator, self.args)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"ActionInstance({self.name!r})"


# ============================================================================
# Domain Schema
# ============================================================================


class DomainSchema:
    """
    Validated, immutable domain declaration.

    Derives the fluent universe and all category-compatible action instances
    once at construction time.
    """

    def __init__(
        self,
        objects: Iterable[DomainObject],
        categories: Iterable[CategoryCapability],
    ):
        """
        Validate declarations and derive fluents and actions.

        Args:
            objects: Declared objects
            categories: Category capability table

        Raises:
            ConfigurationError: on any malformed declaration
        """
        self._categories: Dict[str, CategoryCapability] = {}
        for category in categories:
            if category.name in self._categories:
                raise ConfigurationError(
                    f"Category '{category.name}' declared twice",
                    context={"category": category.name},
                )
            if category.max_occupants not in (0, 1, None):
                raise ConfigurationError(
                    f"Category '{category.name}' has unsupported max_occupants "
                    f"{category.max_occupants!r} (expected 0, 1 or None)",
                    context={"category": category.name},
                )
            if category.movable and category.max_occupants is None and category.allowed_occupants:
                raise ConfigurationError(
                    f"Movable category '{category.name}' cannot carry an unbounded "
                    "number of occupants",
                    context={"category": category.name},
                )
            self._categories[category.name] = category

        for category in self._categories.values():
            for occupant in sorted(category.allowed_occupants):
                if occupant not in self._categories:
                    raise UndeclaredCategoryError(
                        f"Capability of '{category.name}' references undeclared "
                        f"category '{occupant}'",
                        category=occupant,
                    )

        self._objects: Dict[str, DomainObject] = {}
        for obj in sorted(objects):
            if obj.name in self._objects:
                raise ConfigurationError(
                    f"Object '{obj.name}' declared twice",
                    context={"object_name": obj.name},
                )
            if obj.category not in self._categories:
                raise UndeclaredCategoryError(
                    f"Object '{obj.name}' has undeclared category '{obj.category}'",
                    category=obj.category,
                )
            self._objects[obj.name] = obj

        self.fluents: Tuple[Fluent, ...] = tuple(sorted(self._derive_fluents()))
        self.universe: FrozenSet[Fluent] = frozenset(self.fluents)
        self.actions: Tuple[ActionInstance, ...] = tuple(
            sorted(self._derive_actions(), key=lambda a: a.sort_key)
        )
        self._validate_action_effects()

        self._establishers: Dict[Fluent, List[ActionInstance]] = defaultdict(list)
        for action in self.actions:
            for effect in action.effects:
                if effect.positive:
                    self._establishers[effect.fluent].append(action)

        logger.info(
            "Domain schema validated",
            extra={
                "objects": len(self._objects),
                "categories": len(self._categories),
                "fluents": len(self.fluents),
                "actions": len(self.actions),
            },
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def objects(self) -> List[DomainObject]:
        return list(self._objects.values())

    @property
    def categories(self) -> List[CategoryCapability]:
        return list(self._categories.values())

    def object(self, name: str) -> DomainObject:
        try:
            return self._objects[name]
        except KeyError:
            raise UndeclaredObjectError(
                f"Object '{name}' is not declared in any category", object_name=name
            ) from None

    def capability(self, name: str) -> CategoryCapability:
        """Capability of the category of the named object."""
        return self._categories[self.object(name).category]

    def movable_objects(self) -> List[str]:
        return [o.name for o in self._objects.values() if self.capability(o.name).movable]

    def can_support(self, support: str, occupant: str) -> bool:
        """Whether `occupant` may be placed directly on `support`."""
        if support == occupant:
            return False
        if not self.capability(occupant).movable:
            return False
        cap = self.capability(support)
        return cap.receives_occupants and self.object(occupant).category in cap.allowed_occupants

    def is_valid_fluent(self, fluent: Fluent) -> bool:
        return fluent in self.universe

    def establishers(self, fluent: Fluent) -> List[ActionInstance]:
        """Action instances that cause the fluent to hold."""
        return list(self._establishers.get(fluent, ()))

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _derive_fluents(self) -> Set[Fluent]:
        fluents: Set[Fluent] = {Fluent(FLUENT_HANDEMPTY)}
        names = sorted(self._objects)
        for x in names:
            cap = self.capability(x)
            if cap.tracks_clear:
                fluents.add(Fluent(FLUENT_CLEAR, (x,)))
            if cap.movable:
                fluents.add(Fluent(FLUENT_HOLDING, (x,)))
            for y in names:
                if self.can_support(y, x):
                    fluents.add(Fluent(FLUENT_ON, (x, y)))
        return fluents

    def _derive_actions(self) -> List[ActionInstance]:
        actions = []
        for template in ACTION_TEMPLATES:
            for fluent in self.fluents:
                if fluent.name != FLUENT_ON:
                    continue
                x, y = fluent.args
                if self.capability(y).movable != template.support_movable:
                    continue
                actions.append(self._instantiate(template, x, y))
        return actions

    def _instantiate(self, template: ActionTemplate, x: str, y: str) -> ActionInstance:
        on_xy = Fluent(FLUENT_ON, (x, y))
        holding_x = Fluent(FLUENT_HOLDING, (x,))
        handempty = Fluent(FLUENT_HANDEMPTY)
        clear_x = Fluent(FLUENT_CLEAR, (x,)) if self.capability(x).tracks_clear else None
        clear_y = Fluent(FLUENT_CLEAR, (y,)) if self.capability(y).tracks_clear else None

        pre: Set[Literal] = set()
        eff: Set[Literal] = set()
        if template.places:
            pre.add(Literal(holding_x))
            eff.update({Literal(on_xy), Literal(holding_x, False), Literal(handempty)})
            if clear_y is not None:
                pre.add(Literal(clear_y))
                eff.add(Literal(clear_y, False))
            if clear_x is not None:
                eff.add(Literal(clear_x))
        else:
            pre.update({Literal(on_xy), Literal(handempty)})
            eff.update({Literal(holding_x), Literal(on_xy, False), Literal(handempty, False)})
            if clear_x is not None:
                pre.add(Literal(clear_x))
                eff.add(Literal(clear_x, False))
            if clear_y is not None:
                eff.add(Literal(clear_y))

        return ActionInstance(
            operator=template.name,
            args=(x, y),
            preconditions=frozenset(pre),
            effects=frozenset(eff),
        )

    def _validate_action_effects(self) -> None:
        for action in self.actions:
            try:
                check_no_contraries(action.effects, f"effect set of {action}")
            except ContradictoryLiteralsError as e:
                raise ConfigurationError(
                    f"Action {action} causes a literal and its contrary",
                    context={"action": action.name},
                    original_exception=e,
                ) from e

    # ------------------------------------------------------------------
    # Literal validation
    # ------------------------------------------------------------------

    def validate_literal(self, literal: Literal) -> None:
        """
        Raises:
            UndeclaredObjectError: an argument is not a declared object
            InvalidFluentError: unknown fluent, wrong arity or incompatible categories
        """
        fluent = literal.fluent
        for arg in fluent.args:
            if arg not in self._objects:
                raise UndeclaredObjectError(
                    f"Literal {literal} references undeclared object '{arg}'",
                    object_name=arg,
                )
        if FLUENT_ARITY.get(fluent.name) != len(fluent.args):
            raise InvalidFluentError(
                f"Unknown fluent or wrong arity: {fluent}", fluent=str(fluent)
            )
        if fluent not in self.universe:
            raise InvalidFluentError(
                f"Fluent {fluent} violates category constraints", fluent=str(fluent)
            )

    def require_operators(self, literals: Iterable[Literal], label: str) -> None:
        """
        Positive on/holding literals in initial or goal data must be producible
        by at least one operator instantiation.
        """
        for literal in literals:
            fluent = literal.fluent
            if not literal.positive or fluent.name not in (FLUENT_ON, FLUENT_HOLDING):
                continue
            if not self._establishers.get(fluent):
                raise ConfigurationError(
                    f"{label} literal {literal} has no category-compatible operator "
                    f"instantiation",
                    context={"literal": str(literal)},
                )

    def build_goal(self, literals: Iterable[Literal]) -> FrozenSet[Literal]:
        """Validate a goal literal set."""
        literals = list(literals)
        for literal in literals:
            self.validate_literal(literal)
        check_no_contraries(literals, "goal literal set")
        self.require_operators(literals, "goal")
        return frozenset(literals)

    def build_initial_state(self, literals: Iterable[Literal]) -> State:
        """
        Build state 1 from the initial literal set.

        The set usually lists only the arrangement (on/holding). The clear and
        handempty fluents implied by it are derived; explicit clear/handempty
        literals must agree with the derivation.

        Raises:
            ConfigurationError: malformed or contradictory initial data
        """
        literals = list(literals)
        for literal in literals:
            self.validate_literal(literal)
        check_no_contraries(literals, "initial literal set")
        self.require_operators(literals, "initial")

        positives = {lit.fluent for lit in literals if lit.positive}
        support_of: Dict[str, str] = {}
        occupants: Dict[str, List[str]] = defaultdict(list)
        held: List[str] = []

        for fluent in sorted(positives):
            if fluent.name == FLUENT_ON:
                x, y = fluent.args
                if x in support_of:
                    raise ConfigurationError(
                        f"Object '{x}' is placed on both '{support_of[x]}' and '{y}'",
                        context={"object_name": x},
                    )
                support_of[x] = y
                occupants[y].append(x)
            elif fluent.name == FLUENT_HOLDING:
                held.append(fluent.args[0])

        if len(held) > 1:
            raise ConfigurationError(
                f"More than one object held initially: {held}",
                context={"held": held},
            )
        for x in held:
            if x in support_of:
                raise ConfigurationError(
                    f"Object '{x}' is both held and placed on '{support_of[x]}'",
                    context={"object_name": x},
                )
            if occupants.get(x):
                raise ConfigurationError(
                    f"Held object '{x}' carries {occupants[x]}",
                    context={"object_name": x},
                )
        for y, occ in occupants.items():
            if self.capability(y).max_occupants == 1 and len(occ) > 1:
                raise ConfigurationError(
                    f"Support '{y}' holds {len(occ)} objects but admits one",
                    context={"support": y, "occupants": occ},
                )
        self._check_acyclic(support_of)

        for x in self.movable_objects():
            if x not in support_of and x not in held:
                logger.warning(
                    "Object has no initial position and can never be moved",
                    extra={"object_name": x},
                )

        derived: Set[Fluent] = {
            f for f in positives if f.name in (FLUENT_ON, FLUENT_HOLDING)
        }
        for name in sorted(self._objects):
            if self.capability(name).tracks_clear and not occupants.get(name) and name not in held:
                derived.add(Fluent(FLUENT_CLEAR, (name,)))
        if not held:
            derived.add(Fluent(FLUENT_HANDEMPTY))

        for literal in literals:
            if literal.fluent.name in (FLUENT_CLEAR, FLUENT_HANDEMPTY):
                if (literal.fluent in derived) != literal.positive:
                    raise ContradictoryLiteralsError(
                        f"Initial literal {literal} contradicts the initial arrangement",
                        fluent=str(literal.fluent),
                    )

        return State(derived, self.universe)

    def _check_acyclic(self, support_of: Dict[str, str]) -> None:
        for start in sorted(support_of):
            seen = {start}
            node = support_of.get(start)
            while node is not None:
                if node in seen:
                    raise ConfigurationError(
                        f"Initial arrangement contains a support cycle through '{start}'",
                        context={"object_name": start},
                    )
                seen.add(node)
                node = support_of.get(node)

    # ------------------------------------------------------------------
    # Physical sanity (used by invariant checks)
    # ------------------------------------------------------------------

    def arrangement_violations(self, state: State) -> List[str]:
        """
        Describe every way the state is not a physically sane arrangement.

        Returns:
            Empty list if every movable object is on exactly one support or
            held, held objects carry nothing, clear/handempty agree with the
            arrangement and one-occupant supports carry at most one object.
        """
        problems = []
        support_count: Dict[str, int] = defaultdict(int)
        occupant_count: Dict[str, int] = defaultdict(int)
        held = []
        for fluent in state.true_fluents:
            if fluent.name == FLUENT_ON:
                support_count[fluent.args[0]] += 1
                occupant_count[fluent.args[1]] += 1
            elif fluent.name == FLUENT_HOLDING:
                held.append(fluent.args[0])

        if len(held) > 1:
            problems.append(f"holding several objects: {sorted(held)}")
        if state.is_true(Fluent(FLUENT_HANDEMPTY)) == bool(held):
            problems.append("handempty disagrees with holding")
        for x in held:
            if support_count.get(x):
                problems.append(f"{x} is held and placed")
            if occupant_count.get(x):
                problems.append(f"held object {x} carries {occupant_count[x]} objects")
        for x, count in support_count.items():
            if count > 1:
                problems.append(f"{x} rests on {count} supports")
        for name in sorted(self._objects):
            cap = self.capability(name)
            if cap.max_occupants == 1 and occupant_count.get(name, 0) > 1:
                problems.append(f"{name} carries {occupant_count[name]} objects")
            if cap.tracks_clear:
                expect_clear = not occupant_count.get(name) and name not in held
                if state.is_true(Fluent(FLUENT_CLEAR, (name,))) != expect_clear:
                    problems.append(f"clear({name}) disagrees with the arrangement")
        return problems
