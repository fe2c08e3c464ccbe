"""
Component 9: Domain Builders

Ready-made domain descriptions for the two puzzle families the planner was
built for:
- SlotBlocksBuilder: stackable pieces and cap pieces over fixed slots
- TowerPuzzleBuilder: pieces over pegs, rebuilt into a single tower

Builders only produce DomainDescription data; validation happens when the
planner builds the DomainSchema from it.

Author: Horizon Planner Team
"""

from typing import Dict, List, Optional, Sequence

from component_2_state_model import Literal, pos
from component_3_domain_schema import CategoryCapability, DomainObject
from component_9_domain_loader import DomainDescription

# Category identifiers
PIECE = "piece"
CAP = "cap"
SLOT = "slot"
DISC = "disc"
PEG = "peg"


def _placement_literals(config: Dict[str, str]) -> List[Literal]:
    """{"A": "slot1", "B": "A"} -> [on(A,slot1), on(B,A)] (sorted)."""
    return [pos("on", obj, support) for obj, support in sorted(config.items())]


# ============================================================================
# Slot Blocks
# ============================================================================


class SlotBlocksBuilder:
    """
    Builder for the slot blocks puzzle.

    Categories:
        piece  one occupant, accepts pieces and caps
        cap    accepts nothing (must end up on top)
        slot   fixed, one occupant, accepts pieces and caps

    Actions: pick_up/put_down on slots, stack/unstack on pieces
    """

    @staticmethod
    def create_categories() -> List[CategoryCapability]:
        return [
            CategoryCapability(PIECE, max_occupants=1, allowed_occupants=frozenset({PIECE, CAP})),
            CategoryCapability(CAP, max_occupants=0),
            CategoryCapability(
                SLOT,
                max_occupants=1,
                allowed_occupants=frozenset({PIECE, CAP}),
                movable=False,
            ),
        ]

    @staticmethod
    def create_description(
        pieces: Sequence[str],
        caps: Sequence[str],
        slots: Sequence[str],
        initial_config: Dict[str, str],
        goal_config: Dict[str, str],
        horizon: int,
        name: str = "slot_blocks",
    ) -> DomainDescription:
        """
        Create a slot blocks description.

        Args:
            pieces: Stackable piece names
            caps: Cap piece names
            slots: Fixed slot names
            initial_config: Initial positions {"A": "slot1", "B": "A"}
            goal_config: Goal positions
            horizon: Number of time steps

        Returns:
            DomainDescription instance
        """
        objects = (
            [DomainObject(p, PIECE) for p in pieces]
            + [DomainObject(c, CAP) for c in caps]
            + [DomainObject(s, SLOT) for s in slots]
        )
        return DomainDescription(
            categories=SlotBlocksBuilder.create_categories(),
            objects=objects,
            initial=_placement_literals(initial_config),
            goal=_placement_literals(goal_config),
            horizon=horizon,
            name=name,
        )

    @staticmethod
    def example(horizon: int = 11) -> DomainDescription:
        """
        Three pieces and one cap over four slots.

        Initial: X on B on A on slot1, C on slot2
        Goal:    X on A on B on C on slot3
        """
        return SlotBlocksBuilder.create_description(
            pieces=["A", "B", "C"],
            caps=["X"],
            slots=["slot1", "slot2", "slot3", "slot4"],
            initial_config={"A": "slot1", "B": "A", "X": "B", "C": "slot2"},
            goal_config={"C": "slot3", "B": "C", "A": "B", "X": "A"},
            horizon=horizon,
        )


# ============================================================================
# Tower Puzzle
# ============================================================================


class TowerPuzzleBuilder:
    """
    Builder for the tower puzzle: pieces spread over pegs are rebuilt into
    a single tower on the target peg.

    Categories:
        disc  one occupant, accepts discs
        peg   fixed, one occupant (the bottom disc), accepts discs
    """

    @staticmethod
    def create_categories() -> List[CategoryCapability]:
        return [
            CategoryCapability(DISC, max_occupants=1, allowed_occupants=frozenset({DISC})),
            CategoryCapability(
                PEG, max_occupants=1, allowed_occupants=frozenset({DISC}), movable=False
            ),
        ]

    @staticmethod
    def create_description(
        discs: Sequence[str],
        pegs: Sequence[str],
        initial_config: Dict[str, str],
        horizon: int,
        target_peg: Optional[str] = None,
        tower_order: Optional[Sequence[str]] = None,
        name: str = "tower_puzzle",
    ) -> DomainDescription:
        """
        Create a tower puzzle description.

        Args:
            discs: Disc names
            pegs: Peg names
            initial_config: Initial positions {"a": "peg1", "b": "d"}
            horizon: Number of time steps
            target_peg: Peg for the final tower (default: last peg)
            tower_order: Discs from top to bottom (default: discs order)
        """
        target_peg = target_peg or pegs[-1]
        order = list(tower_order or discs)

        # Bottom disc on the peg, every other disc on the one below it
        goal_config = {order[-1]: target_peg}
        for upper, lower in zip(order, order[1:]):
            goal_config[upper] = lower

        return DomainDescription(
            categories=TowerPuzzleBuilder.create_categories(),
            objects=[DomainObject(d, DISC) for d in discs] + [DomainObject(p, PEG) for p in pegs],
            initial=_placement_literals(initial_config),
            goal=_placement_literals(goal_config),
            horizon=horizon,
            name=name,
        )

    @staticmethod
    def example(horizon: int = 13) -> DomainDescription:
        """
        Four discs over three pegs.

        Initial: a on peg1, b on d on peg2, c on peg3
        Goal:    a on b on c on d on peg3
        """
        return TowerPuzzleBuilder.create_description(
            discs=["a", "b", "c", "d"],
            pegs=["peg1", "peg2", "peg3"],
            initial_config={"a": "peg1", "d": "peg2", "b": "d", "c": "peg3"},
            horizon=horizon,
        )


EXAMPLES = {
    "blocks": SlotBlocksBuilder.example,
    "tower": TowerPuzzleBuilder.example,
}
