"""
Component 9: Domain Description Loader

Structured input of the planner and its JSON form.

A domain description consists of:
    1. object list with categories
    2. category-capability table
    3. initial literal set
    4. goal literal set
    5. horizon (integer >= 1)

JSON layout:
    {
      "categories": {
        "piece": {"max_occupants": 1, "allowed_occupants": ["piece", "cap"]},
        "cap":   {"max_occupants": 0},
        "slot":  {"max_occupants": 1, "allowed_occupants": ["piece", "cap"],
                  "movable": false}
      },
      "objects": {"a": "piece", "x": "cap", "slot1": "slot"},
      "initial": ["on(a,slot1)", "on(x,a)"],
      "goal": ["on(x,slot1)", "-on(a,slot1)"],
      "horizon": 5
    }

Literals are written `on(a,b)`, `clear(a)`, `handempty`; negation as
`-on(a,b)` or `not on(a,b)`.

Author: Horizon Planner Team
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from component_1_logging_config import get_logger
from component_2_state_model import Fluent, Literal
from component_3_domain_schema import CategoryCapability, DomainObject
from planner_exceptions import ConfigurationError, wrap_exception

logger = get_logger(__name__)

_LITERAL_PATTERN = re.compile(
    r"^\s*(?:(?P<neg_word>not)\s+|(?P<neg_sign>[-~]))?\s*"
    r"(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*"
    r"(?:\(\s*(?P<args>[^()]*?)\s*\))?\s*$"
)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class DomainDescription:
    """
    In-memory domain description consumed by the planner.

    Attributes:
        categories: Category capability table
        objects: Declared objects
        initial: Initial literal set
        goal: Goal literal set
        horizon: Number of time steps (states) in the timeline
        name: Optional label for logs and reports
    """

    categories: List[CategoryCapability]
    objects: List[DomainObject]
    initial: List[Literal]
    goal: List[Literal]
    horizon: int
    name: str = "domain"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_horizon(self, horizon: int) -> "DomainDescription":
        """Copy of this description with another horizon."""
        return DomainDescription(
            categories=list(self.categories),
            objects=list(self.objects),
            initial=list(self.initial),
            goal=list(self.goal),
            horizon=horizon,
            name=self.name,
            metadata=dict(self.metadata),
        )


# ============================================================================
# Literal parsing
# ============================================================================


def parse_literal(text: str) -> Literal:
    """
    Parse `on(a,b)`, `-clear(a)`, `not holding(b)` or `handempty`.

    Raises:
        ConfigurationError: malformed literal text
    """
    if not isinstance(text, str):
        raise ConfigurationError(
            f"Literal must be a string, got {type(text).__name__}",
            context={"literal": repr(text)},
        )
    match = _LITERAL_PATTERN.match(text)
    if match is None:
        raise ConfigurationError(
            f"Cannot parse literal {text!r}", context={"literal": text}
        )
    args_text = match.group("args")
    args: tuple = ()
    if args_text:
        args = tuple(a.strip() for a in args_text.split(","))
        if not all(_IDENTIFIER.match(a) for a in args):
            raise ConfigurationError(
                f"Invalid argument list in literal {text!r}", context={"literal": text}
            )
    positive = not (match.group("neg_word") or match.group("neg_sign"))
    return Literal(Fluent(match.group("name"), args), positive)


# ============================================================================
# Dict / JSON conversion
# ============================================================================


def _expect(value: Any, kind: type, what: str) -> Any:
    """Return value if it is a `kind`; bools never pass as ints."""
    if isinstance(value, kind) and (kind is bool or not isinstance(value, bool)):
        return value
    raise ConfigurationError(
        f"{what} must be {kind.__name__}, got {type(value).__name__}",
        context={"entry": what, "value": repr(value)},
    )


def _parse_category(name: str, settings: Any) -> CategoryCapability:
    where = f"categories.{name}"
    settings = _expect(settings if settings is not None else {}, dict, where)
    max_occupants = settings.get("max_occupants", 1)
    if max_occupants is not None:
        _expect(max_occupants, int, f"{where}.max_occupants")
    allowed = _expect(settings.get("allowed_occupants", []), list, f"{where}.allowed_occupants")
    for occupant in allowed:
        _expect(occupant, str, f"{where}.allowed_occupants entry")
    return CategoryCapability(
        name=name,
        max_occupants=max_occupants,
        allowed_occupants=frozenset(allowed),
        movable=_expect(settings.get("movable", True), bool, f"{where}.movable"),
    )


def _parse_literal_list(data: Dict[str, Any], section: str) -> List[Literal]:
    entries = _expect(data[section], list, section)
    return [parse_literal(_expect(text, str, f"{section} entry")) for text in entries]


def domain_description_from_dict(data: Dict[str, Any], name: str = "domain") -> DomainDescription:
    """
    Build a DomainDescription from its dict form.

    Raises:
        ConfigurationError: missing sections or values of the wrong shape
    """
    _expect(data, dict, "domain description")
    for section in ("categories", "objects", "initial", "goal", "horizon"):
        if section not in data:
            raise ConfigurationError(
                f"Domain description lacks section '{section}'",
                context={"section": section},
            )

    categories = [
        _parse_category(_expect(cat_name, str, "category name"), settings)
        for cat_name, settings in _expect(data["categories"], dict, "categories").items()
    ]

    objects = [
        DomainObject(_expect(obj, str, "object name"), _expect(category, str, f"objects.{obj}"))
        for obj, category in _expect(data["objects"], dict, "objects").items()
    ]

    horizon = data["horizon"]
    if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon < 1:
        raise ConfigurationError(
            f"Horizon must be an integer >= 1, got {horizon!r}",
            context={"horizon": horizon},
        )

    return DomainDescription(
        categories=categories,
        objects=objects,
        initial=_parse_literal_list(data, "initial"),
        goal=_parse_literal_list(data, "goal"),
        horizon=horizon,
        name=_expect(data.get("name", name), str, "name"),
        metadata=dict(_expect(data.get("metadata", {}), dict, "metadata")),
    )


def domain_description_to_dict(description: DomainDescription) -> Dict[str, Any]:
    """Inverse of domain_description_from_dict."""
    categories: Dict[str, Any] = {}
    for cat in description.categories:
        categories[cat.name] = {
            "max_occupants": cat.max_occupants,
            "allowed_occupants": sorted(cat.allowed_occupants),
            "movable": cat.movable,
        }
    return {
        "name": description.name,
        "categories": categories,
        "objects": {obj.name: obj.category for obj in description.objects},
        "initial": [str(lit) for lit in description.initial],
        "goal": [str(lit) for lit in description.goal],
        "horizon": description.horizon,
    }


def load_domain_description(path: Union[str, Path]) -> DomainDescription:
    """
    Load a domain description from a JSON file.

    Raises:
        ConfigurationError: unreadable file, invalid JSON or invalid content
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise wrap_exception(
            e, ConfigurationError, "Cannot read domain description", path=str(path)
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Domain description must be a JSON object", context={"path": str(path)}
        )

    description = domain_description_from_dict(data, name=path.stem)
    logger.info(
        "Domain description loaded",
        extra={
            "path": str(path),
            "objects": len(description.objects),
            "horizon": description.horizon,
        },
    )
    return description


def save_domain_description(description: DomainDescription, path: Union[str, Path]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(domain_description_to_dict(description), f, indent=2)
