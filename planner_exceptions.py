"""
planner_exceptions.py

Exception hierarchy for the horizon planner.

    PlannerException
    ├── ConfigurationError
    │   ├── UndeclaredCategoryError
    │   ├── UndeclaredObjectError
    │   ├── InvalidFluentError
    │   └── ContradictoryLiteralsError
    └── InvariantViolationError

"No plan within horizon" and "search aborted" are not exceptions; the search
engine returns them as a SearchStatus.

Every exception carries a message, a context dict and optionally the
exception it wraps. Keyword arguments other than ``context`` and
``original_exception`` are added to the context:

    raise UndeclaredObjectError("Unknown object in goal", object_name="slot9")
"""

from typing import Any, Dict, Optional


class PlannerException(Exception):
    """Base of all planner errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        **details: Any,
    ):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {**(context or {}), **details}
        self.original_exception = original_exception
        if original_exception is not None:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("Context: " + ", ".join(f"{k}={v}" for k, v in self.context.items()))
        if self.original_exception is not None:
            cause = self.original_exception
            parts.append(f"Caused by: {type(cause).__name__}: {cause}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, context={self.context!r})"


# ==================== Configuration ====================


class ConfigurationError(PlannerException):
    """
    Malformed domain description, raised before any search runs.

    Covers undeclared category or object references, fluents that violate
    category constraints, contradictory initial or goal literals and invalid
    horizon or capability values.
    """


class UndeclaredCategoryError(ConfigurationError):
    """Context key: ``category``."""


class UndeclaredObjectError(ConfigurationError):
    """Context key: ``object_name``."""


class InvalidFluentError(ConfigurationError):
    """Unknown fluent, wrong arity or incompatible argument categories. Context key: ``fluent``."""


class ContradictoryLiteralsError(ConfigurationError):
    """A fluent and its contrary in one literal set. Context key: ``fluent``."""


# ==================== Defects ====================


class InvariantViolationError(PlannerException):
    """
    Internal invariant violated; a defect, never a user error.

    Raised for inconsistent or partial states and for actions applied without
    their preconditions. The context holds ``step``, ``state`` and ``action``
    so the solve can be reproduced.
    """

    def __init__(
        self,
        message: str,
        step: Optional[int] = None,
        state: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, step=step, state=state, action=action, **kwargs)


# ==================== Helpers ====================


def wrap_exception(
    exc: Exception, planner_exception_class: type, message: str, **context
) -> PlannerException:
    """
    Wrap a generic exception into a planner-specific exception.

    Args:
        exc: Original exception
        planner_exception_class: Target exception class (e.g. ConfigurationError)
        message: Custom error message
        **context: Additional context information

    Returns:
        Planner exception chained to the original exception

    Example:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise wrap_exception(e, ConfigurationError, "Invalid domain file", path=path)
    """
    return planner_exception_class(
        message=message, context=context, original_exception=exc
    )


def get_user_friendly_message(exc: Exception, include_details: bool = False) -> str:
    """
    Build a user-facing error message from an exception.

    Args:
        exc: Exception object
        include_details: Whether to append technical details (debug mode)

    Returns:
        Human-readable error message
    """
    if isinstance(exc, UndeclaredObjectError):
        message = "The domain description references an undeclared object."
    elif isinstance(exc, UndeclaredCategoryError):
        message = "The domain description references an undeclared category."
    elif isinstance(exc, ContradictoryLiteralsError):
        message = "A fluent and its negation are both declared true."
    elif isinstance(exc, InvalidFluentError):
        message = "A literal cannot be expressed in this domain."
    elif isinstance(exc, ConfigurationError):
        message = "The domain description is invalid."
    elif isinstance(exc, InvariantViolationError):
        message = "Internal planner error. The solve was halted."
    else:
        message = "An unexpected error occurred."

    if include_details:
        message += f"\n\nDetails: {exc}"

    return message
