"""Tagged success/failure values for collaborator calls that must not raise.

Callers branch with ``is_ok(result)`` or ``isinstance(result, Err)``.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a human-readable reason."""
    reason: str
    detail: Optional[Any] = None


Result = Union[Ok[T], Err]


def is_ok(result: "Result") -> bool:
    return isinstance(result, Ok)