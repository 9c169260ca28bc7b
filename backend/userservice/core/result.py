"""Result Type — explicit success/failure values returned across the service boundary.

Invariants:
    - Ok wraps the success value, Err wraps a domain error; neither is raised
    - Both support positional pattern matching: `case Ok(user)` / `case Err(error)`

Design Decisions:
    - Absence ("user not found") is an Err value, not an exception, so
      thrown errors stay reserved for unexpected conditions
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful branch of a Result."""
    __match_args__ = ("value",)

    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed branch of a Result."""
    __match_args__ = ("error",)

    error: E


Result = Union[Ok[T], Err[E]]


def is_ok(result: Result) -> bool:
    return isinstance(result, Ok)


def is_err(result: Result) -> bool:
    return isinstance(result, Err)


__all__ = ["Ok", "Err", "Result", "is_ok", "is_err"]
