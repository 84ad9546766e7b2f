from __future__ import annotations

from typing import Callable, TypeVar

from result import Err, Ok, Result

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


def attempt(
    func: Callable[[], T], /, *, ErrorType: type[E] | tuple[type[E], ...] = Exception
) -> Result[T, E]:
    """Calls func, catching errors of type E as an 'Err'."""
    try:
        return Ok(func())
    except ErrorType as error:
        return Err(error)
