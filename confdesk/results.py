"""
Uniform success/failure results returned by every public workflow operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from confdesk.errors import ConferenceError, UpstreamFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: ConferenceError) -> "Result[T]":
        return cls(success=False, error=exc.message, code=exc.code)

    def unwrap(self) -> T:
        """Return data or raise a ConferenceError rebuilt from the failure."""
        if self.success:
            return self.data
        error = ConferenceError(self.error or "")
        error.code = self.code or ConferenceError.code
        raise error


def returns_result(operation: str) -> Callable[[Callable[..., Any]], Callable[..., Result]]:
    """
    Turn a function that raises ConferenceError into one returning Result.

    Expected failures are logged as warnings; anything else is logged with a
    traceback and reported as an upstream failure.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Result]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Result:
            try:
                return Result.ok(func(*args, **kwargs))
            except ConferenceError as exc:
                logger.warning("%s failed: [%s] %s", operation, exc.code, exc.message)
                return Result.fail(exc)
            except Exception as exc:
                logger.exception("%s failed unexpectedly", operation)
                return Result.fail(UpstreamFailure(str(exc)))

        return wrapper

    return decorator
