"""Result values for best-effort side effects."""
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the error that prevented producing one."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        return self.value if self.ok and self.value is not None else default

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Outcome[T]":
        return cls(error=error)


def best_effort(
    label: str,
    func: Callable[..., T],
    *args: Any,
    expected: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> Outcome[T]:
    """Run ``func`` and turn an expected failure into a logged ``Outcome``."""
    try:
        return Outcome.success(func(*args, **kwargs))
    except expected as exc:
        logger.warning("%s failed: %s", label, exc)
        return Outcome.failure(exc)
