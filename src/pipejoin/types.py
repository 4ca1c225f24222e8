"""Shared type aliases."""

import functools
from typing import Any, Awaitable, Callable, TypeVar, Union

T = TypeVar("T")

AsyncValue = Awaitable[T]
MaybeAsync = Union[T, Awaitable[T]]
Stage = Callable[[Any], MaybeAsync[Any]]


def callable_name(fn: Callable[..., Any]) -> str:
    """Readable name for a stage or operation, used in logs and failures."""
    if isinstance(fn, functools.partial):
        return f"partial({callable_name(fn.func)})"
    name = getattr(fn, "__name__", None) or getattr(fn, "__qualname__", None)
    if name:
        return name
    return type(fn).__name__
