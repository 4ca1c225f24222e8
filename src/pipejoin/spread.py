"""Tuple-unpacking adapter for pipeline stages."""

import inspect
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .logging_config import get_logger

logger = get_logger(__name__)

R = TypeVar("R")


class Absent:
    """Type of the ``ABSENT`` sentinel passed for missing arguments."""

    _instance: Optional["Absent"] = None

    def __new__(cls) -> "Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "Absent":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Absent":
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = Absent()


class _Arity:
    """Positional capacity of a callable, computed once per adapter."""

    def __init__(self, fn: Callable[..., Any]) -> None:
        self.variadic = False
        self.positional: List[inspect.Parameter] = []
        self.required_keywords: List[str] = []

        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            logger.debug(f"No signature for {fn!r}; every element will be passed")
            self.variadic = True
            return

        for param in signature.parameters.values():
            if param.kind is param.VAR_POSITIONAL:
                self.variadic = True
            elif param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
                self.positional.append(param)
            elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
                self.required_keywords.append(param.name)

    def bind(self, values: Sequence[Any]) -> Tuple[List[Any], Dict[str, Any]]:
        if self.variadic:
            args = list(values)
        else:
            args = list(values[: len(self.positional)])
            for param in self.positional[len(args):]:
                # Parameters after the first defaulted one are defaulted too
                if param.default is not param.empty:
                    break
                args.append(ABSENT)

        kwargs = {name: ABSENT for name in self.required_keywords}
        return args, kwargs


def spread(fn: Callable[..., R]) -> Callable[[Sequence[Any]], R]:
    """Adapt ``fn`` to take one tuple and receive its elements as arguments.

    Elements beyond the parameters ``fn`` declares are dropped, so a stage can
    ignore trailing results it has no use for. Required parameters with no
    matching element receive ``ABSENT`` rather than failing the call; ``fn``
    decides whether that is an error. The return value is passed through
    untouched, awaitable or not.

    Can be used as a decorator::

        @spread
        async def store(record, ack):
            ...
    """
    if not callable(fn):
        raise TypeError(f"spread() needs a callable, got {type(fn).__name__}")

    arity = _Arity(fn)

    def adapted(values: Sequence[Any]) -> R:
        if not isinstance(values, (tuple, list)):
            raise TypeError(
                f"{adapted.__name__} expects a tuple or list, got {type(values).__name__}"
            )
        args, kwargs = arity.bind(values)
        return fn(*args, **kwargs)

    adapted.__name__ = f"spread({getattr(fn, '__name__', type(fn).__name__)})"
    adapted.__qualname__ = adapted.__name__
    adapted.__doc__ = fn.__doc__
    return adapted
