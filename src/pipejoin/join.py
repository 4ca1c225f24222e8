"""Concurrent join that keeps results in input order."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import JoinFailure, OperationFailure
from .logging_config import get_logger, short_repr, trace_limit
from .types import MaybeAsync, Stage, callable_name

logger = get_logger(__name__)


def join(items: Iterable[MaybeAsync[Any]]) -> "asyncio.Future[Tuple[Any, ...]]":
    """Run every awaitable in ``items`` concurrently and collect a tuple.

    Awaitables are scheduled on the running loop as soon as ``join`` is
    called; plain values are taken as already resolved. The returned future
    resolves once every element has settled. Element ``i`` of the result is
    the value of ``items[i]`` whatever order the operations finished in.

    If any element fails, the future fails with ``JoinFailure`` for the
    failed element with the lowest index. Siblings are never cancelled; their
    outcomes are collected and discarded.
    """
    values = list(items)

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        for value in values:
            if inspect.iscoroutine(value):
                value.close()
        raise

    pending: Dict[int, "asyncio.Future[Any]"] = {}
    for index, value in enumerate(values):
        if inspect.isawaitable(value):
            pending[index] = asyncio.ensure_future(value)

    logger.debug(
        f"Joining {len(values)} element(s), {len(pending)} pending",
        extra={"extra_fields": {"size": len(values), "pending": len(pending)}},
    )
    return loop.create_task(_settle(values, pending))


async def _settle(
    values: List[Any], pending: Dict[int, "asyncio.Future[Any]"]
) -> Tuple[Any, ...]:
    if pending:
        await asyncio.wait(pending.values())

    results = list(values)
    failure: Optional[OperationFailure] = None

    # pending was filled in index order, so the first error seen is the lowest index
    for index, future in pending.items():
        if future.cancelled():
            error: Optional[BaseException] = asyncio.CancelledError()
        else:
            error = future.exception()

        if error is None:
            results[index] = future.result()
        elif failure is None:
            failure = OperationFailure(
                f"Join element {index} failed: {error!r}", cause=error, index=index
            )
        else:
            logger.debug(
                f"Discarding failure of join element {index}",
                extra={
                    "extra_fields": {"index": index, "error_type": type(error).__name__}
                },
            )

    if failure is not None:
        raise JoinFailure(
            f"Join failed at element {failure.index} of {len(values)}: {failure.cause!r}",
            failure=failure,
            size=len(values),
        ) from failure.cause

    joined = tuple(results)
    limit = trace_limit(logger)
    if limit is not None:
        logger.debug(
            f"Joined {short_repr(joined, limit)}",
            extra={"extra_fields": {"size": len(joined)}},
        )
    return joined


async def _invoke(operation: Callable[[Any], MaybeAsync[Any]], value: Any) -> Any:
    result = operation(value)
    if inspect.isawaitable(result):
        result = await result
    return result


def fan_out(*operations: Callable[[Any], MaybeAsync[Any]], keep_input: bool = True) -> Stage:
    """Build a stage that runs ``operations`` on its input concurrently.

    The stage resolves to a tuple: the input itself first (unless
    ``keep_input`` is false), then one result per operation in argument order.
    Pair it with ``spread`` downstream to pick the positions a later stage
    needs.
    """
    if not operations:
        raise ValueError("fan_out requires at least one operation.")
    for operation in operations:
        if not callable(operation):
            raise TypeError(f"fan_out operation is not callable: {operation!r}")

    def stage(value: Any) -> Awaitable[Tuple[Any, ...]]:
        # Synchronous raises surface as a failure at the operation's position
        launched = [_invoke(operation, value) for operation in operations]
        return join([value, *launched] if keep_input else launched)

    stage.__name__ = f"fan_out({', '.join(callable_name(op) for op in operations)})"
    stage.__qualname__ = stage.__name__
    return stage
