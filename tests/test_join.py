"""Tests for the concurrent join combinator."""

import asyncio
import inspect
import itertools
import logging

import pytest

from pipejoin import JoinFailure, OperationFailure, fan_out, join


async def double(x: int) -> int:
    await asyncio.sleep(0)
    return x * 2


async def gated(value, gate: asyncio.Event):
    await gate.wait()
    return value


async def slow_value(value, delay: float):
    await asyncio.sleep(delay)
    return value


async def fail_with(error: Exception, delay: float = 0):
    await asyncio.sleep(delay)
    raise error


class TestJoinOrdering:
    """Results line up with inputs regardless of completion order."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
    async def test_every_completion_order(self, order):
        gates = [asyncio.Event() for _ in range(3)]
        joined = join([gated(f"item-{i}", gates[i]) for i in range(3)])

        for i in order:
            await asyncio.sleep(0)
            gates[i].set()

        assert await joined == ("item-0", "item-1", "item-2")

    @pytest.mark.asyncio
    async def test_plain_values_pass_through(self):
        result = await join([5, double(5), "seed", None])
        assert result == (5, 10, "seed", None)

    @pytest.mark.asyncio
    async def test_result_is_tuple(self):
        result = await join([1, 2])
        assert isinstance(result, tuple)

    @pytest.mark.asyncio
    async def test_empty_join(self):
        assert await join([]) == ()

    @pytest.mark.asyncio
    async def test_accepts_futures_and_generators(self):
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.set_result("ready")

        result = await join(x for x in [future, double(1)])
        assert result == ("ready", 2)

    @pytest.mark.asyncio
    async def test_same_result_every_invocation(self):
        first = await join([5, double(5)])
        second = await join([5, double(5)])
        assert first == second == (5, 10)


class TestJoinConcurrency:
    """Operations start together and are never cancelled."""

    @pytest.mark.asyncio
    async def test_operations_run_concurrently(self):
        events = []

        async def op(name):
            events.append(f"start-{name}")
            await asyncio.sleep(0.01)
            events.append(f"end-{name}")
            return name

        result = await join([op("a"), op("b")])

        assert result == ("a", "b")
        assert events[:2] == ["start-a", "start-b"]

    @pytest.mark.asyncio
    async def test_operations_start_before_join_is_awaited(self):
        started = asyncio.Event()

        async def op():
            started.set()
            return 1

        joined = join([op()])
        await asyncio.sleep(0)

        assert started.is_set()
        assert await joined == (1,)

    @pytest.mark.asyncio
    async def test_siblings_finish_after_failure(self):
        finished = []

        async def slow():
            await asyncio.sleep(0.02)
            finished.append("slow")
            return "slow"

        with pytest.raises(JoinFailure):
            await join([fail_with(ValueError("boom")), slow()])

        assert finished == ["slow"]


class TestJoinFailure:
    """Failures surface deterministically by input position."""

    @pytest.mark.asyncio
    async def test_failing_operation_fails_join(self):
        error = ValueError("boom")

        with pytest.raises(JoinFailure) as exc_info:
            await join(["value", fail_with(error)])

        failure = exc_info.value
        assert failure.cause is error
        assert failure.index == 1
        assert isinstance(failure.failure, OperationFailure)
        assert failure.__cause__ is error
        assert failure.context == {"size": 2}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value_delay, failure_delay",
        [(0.02, 0), (0, 0.02)],
        ids=["value-settles-after-failure", "value-settles-before-failure"],
    )
    async def test_failure_regardless_of_value_timing(self, value_delay, failure_delay):
        error = ValueError("boom")

        with pytest.raises(JoinFailure) as exc_info:
            await join([slow_value("value", value_delay), fail_with(error, failure_delay)])

        assert exc_info.value.cause is error
        assert exc_info.value.index == 1

    @pytest.mark.asyncio
    async def test_lowest_index_wins_over_earliest_failure(self):
        first = KeyError("first")
        second = RuntimeError("second")

        # Element 1 fails immediately, element 0 fails later
        with pytest.raises(JoinFailure) as exc_info:
            await join([fail_with(first, delay=0.02), fail_with(second)])

        assert exc_info.value.cause is first
        assert exc_info.value.index == 0

    @pytest.mark.asyncio
    async def test_cancelled_element_counts_as_failure(self):
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        joined = join([1, future])
        future.cancel()

        with pytest.raises(JoinFailure) as exc_info:
            await joined

        assert isinstance(exc_info.value.cause, asyncio.CancelledError)

    @pytest.mark.asyncio
    async def test_unloadable_config_leaves_join_intact(self, broken_config, caplog):
        with caplog.at_level(logging.DEBUG, logger="pipejoin"):
            assert await join([5, double(5)]) == (5, 10)

            with pytest.raises(JoinFailure):
                await join([5, fail_with(ValueError("boom"))])

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "Value tracing disabled" in warnings[0].getMessage()

    def test_requires_running_loop(self):
        pending = double(1)

        with pytest.raises(RuntimeError):
            join([pending])

        assert inspect.getcoroutinestate(pending) == inspect.CORO_CLOSED


class TestFanOut:
    """fan_out keeps the stage input next to concurrent results."""

    @pytest.mark.asyncio
    async def test_keeps_input_first(self):
        stored = []

        async def store(record):
            stored.append(record)
            return "ack"

        stage = fan_out(store, double)
        assert await stage(21) == (21, "ack", 42)
        assert stored == [21]

    @pytest.mark.asyncio
    async def test_without_input(self):
        stage = fan_out(double, lambda x: x + 1, keep_input=False)
        assert await stage(3) == (6, 4)

    @pytest.mark.asyncio
    async def test_sync_raise_maps_to_position(self):
        def explode(_):
            raise ValueError("sync")

        stage = fan_out(double, explode)

        with pytest.raises(JoinFailure) as exc_info:
            await stage(1)

        assert exc_info.value.index == 2
        assert isinstance(exc_info.value.cause, ValueError)

    def test_name_lists_operations(self):
        stage = fan_out(double)
        assert stage.__name__ == "fan_out(double)"

    def test_requires_operations(self):
        with pytest.raises(ValueError):
            fan_out()

        with pytest.raises(TypeError):
            fan_out("not callable")
