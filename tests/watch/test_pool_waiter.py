"""Tests for the pool waiter."""

import asyncio

import pytest

from sniper.config.settings import MintWaitConfig
from sniper.core.errors import AbortedError, PoolTimeoutError
from sniper.core.types import AmmKind, PoolInfo
from sniper.watch.pool_waiter import PoolWaiter, wait_for_pool

MINT = "Mint1111111111111111111111111111111111111111"


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MockProbe:
    """Returns None until the configured attempt, then a pool."""

    def __init__(self, found_on: int | None = None, fail_on: set[int] | None = None):
        self.found_on = found_on
        self.fail_on = fail_on or set()
        self.calls = 0

    async def __call__(self) -> PoolInfo | None:
        self.calls += 1
        if self.calls in self.fail_on:
            raise ConnectionError("rpc unavailable")
        if self.found_on is not None and self.calls >= self.found_on:
            return PoolInfo(amm=AmmKind.PUMP, pool_address="Pool111", token_mint=MINT)
        return None


class TestPoolWaiter:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def waiter(self, clock):
        return PoolWaiter(
            MintWaitConfig(max_wait_sec=10, poll_ms=600),
            now_fn=clock,
            sleep_fn=clock.sleep,
        )

    @pytest.mark.asyncio
    async def test_returns_immediately_when_pool_exists(self, waiter, clock):
        probe = MockProbe(found_on=1)

        info = await waiter.wait_for_pool(MINT, probe)

        assert info.amm == AmmKind.PUMP
        assert probe.calls == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_polls_at_interval_until_found(self, waiter, clock):
        probe = MockProbe(found_on=4)

        info = await waiter.wait_for_pool(MINT, probe)

        assert info.pool_address == "Pool111"
        assert probe.calls == 4
        assert clock.sleeps == [pytest.approx(0.6)] * 3

    @pytest.mark.asyncio
    async def test_times_out(self, waiter, clock):
        probe = MockProbe()

        with pytest.raises(PoolTimeoutError) as exc_info:
            await waiter.wait_for_pool(MINT, probe, max_wait=3.0, poll_interval=1.0)

        assert exc_info.value.mint == MINT
        assert exc_info.value.attempts == 3
        assert probe.calls == 3
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_probe_errors_count_as_no_pool(self, waiter, clock):
        probe = MockProbe(found_on=3, fail_on={1, 2})

        info = await waiter.wait_for_pool(MINT, probe)

        assert info is not None
        assert probe.calls == 3
        assert clock.now == pytest.approx(1.2)

    @pytest.mark.asyncio
    async def test_probe_errors_do_not_reset_deadline(self, waiter):
        probe = MockProbe(fail_on=set(range(1, 100)))

        with pytest.raises(PoolTimeoutError):
            await waiter.wait_for_pool(MINT, probe, max_wait=2.0, poll_interval=0.5)

        assert probe.calls == 4

    @pytest.mark.asyncio
    async def test_each_call_has_its_own_deadline(self, waiter, clock):
        with pytest.raises(PoolTimeoutError):
            await waiter.wait_for_pool(
                MINT, MockProbe(), max_wait=1.0, poll_interval=0.5
            )

        info = await waiter.wait_for_pool(
            MINT, MockProbe(found_on=2), max_wait=1.0, poll_interval=0.5
        )
        assert info is not None

    @pytest.mark.asyncio
    async def test_zero_deadline_still_probes_once(self, waiter, clock):
        probe = MockProbe(found_on=1)

        info = await waiter.wait_for_pool(MINT, probe, max_wait=0)

        assert info is not None
        assert probe.calls == 1

    @pytest.mark.asyncio
    async def test_zero_deadline_times_out_after_first_probe(self, waiter, clock):
        probe = MockProbe()

        with pytest.raises(PoolTimeoutError) as exc_info:
            await waiter.wait_for_pool(MINT, probe, max_wait=0, poll_interval=1.0)

        assert probe.calls == 1
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_should_stop_cancels_wait(self, waiter, clock):
        probe = MockProbe()

        with pytest.raises(AbortedError):
            await waiter.wait_for_pool(
                MINT, probe, should_stop=lambda: probe.calls >= 2
            )

        assert probe.calls == 2
        assert clock.now == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_stop_requested_during_sleep(self, clock):
        stop = False

        async def sleep_then_stop(seconds: float) -> None:
            nonlocal stop
            await clock.sleep(seconds)
            stop = True

        waiter = PoolWaiter(
            MintWaitConfig(max_wait_sec=10, poll_ms=600),
            now_fn=clock,
            sleep_fn=sleep_then_stop,
        )
        probe = MockProbe()

        with pytest.raises(AbortedError):
            await waiter.wait_for_pool(MINT, probe, should_stop=lambda: stop)

        assert probe.calls == 1


@pytest.mark.asyncio
async def test_in_flight_probe_is_bounded_by_deadline():
    """A hung probe cannot extend the wait past max_wait."""

    async def hung_probe():
        await asyncio.sleep(10)
        return None

    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(PoolTimeoutError):
        await wait_for_pool(MINT, hung_probe, max_wait=0.05, poll_interval=0.01)

    assert loop.time() - started < 1.0
