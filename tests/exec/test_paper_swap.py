"""Tests for the paper swap executor."""

import pytest

from sniper.exec.paper import PaperSwapExecutor, VirtualPosition

MINT = "PaperMint111"


class MockPrices:
    def __init__(self, price: float):
        self.price = price

    async def __call__(self, mint: str) -> float:
        return self.price


class TestVirtualPosition:
    def test_add_and_reduce(self):
        position = VirtualPosition(MINT, avg_cost_sol=1.0, qty_base=10)
        position.add(cost_sol=30.0, qty_base=10)

        assert position.qty_base == 20
        assert position.avg_cost_sol == pytest.approx(2.0)
        assert position.reduce(5) == pytest.approx(10.0)
        assert position.qty_base == 15

    def test_reduce_caps_at_holding(self):
        position = VirtualPosition(MINT, avg_cost_sol=1.0, qty_base=3)
        assert position.reduce(10) == pytest.approx(3.0)
        assert position.qty_base == 0


class TestPaperSwapExecutor:
    @pytest.fixture
    def prices(self):
        return MockPrices(0.001)

    @pytest.fixture
    def executor(self, prices):
        return PaperSwapExecutor(
            prices, slippage_bps=100, fee_bps=0, token_decimals=6, now_fn=lambda: 0.0
        )

    @pytest.mark.asyncio
    async def test_buy_applies_slippage(self, executor):
        result = await executor.execute_buy(MINT, 1.0)

        assert result.backend == "paper"
        assert result.price == pytest.approx(0.00101)
        assert result.token_amount == pytest.approx(1.0 / 0.00101 * 1e6)
        assert await executor.balance(MINT) == pytest.approx(result.token_amount)

    @pytest.mark.asyncio
    async def test_sell_closes_position(self, executor, prices):
        bought = await executor.execute_buy(MINT, 1.0)
        prices.price = 0.002

        sold = await executor.execute_sell(MINT, bought.token_amount)

        assert sold.sol_received == pytest.approx(
            bought.token_amount / 1e6 * 0.002 * 0.99
        )
        assert executor.get_position(MINT) is None
        assert await executor.balance(MINT) == 0.0
        assert len(executor.get_trade_history()) == 2

    @pytest.mark.asyncio
    async def test_sell_without_position(self, executor):
        with pytest.raises(ValueError, match="No position"):
            await executor.execute_sell(MINT, 100)

    @pytest.mark.asyncio
    async def test_fee_reduces_tokens(self, prices):
        executor = PaperSwapExecutor(prices, slippage_bps=0, fee_bps=50)
        result = await executor.execute_buy(MINT, 1.0)
        assert result.token_amount == pytest.approx(0.995 / 0.001 * 1e6)

    @pytest.mark.asyncio
    async def test_tx_ids_are_unique(self, executor):
        first = await executor.execute_buy(MINT, 0.1)
        second = await executor.execute_buy(MINT, 0.1)
        assert first.tx_id != second.tx_id
