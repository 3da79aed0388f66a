"""Unit tests for AllowanceReader and ScanCounters."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from revoke_radar.scanner.allowance import AllowanceReader, ScanCounters
from revoke_radar.scanner.errors import ReadFailure

TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
OWNER = "0x1111111111111111111111111111111111111111"
SPENDER = "0x2222222222222222222222222222222222222222"


def _reader(side_effect=None, return_value: int = 0) -> tuple[AllowanceReader, ScanCounters, MagicMock]:
    rpc = MagicMock()
    rpc.call_allowance = AsyncMock(side_effect=side_effect, return_value=return_value)
    counters = ScanCounters()
    return AllowanceReader(rpc, counters), counters, rpc


class TestAllowanceReader:
    @pytest.mark.asyncio
    async def test_successful_read(self) -> None:
        reader, counters, rpc = _reader(return_value=1234)
        result = await reader.read(TOKEN, OWNER, SPENDER)

        assert result.amount == 1234
        assert result.failed is False
        assert result.error is None
        assert counters.calls == 1
        assert counters.errors == 0
        rpc.call_allowance.assert_awaited_once_with(TOKEN, OWNER, SPENDER)

    @pytest.mark.asyncio
    async def test_read_failure_returns_zero_and_counts_error(self) -> None:
        reader, counters, _ = _reader(side_effect=ReadFailure("execution reverted"))
        result = await reader.read(TOKEN, OWNER, SPENDER)

        assert result.amount == 0
        assert result.failed is True
        assert result.error == "ReadFailure: execution reverted"
        assert counters.calls == 1
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_absorbed(self) -> None:
        reader, counters, _ = _reader(side_effect=KeyError("weird"))
        assert await reader.read_allowance(TOKEN, OWNER, SPENDER) == 0
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_failed_read_is_logged_with_its_error(self) -> None:
        reader, _, _ = _reader(side_effect=ReadFailure("execution reverted"))
        with patch("revoke_radar.scanner.allowance.logger") as mock_logger:
            assert await reader.read_allowance(TOKEN, OWNER, SPENDER) == 0

        mock_logger.debug.assert_called_once_with(
            "Allowance read failed",
            token=TOKEN,
            spender=SPENDER,
            error="ReadFailure: execution reverted",
        )

    @pytest.mark.asyncio
    async def test_successful_read_is_not_logged(self) -> None:
        reader, _, _ = _reader(return_value=7)
        with patch("revoke_radar.scanner.allowance.logger") as mock_logger:
            assert await reader.read_allowance(TOKEN, OWNER, SPENDER) == 7

        mock_logger.debug.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        reader, counters, _ = _reader(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await reader.read(TOKEN, OWNER, SPENDER)
        assert counters.calls == 1
        assert counters.errors == 0

    @pytest.mark.asyncio
    async def test_counters_shared_across_concurrent_reads(self) -> None:
        failures = {3, 7}
        calls = iter(range(10))

        async def fake_call(token: str, owner: str, spender: str) -> int:
            n = next(calls)
            await asyncio.sleep(0)
            if n in failures:
                raise ReadFailure("boom")
            return n

        rpc = MagicMock()
        rpc.call_allowance = fake_call
        counters = ScanCounters()
        reader = AllowanceReader(rpc, counters)

        await asyncio.gather(*(reader.read(TOKEN, OWNER, SPENDER) for _ in range(10)))
        assert counters.calls == 10
        assert counters.errors == 2


class TestScanCounters:
    def test_starts_at_zero(self) -> None:
        counters = ScanCounters()
        assert (counters.calls, counters.errors) == (0, 0)

    def test_record(self) -> None:
        counters = ScanCounters()
        counters.record_call()
        counters.record_call()
        counters.record_error()
        assert (counters.calls, counters.errors) == (2, 1)
