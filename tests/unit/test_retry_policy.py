from unittest.mock import AsyncMock

import pytest

from databricks.statement.exc import RequestError, TransportError
from databricks.statement.retry import RetryPolicy


class TestRetryPolicy:
    @pytest.fixture
    def policy(self, recording_sleep):
        return RetryPolicy(sleep=recording_sleep)

    def test_delays_grow_exponentially(self, policy):
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_negative_retry_budget_is_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)

    @pytest.mark.asyncio
    async def test_returns_first_success(self, policy, recording_sleep):
        operation = AsyncMock(return_value="ok")

        assert await policy.run("op", operation) == "ok"
        assert operation.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self, policy, recording_sleep):
        operation = AsyncMock(
            side_effect=[TransportError("reset"), TransportError("reset"), "ok"]
        )

        assert await policy.run("op", operation) == "ok"
        assert operation.await_count == 3
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, policy, recording_sleep, caplog):
        operation = AsyncMock(side_effect=TransportError("down"))

        with pytest.raises(TransportError) as excinfo:
            await policy.run("Execute query", operation)

        assert operation.await_count == 4
        assert recording_sleep.delays == [2.0, 4.0, 8.0]
        assert excinfo.value.context["attempt"] == "4/4"
        assert "Operation 'Execute query' failed after 4 attempts" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [RequestError("bad request"), ValueError("bad"), KeyError("x")]
    )
    async def test_other_errors_are_not_retried(self, policy, recording_sleep, error):
        operation = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await policy.run("op", operation)

        assert operation.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_zero_retries(self, recording_sleep):
        policy = RetryPolicy(max_retries=0, sleep=recording_sleep)
        operation = AsyncMock(side_effect=TransportError("down"))

        with pytest.raises(TransportError):
            await policy.run("op", operation)

        assert operation.await_count == 1
