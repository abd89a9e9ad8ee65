from unittest.mock import AsyncMock, patch

import pytest

from order_service.app.core.exceptions import ConditionalCheckFailedError
from order_service.app.core.setting import OrderSettings
from order_service.app.utils.retry import (
    RetryPolicy,
    retry_with_backoff,
    retry_with_policy,
)


class TestRetryPolicy:
    def test_delay_grows_exponentially(self):
        policy = RetryPolicy(initial_delay_ms=100, backoff_multiplier=2.0)

        assert policy.delay_for(0) == 100
        assert policy.delay_for(1) == 200
        assert policy.delay_for(2) == 400

    def test_delay_is_capped(self):
        policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=300)

        assert policy.delay_for(5) == 300

    def test_from_settings(self):
        settings = OrderSettings(
            RETRY_MAX_RETRIES=5,
            RETRY_INITIAL_DELAY_MS=50,
            RETRY_MAX_DELAY_MS=1000,
            RETRY_BACKOFF_MULTIPLIER=3.0,
        )

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(5, 50, 1000, 3.0)


class TestRetryWithBackoff:
    """Retry semantics; sleeps are patched out."""

    @pytest.fixture(autouse=True)
    def no_sleep(self):
        with patch(
            "order_service.app.utils.retry.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            yield sleep

    @pytest.mark.asyncio
    async def test_always_failing_operation_is_called_max_retries_plus_one(self):
        error = RuntimeError("store unavailable")
        operation = AsyncMock(side_effect=error)

        with pytest.raises(RuntimeError) as exc_info:
            await retry_with_backoff(operation, max_retries=2)

        assert exc_info.value is error
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_succeeds_after_two_failures(self):
        operation = AsyncMock(
            side_effect=[RuntimeError("first"), RuntimeError("second"), "ok"]
        )

        result = await retry_with_backoff(operation, max_retries=2)

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, no_sleep):
        operation = AsyncMock(return_value=42)

        assert await retry_with_backoff(operation) == 42
        assert operation.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sleeps_follow_the_backoff_schedule(self, no_sleep):
        operation = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RuntimeError):
            await retry_with_backoff(
                operation,
                max_retries=3,
                initial_delay_ms=100,
                max_delay_ms=250,
                backoff_multiplier=2.0,
            )

        delays = [call.args[0] for call in no_sleep.await_args_list]
        assert delays == [0.1, 0.2, 0.25]

    @pytest.mark.asyncio
    async def test_non_retryable_errors_are_raised_immediately(self):
        operation = AsyncMock(side_effect=ConditionalCheckFailedError("exists"))

        with pytest.raises(ConditionalCheckFailedError):
            await retry_with_policy(
                operation,
                RetryPolicy(max_retries=3),
                non_retryable=(ConditionalCheckFailedError,),
            )

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_retries_calls_once(self):
        operation = AsyncMock(side_effect=ValueError("bad"))

        with pytest.raises(ValueError):
            await retry_with_policy(operation, RetryPolicy(max_retries=0))

        assert operation.await_count == 1
