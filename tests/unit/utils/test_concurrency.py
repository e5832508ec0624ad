"""Regression tests for the provider-call timeout and cancellation helpers."""

from __future__ import annotations

import asyncio
import gc
import warnings

import pytest

from prompt_refinery.utils.concurrency import CancellationToken, run_with_timeout


async def _slow(value: int = 1, delay: float = 0.01) -> int:
    await asyncio.sleep(delay)
    return value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_with_timeout_returns_value_before_deadline() -> None:
    assert await run_with_timeout(_slow(7), 1.0) == 7


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_with_timeout_raises_timeout_error() -> None:
    with pytest.raises(TimeoutError):
        await run_with_timeout(_slow(delay=0.5), 0.01)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pre_cancelled_token_closes_coroutine_without_warning() -> None:
    token = CancellationToken()
    token.cancel()

    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        coro = _slow()
        with pytest.raises(asyncio.CancelledError):
            await run_with_timeout(coro, 1.0, token)
        del coro
        gc.collect()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_token_cancellation_aborts_inflight_call() -> None:
    token = CancellationToken()
    started = asyncio.Event()
    finished: list[bool] = []

    async def _long_call() -> int:
        started.set()
        try:
            await asyncio.sleep(5)
        finally:
            finished.append(True)
        return 1

    async def _cancel_soon() -> None:
        await started.wait()
        token.cancel()

    canceller = asyncio.create_task(_cancel_soon())
    with pytest.raises(asyncio.CancelledError):
        await run_with_timeout(_long_call(), 5.0, token)
    await canceller

    assert finished == [True]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_positive_timeout_is_rejected() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        with pytest.raises(ValueError, match="timeout_seconds"):
            await run_with_timeout(_slow(), 0)
        gc.collect()


@pytest.mark.unit
def test_raise_if_cancelled_only_after_cancel() -> None:
    async def _scenario() -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(asyncio.CancelledError):
            token.raise_if_cancelled()

    asyncio.run(_scenario())
