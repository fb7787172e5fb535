from __future__ import annotations

import asyncio
import time

import pytest

from trainwatch.core.errors import RemoteRequestError, TransientNetworkError
from trainwatch.utils.retry import retry


def test_retry_async_succeeds_after_failures():
    calls = {"n": 0}

    @retry("unit-async", tries=3, base_delay=0.01, jitter=False)
    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise TransientNetworkError("boom")
        return 42

    t0 = time.time()
    assert asyncio.run(flaky()) == 42
    assert calls["n"] == 3
    assert time.time() - t0 >= 0.01 + 0.02  # dos esperas


def test_retry_exhausted_reraises_last_error():
    calls = {"n": 0}

    @retry("unit-exhaust", tries=2, base_delay=0.001, jitter=False)
    async def always():
        calls["n"] += 1
        raise TransientNetworkError(f"fail {calls['n']}")

    with pytest.raises(TransientNetworkError, match="fail 2"):
        asyncio.run(always())
    assert calls["n"] == 2


def test_retry_does_not_retry_fatal_errors():
    calls = {"n": 0}

    @retry("unit-fatal", tries=5, base_delay=0.001)
    async def rejected():
        calls["n"] += 1
        raise RemoteRequestError(400, "bad request")

    with pytest.raises(RemoteRequestError):
        asyncio.run(rejected())
    assert calls["n"] == 1
