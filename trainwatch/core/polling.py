from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from trainwatch.config.settings import LoopConfig
from trainwatch.core.breaker import CircuitBreaker
from trainwatch.core.errors import (
    ConnectivityLost,
    DecodeError,
    PollTimeout,
    TrainwatchError,
    TransientNetworkError,
)
from trainwatch.core.logging import logger
from trainwatch.core.race import race
from trainwatch.core.state import DecodePolicy


class CancelToken:
    """Señal de cancelación cooperativa; los bucles la consultan en cada checkpoint."""

    def __init__(self):
        self._evt = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._evt.is_set()

    def cancel(self) -> None:
        self._evt.set()

    async def sleep(self, seconds: float) -> bool:
        """Duerme `seconds` o hasta que se cancele. Devuelve True si fue cancelado."""
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._evt.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return False
        return True

    async def guard(self, aw: Awaitable[Any]) -> Any:
        """
        Espera `aw` mientras el token siga vivo. Si se cancela antes, corta `aw`
        y sale con CancelledError: el intento deja de consumir red en cuanto se le avisa.
        """
        inner = asyncio.ensure_future(aw)
        if self.cancelled:
            inner.cancel()
            raise asyncio.CancelledError()
        waiter = asyncio.ensure_future(self._evt.wait())
        try:
            await asyncio.wait({inner, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            inner.cancel()
            raise
        finally:
            waiter.cancel()
        if inner.done():
            return inner.result()
        inner.cancel()
        raise asyncio.CancelledError()


class Outcome(str, Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify(exc: BaseException, policy: DecodePolicy = DecodePolicy.TRANSIENT) -> Outcome:
    if isinstance(exc, (PollTimeout, TransientNetworkError)):
        return Outcome.TRANSIENT
    if isinstance(exc, DecodeError):
        return Outcome.TRANSIENT if policy is DecodePolicy.TRANSIENT else Outcome.FATAL
    return Outcome.FATAL


# cada intento recibe su propio token: se cancela cuando el intento pierde contra el deadline
PollOnce = Callable[[CancelToken], Awaitable[Any]]
OnSnapshot = Callable[[Any], None]
# None = el snapshot representa un estado remoto terminal; si no, el error que cortó el bucle
OnTerminal = Callable[[Exception | None], Awaitable[None]]


class PollingLoop:
    def __init__(
        self,
        name: str,
        config: LoopConfig,
        *,
        threshold: int = 10,
        decode_policy: DecodePolicy = DecodePolicy.TRANSIENT,
        is_terminal: Callable[[Any], bool] | None = None,
    ):
        self.name = name
        self.config = config
        self.breaker = CircuitBreaker(threshold)
        self.decode_policy = decode_policy
        self.is_terminal = is_terminal or (lambda _snap: False)
        self.polls = 0

    async def run(
        self,
        poll_once: PollOnce,
        on_snapshot: OnSnapshot,
        on_terminal: OnTerminal,
        token: CancelToken,
    ) -> None:
        while not token.cancelled:
            self.polls += 1
            attempt = CancelToken()
            try:
                snap = await race(
                    lambda: poll_once(attempt), self.config.timeout, on_abandon=attempt.cancel
                )
            except Exception as e:
                if token.cancelled:
                    break
                if classify(e, self.decode_policy) is Outcome.TRANSIENT:
                    if self.breaker.record_failure():
                        logger.error(
                            "poll/%s breaker tripped failures=%d err=%r",
                            self.name,
                            self.breaker.consecutive_failures,
                            e,
                        )
                        await on_terminal(ConnectivityLost(self.breaker.consecutive_failures))
                        return
                    logger.warning(
                        "poll/%s transient failure=%d/%d err=%r",
                        self.name,
                        self.breaker.consecutive_failures,
                        self.breaker.threshold,
                        e,
                    )
                else:
                    # traceback sólo para lo inesperado (bugs, no errores del protocolo)
                    logger.error(
                        "poll/%s fatal err=%r",
                        self.name,
                        e,
                        exc_info=not isinstance(e, TrainwatchError),
                    )
                    await on_terminal(e)
                    return
            else:
                if token.cancelled:
                    break
                self.breaker.record_success()
                on_snapshot(snap)
                if self.is_terminal(snap):
                    logger.info("poll/%s reached terminal remote state", self.name)
                    await on_terminal(None)
                    return

            if await token.sleep(self.config.interval):
                break

        logger.debug("poll/%s cancelled after %d polls", self.name, self.polls)
