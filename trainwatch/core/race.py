from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from trainwatch.core.errors import PollTimeout
from trainwatch.core.logging import logger

T = TypeVar("T")

# Intentos que perdieron contra el deadline y siguen corriendo en segundo plano.
# Guardamos la referencia para que el GC no los recoja antes de terminar.
_ABANDONED: set[asyncio.Task] = set()


def _discard_late(task: asyncio.Task) -> None:
    _ABANDONED.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("race: late attempt failed, discarded err=%r", exc)
    else:
        logger.debug("race: late attempt finished, result discarded")


async def race(
    operation: Callable[[], Awaitable[T]],
    deadline: float,
    *,
    on_abandon: Callable[[], None] | None = None,
) -> T:
    """
    Corre `operation` contra un temporizador de `deadline` segundos.
    - Si la operación gana: devuelve su valor (o propaga su excepción) y el timer se cancela.
    - Si gana el timer: lanza PollTimeout. La operación NO se mata: se le avisa vía
      `on_abandon` y decide ella si parar; si sigue hasta terminar, su resultado se descarta.
    - Si quien espera el race es cancelado, la operación en vuelo se cancela con él.
    """
    task = asyncio.ensure_future(operation())
    try:
        done, _ = await asyncio.wait({task}, timeout=deadline)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    if on_abandon is not None:
        on_abandon()
    _ABANDONED.add(task)
    task.add_done_callback(_discard_late)
    raise PollTimeout(deadline)
