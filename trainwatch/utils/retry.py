from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Callable

from trainwatch.core.errors import TransientNetworkError


def retry(
    source_type: str,
    tries: int = 3,
    base_delay: float = 0.5,
    jitter: bool = True,
    retry_on: tuple[type[BaseException], ...] = (TransientNetworkError,),
):
    """
    Decorador de reintentos con backoff exponencial para llamadas async puntuales.
    - source_type: etiqueta para logs.
    - tries: intentos totales (incluye el primero).
    - retry_on: sólo estas excepciones se reintentan; el resto se propaga al momento.
    Los bucles de polling NO lo usan: su política de reintento es el circuit breaker.
    """

    def _wrap(fn: Callable):
        @functools.wraps(fn)
        async def _arun(*args, **kwargs):
            from trainwatch.core.logging import logger

            delay = base_delay
            attempts = max(1, tries)
            for i in range(1, attempts + 1):
                try:
                    return await fn(*args, **kwargs)
                except retry_on as e:
                    if i >= attempts:
                        logger.error("retry/%s exhausted after %d tries: %r", source_type, i, e)
                        raise
                    sleep = delay + (random.uniform(0, delay) if jitter else 0.0)
                    logger.warning(
                        "retry/%s attempt=%d err=%r sleep=%.2fs", source_type, i, e, sleep
                    )
                    await asyncio.sleep(sleep)
                    delay *= 2

        return _arun

    return _wrap
