from __future__ import annotations

import asyncio
from collections.abc import Callable

from trainwatch.config.settings import LoopConfig, settings
from trainwatch.core.events import JobHandle
from trainwatch.core.logging import logger
from trainwatch.core.machine import IDLE, STOPPED, SUBMITTING, UnifiedStatus
from trainwatch.core.monitor import JobMonitor, MonitorSession
from trainwatch.core.state import DecodePolicy, StatusKind
from trainwatch.schemas.models import CheckpointList, TrainingStartRequest

Listener = Callable[[UnifiedStatus], None]


class LifecycleController:
    """
    Superficie para la UI: start(job_id), stop(), submit(request) y el estado observable.
    Garantiza como mucho una sesión viva; start/stop se serializan y son idempotentes.
    """

    def __init__(
        self,
        backend,
        *,
        progress_cfg: LoopConfig | None = None,
        download_cfg: LoopConfig | None = None,
        threshold: int | None = None,
        decode_policy: DecodePolicy | None = None,
        stop_timeout: float | None = None,
    ):
        self.backend = backend
        self.monitor = JobMonitor(
            backend,
            self._publish,
            progress_cfg=progress_cfg,
            download_cfg=download_cfg,
            threshold=threshold,
            decode_policy=decode_policy,
        )
        self.stop_timeout = stop_timeout if stop_timeout is not None else settings.STOP_TIMEOUT
        self.status: UnifiedStatus = IDLE
        self.last_error: str | None = None
        self._session: MonitorSession | None = None
        self._listeners: list[Listener] = []
        self._lock = asyncio.Lock()

    # ====== observable ======
    @property
    def session(self) -> MonitorSession | None:
        return self._session

    @property
    def job_id(self) -> str | None:
        return self._session.job_id if self._session else None

    @property
    def checkpoints(self) -> CheckpointList | None:
        return self.monitor.checkpoints

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, status: UnifiedStatus, error: str | None = None) -> None:
        if error is not None:
            self.last_error = error
        if status == self.status:
            return
        self.status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error("status listener failed err=%r", e, exc_info=True)

    # ====== comandos ======
    async def start(self, job_id: str) -> MonitorSession:
        async with self._lock:
            current = self._session
            if current is not None and not current.cancelled and current.job_id == job_id:
                return current
            await self._teardown_locked()
            return self._open_locked(JobHandle(job_id=job_id))

    async def stop(self) -> None:
        async with self._lock:
            session = self._session
            if session is None or session.cancelled:
                # nada vivo: ya se paró o llegó a un estado terminal
                return
            await self._teardown_locked()
            self._publish(STOPPED)
            await self._remote_stop(session.job_id)

    async def submit(self, request: TrainingStartRequest) -> str:
        """Lanza un entrenamiento nuevo y empieza a monitorizarlo (supersede la sesión previa)."""
        async with self._lock:
            await self._teardown_locked()
            self.last_error = None
            self._publish(SUBMITTING)
            try:
                resp = await self.backend.start_training(request)
            except Exception as e:
                logger.error("submit failed model=%s err=%r", request.model_id, e)
                self._publish(UnifiedStatus.of(StatusKind.FAILED, str(e)), str(e))
                raise
            logger.info("submitted job=%s model=%s", resp.job_id, request.model_id)
            self._open_locked(JobHandle(job_id=resp.job_id))
            return resp.job_id

    # ====== internos (siempre con el lock tomado) ======
    def _open_locked(self, handle: JobHandle) -> MonitorSession:
        self.last_error = None
        self._session = self.monitor.open(handle)
        return self._session

    async def _teardown_locked(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        if not session.cancelled:
            logger.info("superseding/stopping session job=%s", session.job_id)
        # aun si ya terminó, esperamos a que sus tareas salgan del todo
        await self.monitor.close(session)

    async def _remote_stop(self, job_id: str) -> None:
        # best-effort: se registra y nunca se propaga
        try:
            resp = await asyncio.wait_for(self.backend.stop_job(job_id), timeout=self.stop_timeout)
            logger.info("remote stop job=%s resp=%r", job_id, resp)
        except asyncio.TimeoutError:
            logger.warning("remote stop timed out job=%s after %.1fs", job_id, self.stop_timeout)
        except Exception as e:
            logger.warning("remote stop failed job=%s err=%r", job_id, e)
