from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from trainwatch.config.settings import LoopConfig, settings
from trainwatch.core.errors import ConnectivityLost, RemoteReportedFailure
from trainwatch.core.events import DownloadSnapshot, JobHandle, ProgressSnapshot
from trainwatch.core.logging import logger
from trainwatch.core.machine import UnifiedStatus, resolve
from trainwatch.core.polling import CancelToken, PollingLoop
from trainwatch.core.state import DecodePolicy, RemoteStatus, StatusKind
from trainwatch.schemas.models import CheckpointList

Publish = Callable[[UnifiedStatus, str | None], None]


@dataclass(eq=False)
class MonitorSession:
    handle: JobHandle
    primary: PollingLoop
    secondary: PollingLoop
    primary_token: CancelToken = field(default_factory=CancelToken)
    secondary_token: CancelToken = field(default_factory=CancelToken)
    tasks: dict[str, asyncio.Task] = field(default_factory=dict)
    progress: ProgressSnapshot | None = None
    download: DownloadSnapshot | None = None
    cancelled: bool = False

    @property
    def job_id(self) -> str:
        return self.handle.job_id

    @property
    def consecutive_failures(self) -> int:
        return self.primary.breaker.consecutive_failures


class JobMonitor:
    """
    Dueño único del estado de cada sesión: dos bucles (progreso y descarga) por job,
    y todo cambio de estado pasa por aquí, dentro del mismo event loop.
    - El bucle de progreso manda: completed/failed o un error fatal cierran la sesión.
    - El bucle de descarga es informativo: sus fallos sólo limpian el snapshot de descarga.
    """

    def __init__(
        self,
        backend,
        publish: Publish,
        *,
        progress_cfg: LoopConfig | None = None,
        download_cfg: LoopConfig | None = None,
        threshold: int | None = None,
        decode_policy: DecodePolicy | None = None,
    ):
        self.backend = backend
        self._publish = publish
        self.progress_cfg = progress_cfg or settings.progress_loop()
        self.download_cfg = download_cfg or settings.download_loop()
        self.threshold = threshold if threshold is not None else settings.FAILURE_THRESHOLD
        self.decode_policy = DecodePolicy(decode_policy or settings.DECODE_ERROR_POLICY)
        self.checkpoints: CheckpointList | None = None

    # ====== ciclo de vida de una sesión ======
    def open(self, handle: JobHandle) -> MonitorSession:
        session = MonitorSession(
            handle=handle,
            primary=PollingLoop(
                "progress",
                self.progress_cfg,
                threshold=self.threshold,
                decode_policy=self.decode_policy,
                is_terminal=lambda snap: snap.is_terminal,
            ),
            secondary=PollingLoop(
                "download",
                self.download_cfg,
                threshold=self.threshold,
                decode_policy=self.decode_policy,
            ),
        )
        job_id = handle.job_id
        session.tasks["progress"] = asyncio.create_task(
            session.primary.run(
                lambda attempt: attempt.guard(self.backend.get_progress(job_id)),
                lambda snap: self._on_progress(session, snap),
                lambda err: self._on_progress_terminal(session, err),
                session.primary_token,
            ),
            name=f"trainwatch-progress-{job_id}",
        )
        session.tasks["download"] = asyncio.create_task(
            session.secondary.run(
                lambda attempt: attempt.guard(self.backend.get_download(job_id)),
                lambda snap: self._on_download(session, snap),
                lambda err: self._on_download_terminal(session, err),
                session.secondary_token,
            ),
            name=f"trainwatch-download-{job_id}",
        )
        logger.info("monitor open job=%s", job_id)
        self._emit(session)
        return session

    async def close(self, session: MonitorSession) -> None:
        """Marca la sesión como cancelada, corta ambos bucles y espera a que salgan."""
        session.cancelled = True
        session.primary_token.cancel()
        session.secondary_token.cancel()
        await self._join(session, "progress", "download")
        logger.info("monitor closed job=%s", session.job_id)

    # ====== bucle primario ======
    def _on_progress(self, session: MonitorSession, snap: ProgressSnapshot) -> None:
        if session.cancelled:
            return
        session.progress = snap
        if snap.is_terminal:
            # el cierre publica el estado final
            return
        self._emit(session)

    async def _on_progress_terminal(self, session: MonitorSession, err: Exception | None) -> None:
        if session.cancelled:
            return
        # la descarga nunca sobrevive al job
        session.secondary_token.cancel()
        await self._join(session, "download")
        session.download = None

        if err is None:
            snap = session.progress
            if snap is not None and snap.status is RemoteStatus.COMPLETED:
                logger.info("job completed job=%s", session.job_id)
                await self._refresh_checkpoints()
            elif snap is not None and snap.status is RemoteStatus.FAILED:
                failure = RemoteReportedFailure(snap.error_message or "training failed")
                logger.error("job failed job=%s err=%s", session.job_id, failure)
            status = resolve(session.progress, None)
        elif isinstance(err, ConnectivityLost):
            status = UnifiedStatus.of(StatusKind.CONNECTIVITY_LOST, str(err))
        else:
            status = UnifiedStatus.of(StatusKind.FAILED, str(err) or type(err).__name__)

        self._finish(session, status)

    # ====== bucle secundario ======
    def _on_download(self, session: MonitorSession, snap: DownloadSnapshot) -> None:
        if session.cancelled:
            return
        if not snap.is_active:
            if session.download is None:
                return
            logger.info("model download finished job=%s", session.job_id)
            session.download = None
        else:
            session.download = snap
        self._emit(session)

    async def _on_download_terminal(self, session: MonitorSession, err: Exception | None) -> None:
        if session.cancelled:
            return
        logger.warning(
            "download monitor ended job=%s err=%r (progress keeps running)", session.job_id, err
        )
        if session.download is not None:
            session.download = None
            self._emit(session)

    # ====== helpers ======
    def _emit(self, session: MonitorSession) -> None:
        if session.cancelled:
            return
        self._publish(resolve(session.progress, session.download), None)

    def _finish(self, session: MonitorSession, status: UnifiedStatus) -> None:
        if session.cancelled:
            return
        session.cancelled = True
        session.primary_token.cancel()
        session.secondary_token.cancel()
        logger.info("monitor finished job=%s status=%s", session.job_id, status)
        self._publish(status, status.error)

    async def _refresh_checkpoints(self) -> None:
        try:
            self.checkpoints = await self.backend.list_checkpoints()
            logger.info("checkpoints refreshed count=%d", len(self.checkpoints.models))
        except Exception as e:
            logger.warning("checkpoint refresh failed err=%r", e)

    async def _join(self, session: MonitorSession, *names: str) -> None:
        current = asyncio.current_task()
        pending = []
        for name in names:
            task = session.tasks.get(name)
            if task is None or task is current or task.done():
                continue
            task.cancel()
            pending.append(task)
        if not pending:
            return
        # return_exceptions: los CancelledError de los bucles no deben subir
        results = await asyncio.gather(*pending, return_exceptions=True)
        for res in results:
            if isinstance(res, Exception):
                logger.error("loop crashed job=%s err=%r", session.job_id, res)
