# Backend falso con guiones por endpoint para ejercitar monitor y ciclo de vida
import asyncio
import time

import pytest

from trainwatch.config.settings import LoopConfig
from trainwatch.core.events import DownloadSnapshot, ProgressSnapshot
from trainwatch.core.lifecycle import LifecycleController
from trainwatch.schemas.models import Checkpoint, CheckpointList, TrainingStartResponse

HANG = object()  # la llamada se queda colgada más allá de cualquier timeout

FAST = LoopConfig(interval=0.005, timeout=0.05)


def running(fraction=0.1, **kw):
    return ProgressSnapshot(status="running", fraction_complete=fraction, **kw)


class FakeBackend:
    """
    Cada endpoint consume su guion en orden; el último elemento se repite.
    Un elemento puede ser un valor, una excepción (se lanza), HANG o un callable(job_id).
    """

    def __init__(self, progress=None, download=None, checkpoints=None, stop=None, start=None):
        self.scripts = {
            "progress": list(progress or [running()]),
            "download": list(download or [DownloadSnapshot()]),
        }
        self.checkpoints = checkpoints or CheckpointList(models=[Checkpoint(name="ckpt-final")])
        self.stop_result = stop if stop is not None else {"ok": True}
        self.start_result = start or TrainingStartResponse(job_id="job-new", status="pending")
        self.calls = {"progress": 0, "download": 0, "stop": 0, "checkpoints": 0, "start": 0}
        self.stopped: list[str] = []
        self.inflight = 0  # llamadas HANG todavía vivas

    async def _play(self, item, job_id):
        if callable(item) and not isinstance(item, type):
            item = item(job_id)
        if item is HANG:
            self.inflight += 1
            try:
                await asyncio.sleep(5)
            finally:
                self.inflight -= 1
            raise AssertionError("hung call should have been abandoned")
        if isinstance(item, BaseException):
            raise item
        await asyncio.sleep(0)
        return item

    async def _next(self, kind, job_id):
        self.calls[kind] += 1
        script = self.scripts[kind]
        item = script.pop(0) if len(script) > 1 else script[0]
        return await self._play(item, job_id)

    async def get_progress(self, job_id):
        return await self._next("progress", job_id)

    async def get_download(self, job_id):
        return await self._next("download", job_id)

    async def stop_job(self, job_id):
        self.calls["stop"] += 1
        self.stopped.append(job_id)
        return await self._play(self.stop_result, job_id)

    async def list_checkpoints(self):
        self.calls["checkpoints"] += 1
        return await self._play(self.checkpoints, None)

    async def start_training(self, request):
        self.calls["start"] += 1
        return await self._play(self.start_result, None)


async def wait_until(pred, timeout=2.0):
    t0 = time.monotonic()
    while not pred():
        if time.monotonic() - t0 > timeout:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.002)


@pytest.fixture
def make_controller():
    """Controlador con bucles rápidos; devuelve (controller, statuses publicados)."""

    def _make(backend, **kw):
        kw.setdefault("progress_cfg", FAST)
        kw.setdefault("download_cfg", FAST)
        kw.setdefault("threshold", 10)
        kw.setdefault("stop_timeout", 0.1)
        ctl = LifecycleController(backend, **kw)
        seen = []
        ctl.subscribe(seen.append)
        return ctl, seen

    return _make
