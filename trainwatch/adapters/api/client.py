from __future__ import annotations

import json
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from trainwatch.config.settings import settings
from trainwatch.core.errors import DecodeError, RemoteRequestError, TransientNetworkError
from trainwatch.core.events import DownloadSnapshot, ProgressSnapshot
from trainwatch.core.logging import logger
from trainwatch.schemas.models import CheckpointList, TrainingStartRequest, TrainingStartResponse
from trainwatch.utils.retry import retry

M = TypeVar("M", bound=BaseModel)

# 5xx y rate limit se consideran pasajeros; el resto de 4xx no se reintenta
_RETRYABLE_STATUS = {408, 425, 429}


class TrainingBackend(Protocol):
    """Lo que el monitor necesita del servidor. Se inyecta; no hay cliente global."""

    async def get_progress(self, job_id: str) -> ProgressSnapshot: ...

    async def get_download(self, job_id: str) -> DownloadSnapshot: ...

    async def stop_job(self, job_id: str) -> Any: ...

    async def list_checkpoints(self) -> CheckpointList: ...

    async def start_training(self, request: TrainingStartRequest) -> TrainingStartResponse: ...


class TrainingApiClient:
    """
    Cliente HTTP mínimo del servidor de entrenamiento.
    Traduce fallos de transporte/HTTP/decodificación a la taxonomía de trainwatch.core.errors.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> TrainingApiClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ====== núcleo ======
    async def _request(self, method: str, path: str, *, json_body: Any = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=json_body)
        except httpx.DecodingError as e:
            # cuerpo con content-encoding roto (gzip/brotli corrupto)
            raise DecodeError(f"{method} {path}: undecodable body ({e})") from e
        except httpx.RequestError as e:
            # timeouts, errores de conexión, redirecciones en bucle
            raise TransientNetworkError(f"{method} {path}: {e!r}") from e

        if resp.status_code >= 500 or resp.status_code in _RETRYABLE_STATUS:
            raise TransientNetworkError(f"{method} {path}: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise RemoteRequestError(resp.status_code, resp.text or None)

        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"{method} {path}: invalid JSON ({e})") from e

    async def _fetch(
        self, path: str, model: type[M], *, method: str = "GET", json_body: Any = None
    ) -> M:
        data = await self._request(method, path, json_body=json_body)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.debug("decode failed path=%s payload=%r", path, data)
            raise DecodeError(f"{path}: {e.error_count()} invalid field(s)") from e

    # ====== endpoints ======
    async def get_progress(self, job_id: str) -> ProgressSnapshot:
        return await self._fetch(f"/training/jobs/{job_id}/progress", ProgressSnapshot)

    async def get_download(self, job_id: str) -> DownloadSnapshot:
        return await self._fetch(f"/training/jobs/{job_id}/download", DownloadSnapshot)

    @retry("stop-job", tries=2, base_delay=0.2)
    async def stop_job(self, job_id: str) -> Any:
        return await self._request("POST", f"/training/jobs/{job_id}/stop")

    @retry("checkpoints", tries=3, base_delay=0.5)
    async def list_checkpoints(self) -> CheckpointList:
        return await self._fetch("/training/finetune/checkpoints", CheckpointList)

    async def start_training(self, request: TrainingStartRequest) -> TrainingStartResponse:
        # POST no idempotente: sin reintentos
        return await self._fetch(
            "/training/start",
            TrainingStartResponse,
            method="POST",
            json_body=request.model_dump(),
        )
