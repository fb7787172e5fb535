from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trainwatch.core.state import RemoteStatus

# Los payloads del servidor usan snake_case; los alias cubren los nombres de la API.


class JobHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str = Field(min_length=1)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProgressSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: RemoteStatus
    stage_label: str | None = Field(default=None, alias="stage")
    fraction_complete: float = Field(default=0.0, alias="progress")
    loss_value: float | None = Field(default=None, alias="loss")
    steps_done: int = Field(default=0, alias="current_step")
    steps_total: int = Field(default=0, alias="total_steps")
    eta_seconds: float | None = None
    error_message: str | None = Field(default=None, alias="error")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("fraction_complete")
    @classmethod
    def _clamp_fraction(cls, v: float) -> float:
        # el servidor no garantiza monotonía ni rango; sólo acotamos
        return min(1.0, max(0.0, v))

    @property
    def is_terminal(self) -> bool:
        return self.status in (RemoteStatus.COMPLETED, RemoteStatus.FAILED)


class DownloadSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_active: bool = Field(default=False, alias="active")
    bytes_done: int | None = Field(default=None, alias="downloaded_bytes")
    bytes_total: int | None = Field(default=None, alias="total_bytes")
    files_done: int | None = Field(default=None, alias="downloaded_files")
    files_total: int | None = Field(default=None, alias="total_files")
    speed_bytes_per_sec: float | None = Field(default=None, alias="speed")
    eta_seconds: float | None = None
