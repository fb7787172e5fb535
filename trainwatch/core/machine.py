from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from trainwatch.core.events import DownloadSnapshot, ProgressSnapshot
from trainwatch.core.state import TERMINAL_KINDS, RemoteStatus, StatusKind


class UnifiedStatus(BaseModel):
    """Estado único que ve la UI. Sólo TRAINING lleva snapshot y sólo los fallos llevan error."""

    model_config = ConfigDict(frozen=True)

    kind: StatusKind
    progress: ProgressSnapshot | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @classmethod
    def of(cls, kind: StatusKind, error: str | None = None) -> UnifiedStatus:
        return cls(kind=kind, error=error)

    def __str__(self) -> str:
        if self.kind is StatusKind.TRAINING and self.progress is not None:
            return f"training({self.progress.fraction_complete:.2f})"
        if self.error:
            return f"{self.kind.value}({self.error})"
        return self.kind.value


IDLE = UnifiedStatus.of(StatusKind.IDLE)
SUBMITTING = UnifiedStatus.of(StatusKind.SUBMITTING)
STOPPED = UnifiedStatus.of(StatusKind.STOPPED)


def resolve(
    progress: ProgressSnapshot | None,
    download: DownloadSnapshot | None,
) -> UnifiedStatus:
    """
    Último snapshot conocido de cada fuente -> estado unificado. Sin efectos secundarios.
    Orden de prioridad:
      1. descarga activa de pesos (tapa todo lo demás)
      2. loading_model
      3. completed / failed (terminales)
      4. cualquier otro estado -> training(progress)
    Sin ningún snapshot de progreso todavía, el job sigue en SUBMITTING.
    """
    if download is not None and download.is_active:
        return UnifiedStatus.of(StatusKind.DOWNLOADING_MODEL)
    if progress is None:
        return SUBMITTING
    if progress.status is RemoteStatus.LOADING_MODEL:
        return UnifiedStatus.of(StatusKind.LOADING_MODEL)
    if progress.status is RemoteStatus.COMPLETED:
        return UnifiedStatus.of(StatusKind.COMPLETED)
    if progress.status is RemoteStatus.FAILED:
        return UnifiedStatus.of(StatusKind.FAILED, progress.error_message or "training failed")
    return UnifiedStatus(kind=StatusKind.TRAINING, progress=progress)
