from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoopConfig(BaseModel):
    """Ritmo de un bucle de polling: espera entre intentos y límite por intento."""

    interval: float = Field(gt=0)
    timeout: float = Field(gt=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Servidor de entrenamiento
    API_BASE_URL: str = "http://127.0.0.1:7001"
    API_TIMEOUT: float = Field(default=30.0, gt=0)  # techo por petición HTTP (el race corta antes)

    # Bucle primario (progreso del entrenamiento)
    PROGRESS_INTERVAL: float = Field(default=5.0, gt=0)
    PROGRESS_TIMEOUT: float = Field(default=5.0, gt=0)

    # Bucle secundario (descarga de pesos del modelo)
    DOWNLOAD_INTERVAL: float = Field(default=3.0, gt=0)
    DOWNLOAD_TIMEOUT: float = Field(default=3.0, gt=0)

    # Fallos transitorios consecutivos antes de dar la conexión por perdida
    FAILURE_THRESHOLD: int = Field(default=10, ge=1)

    # "transient": cuenta para el breaker | "fatal": termina la sesión
    DECODE_ERROR_POLICY: Literal["transient", "fatal"] = "transient"

    # Stop remoto best-effort
    STOP_TIMEOUT: float = Field(default=5.0, gt=0)

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Field(default=Path("./logs"))

    def progress_loop(self) -> LoopConfig:
        return LoopConfig(interval=self.PROGRESS_INTERVAL, timeout=self.PROGRESS_TIMEOUT)

    def download_loop(self) -> LoopConfig:
        return LoopConfig(interval=self.DOWNLOAD_INTERVAL, timeout=self.DOWNLOAD_TIMEOUT)


settings = Settings()
