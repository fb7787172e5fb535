from enum import Enum


class RemoteStatus(str, Enum):
    """Estado del job tal como lo reporta el servidor."""

    PENDING = "pending"
    LOADING_MODEL = "loading_model"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StatusKind(str, Enum):
    IDLE              = "idle"
    SUBMITTING        = "submitting"
    DOWNLOADING_MODEL = "downloading_model"
    LOADING_MODEL     = "loading_model"
    TRAINING          = "training"
    COMPLETED         = "completed"
    FAILED            = "failed"
    STOPPED           = "stopped"
    CONNECTIVITY_LOST = "connectivity_lost"


TERMINAL_KINDS = frozenset(
    {StatusKind.COMPLETED, StatusKind.FAILED, StatusKind.STOPPED, StatusKind.CONNECTIVITY_LOST}
)


class DecodePolicy(str, Enum):
    """Qué hacer con un payload malformado: contarlo para el breaker o cortar."""

    TRANSIENT = "transient"
    FATAL     = "fatal"
