from __future__ import annotations


class TrainwatchError(RuntimeError):
    """Raíz de los errores del cliente de monitorización."""


class TransientNetworkError(TrainwatchError):
    """Fallo de red o 5xx/429: se reintenta en el siguiente ciclo."""


class PollTimeout(TrainwatchError, TimeoutError):
    """El intento no terminó antes del deadline del race."""

    def __init__(self, deadline: float):
        super().__init__(f"poll timed out after {deadline:.2f}s")
        self.deadline = deadline


class DecodeError(TrainwatchError):
    """Payload malformado (JSON inválido o campos que no validan)."""


class RemoteRequestError(TrainwatchError):
    """El servidor rechazó la petición (4xx no reintentable)."""

    def __init__(self, status_code: int, detail: str | None = None):
        super().__init__(f"server error ({status_code}): {detail or 'unknown error'}")
        self.status_code = status_code
        self.detail = detail


class RemoteReportedFailure(TrainwatchError):
    """El servidor informa explícitamente que el job falló."""


class ConnectivityLost(TrainwatchError):
    def __init__(self, failures: int):
        # sólo se detiene la monitorización local; el job remoto puede seguir corriendo
        super().__init__(
            f"lost connection to training server after {failures} consecutive failures "
            "(monitoring stopped; the remote job may still be running)"
        )
        self.failures = failures
