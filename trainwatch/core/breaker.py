class CircuitBreaker:
    """
    Cuenta fallos transitorios consecutivos.
    record_failure() devuelve True una sola vez: en la llamada que alcanza el umbral.
    """

    def __init__(self, threshold: int = 10):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self.consecutive_failures = 0

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self) -> bool:
        self.consecutive_failures += 1
        return self.consecutive_failures == self.threshold

    def __repr__(self) -> str:
        return f"CircuitBreaker({self.consecutive_failures}/{self.threshold})"
