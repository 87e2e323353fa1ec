# circuit_breaker.py

import time

from config import CIRCUIT_FAILURE_THRESHOLD, CIRCUIT_RESET_SECONDS, CIRCUIT_SLOW_CALL_MS


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold=CIRCUIT_FAILURE_THRESHOLD,
        slow_call_ms=CIRCUIT_SLOW_CALL_MS,
        reset_seconds=CIRCUIT_RESET_SECONDS,
    ):
        self.failure_threshold = failure_threshold
        self.slow_call_ms = slow_call_ms
        self.reset_seconds = reset_seconds
        self.state = "CLOSED"
        self.failure_count = 0
        self.last_failure_time = None

    def record(self, latency_ms, ok=True):
        if not ok or latency_ms > self.slow_call_ms:
            self.failure_count += 1
            self.last_failure_time = time.time()
        else:
            # Successful call
            if self.state == "HALF_OPEN":
                self.state = "CLOSED"
            self.failure_count = 0

        if self.failure_count >= self.failure_threshold:
            self.state = "OPEN"

    def allow(self):
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_seconds:
                self.state = "HALF_OPEN"
                return True
            return False
        return True


llm_breaker = CircuitBreaker()
