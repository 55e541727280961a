"""
Circuit breaker for data service endpoints
"""
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from ..config import config

logger = logging.getLogger(__name__)


@dataclass
class BreakerState:
    """
    Circuit breaker state for a single endpoint.

    States:
    - closed: requests allowed
    - open: endpoint failing, requests blocked
    - half_open: one trial request allowed after the recovery timeout
    """
    failure_rate: float = 0.0
    opened_at: float = 0.0
    state: str = "closed"  # closed | open | half_open
    consecutive_failures: int = 0
    trial_in_flight: bool = False


class CircuitBreaker:
    """
    Tracks endpoint failure rates with an exponential moving average.

    An endpoint whose failure rate crosses ``threshold`` is short-circuited
    until ``timeout`` seconds have passed, then a single success closes it.
    """

    def __init__(self, threshold: Optional[float] = None, timeout: Optional[float] = None):
        self.threshold = config.BREAKER_THRESHOLD if threshold is None else threshold
        self.timeout = config.BREAKER_TIMEOUT if timeout is None else timeout
        self._endpoints: Dict[str, BreakerState] = {}
        self._alpha = 0.2  # EMA smoothing factor

    def state_of(self, endpoint: str) -> str:
        return self._endpoints.get(endpoint, BreakerState()).state

    def is_closed(self, endpoint: str) -> bool:
        """
        True when a request to ``endpoint`` may be attempted.

        While half-open, only the first caller gets the trial request.
        """
        breaker = self._endpoints.get(endpoint)
        if breaker is None:
            return True

        if breaker.state == "open" and (time.monotonic() - breaker.opened_at) > self.timeout:
            breaker.state = "half_open"
            breaker.trial_in_flight = False
            logger.info(f"Circuit {endpoint} half-open (testing recovery)")

        if breaker.state == "half_open":
            if breaker.trial_in_flight:
                return False
            breaker.trial_in_flight = True
            return True

        return breaker.state == "closed"

    def record_success(self, endpoint: str):
        breaker = self._endpoints.setdefault(endpoint, BreakerState())
        breaker.consecutive_failures = 0
        breaker.failure_rate = (1 - self._alpha) * breaker.failure_rate
        breaker.trial_in_flight = False

        if breaker.state == "half_open":
            breaker.state = "closed"
            logger.info(f"Circuit {endpoint} closed (recovered)")

    def record_failure(self, endpoint: str):
        breaker = self._endpoints.setdefault(endpoint, BreakerState())
        breaker.consecutive_failures += 1
        breaker.failure_rate = (1 - self._alpha) * breaker.failure_rate + self._alpha
        breaker.trial_in_flight = False

        # A failed trial request re-opens immediately
        if breaker.state == "half_open" or (
            breaker.failure_rate > self.threshold and breaker.state != "open"
        ):
            breaker.state = "open"
            breaker.opened_at = time.monotonic()
            logger.warning(
                f"Circuit {endpoint} opened (failure rate: {breaker.failure_rate:.2f})"
            )

    def reset(self):
        self._endpoints.clear()


# Global circuit breaker instance
circuit_breaker = CircuitBreaker()
