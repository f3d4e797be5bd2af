"""
Endpoint Pool

Round-robin rotation over interchangeable REST endpoints, spreading load
across providers and giving each batch endpoint diversity.
"""
import logging
from threading import Lock
from typing import Iterable, List

from hub_pipeline.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class EndpointPool:
    """Hands out base URLs in strict cyclic order."""

    def __init__(self, endpoints: Iterable[str]):
        self.endpoints: List[str] = [e.rstrip('/') for e in endpoints if e and e.strip()]
        if not self.endpoints:
            raise ConfigurationError("Endpoint pool needs at least one endpoint")

        self.cursor = 0
        self._lock = Lock()
        logger.debug(f"Endpoint pool: {len(self.endpoints)} endpoints (round-robin)")

    def next(self) -> str:
        """Return the endpoint under the cursor and advance it."""
        with self._lock:
            endpoint = self.endpoints[self.cursor]
            self.cursor = (self.cursor + 1) % len(self.endpoints)
        return endpoint

    def __repr__(self) -> str:
        return f"EndpointPool({len(self.endpoints)} endpoints, cursor={self.cursor})"
