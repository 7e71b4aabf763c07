"""
Anti-replay nonce bookkeeping.

The authority hands out a fresh ``Replay-Nonce`` on every response, errors
included.  The value seen last is the one the next signed request must carry.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

import requests

logger = logging.getLogger(__name__)

REPLAY_NONCE_HEADER = "Replay-Nonce"


class NonceManager:
    def __init__(self, initial: Optional[str] = None) -> None:
        self._nonce = initial
        self._lock = threading.Lock()

    def current(self) -> Optional[str]:
        with self._lock:
            return self._nonce

    def observe(self, response: requests.Response) -> None:
        """Replace the stored nonce if *response* carries one; otherwise keep it."""
        fresh = response.headers.get(REPLAY_NONCE_HEADER)
        if not fresh:
            logger.debug("No %s header on response from %s", REPLAY_NONCE_HEADER, response.url)
            return
        with self._lock:
            self._nonce = fresh
