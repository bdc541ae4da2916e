import logging
import random
import time
import uuid
from typing import Any, Callable, Dict, Optional, TypeVar

import requests

from .errors import MalformedResponseError

T = TypeVar('T')

# 413/422 are retried with a nonce so the vendor does not replay a cached rejection
NONCE_STATUS = (413, 422)
RETRYABLE_STATUS = NONCE_STATUS + (429,)


def _status(error: requests.exceptions.HTTPError) -> int:
    return error.response.status_code if error.response is not None else 0


class RetryPolicy:
    """
    Transport-level retries for a single AI call.

    Timeouts, connection errors, 5xx, 413/422/429 and malformed payloads are
    retried after a jittered delay. Anything else, or any failure on the last
    of ``max_retries`` attempts, is raised to the caller unchanged.
    """

    def __init__(
        self,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.max_retries = max(1, max_retries)
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _delay() -> float:
        return random.uniform(0.5, 3.5)

    def _retry_reason(self, error: Exception) -> Optional[str]:
        if isinstance(error, MalformedResponseError):
            return "malformed response"
        if isinstance(error, requests.exceptions.HTTPError):
            status = _status(error)
            return f"HTTP {status}" if status >= 500 or status in RETRYABLE_STATUS else None
        if isinstance(error, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
            return type(error).__name__
        return None

    def execute_with_retry(self, fn: Callable[[], T], payload: Dict[str, Any]) -> T:
        model = payload.get('model', 'unknown')
        attempt = 0

        while True:
            try:
                result = fn()
            except (MalformedResponseError, requests.exceptions.RequestException) as e:
                reason = self._retry_reason(e)
                attempt += 1
                if reason is None or attempt >= self.max_retries:
                    raise

                if isinstance(e, requests.exceptions.HTTPError) and _status(e) in NONCE_STATUS:
                    self._inject_nonce(payload, attempt - 1)

                delay = self._delay()
                self.logger.debug(
                    "%s on attempt %d/%d, retrying in %.1fs (model=%s)",
                    reason, attempt, self.max_retries, delay, model
                )
                self._sleep(delay)
                continue

            if attempt:
                self.logger.debug("Request succeeded after %d retries (model=%s)", attempt, model)
            return result

    @staticmethod
    def _inject_nonce(payload: Dict[str, Any], attempt: int) -> None:
        marker = f"\n<!-- retry_{attempt}_id: {uuid.uuid4().hex[:16]} -->"

        for message in reversed(payload.get('messages', [])):
            if message.get('role') != 'user':
                continue

            content = message.get('content', '')
            if isinstance(content, str):
                message['content'] = content + marker
            else:
                message['content'] = [
                    {**part, 'text': part.get('text', '') + marker} if part.get('type') == 'text' else part
                    for part in content
                ]
            return
