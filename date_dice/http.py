"""HTTP client with retry/backoff and a per-session request budget."""
from __future__ import annotations

import json
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class BudgetExceededError(RuntimeError):
    pass


@dataclass
class RequestMetrics:
    network_requests: int = 0
    failed_requests: int = 0
    retries: int = 0

    def inc_network(self) -> None:
        self.network_requests += 1

    def inc_failure(self) -> None:
        self.failed_requests += 1

    def inc_retry(self) -> None:
        self.retries += 1


class RequestBudget:
    """Caps Places requests for one session.

    Searches run in worker threads, so consumption is guarded by a lock.
    """

    def __init__(self, max_requests: int) -> None:
        self.max_requests = max_requests
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def consume(self) -> None:
        with self._lock:
            if self._count >= self.max_requests:
                raise BudgetExceededError(
                    f"Places request budget exceeded: {self._count} >= {self.max_requests}"
                )
            self._count += 1


class HttpClient:
    def __init__(
        self,
        api_key: str,
        timeout: int = 20,
        retry_max: int = 5,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics
        self.session = requests.Session()

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        field_mask: str,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)

        payload = json.dumps(body)
        for attempt in range(1, self.retry_max + 1):
            if self.metrics is not None:
                self.metrics.inc_network()
            try:
                resp = self.session.post(url, data=payload, headers=headers, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.warning("Request to %s failed (attempt %s): %s", url, attempt, exc)
                if attempt >= self.retry_max:
                    self._record_failure()
                    raise
                self._record_retry()
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    self._record_failure()
                    raise

            if status in RETRYABLE_STATUSES:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    self._record_failure()
                    resp.raise_for_status()
                self._record_retry()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            self._record_failure()
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _record_failure(self) -> None:
        if self.metrics is not None:
            self.metrics.inc_failure()

    def _record_retry(self) -> None:
        if self.metrics is not None:
            self.metrics.inc_retry()

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
