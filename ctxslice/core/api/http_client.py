"""HTTP client for streamed chat completions."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterator

import requests

from ctxslice.core.api.sse import ServerSentEvent, parse_event_stream

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]  # Exponential backoff in seconds
RETRYABLE_STATUS_CODES = {429, 503}


def extract_delta(event: ServerSentEvent) -> str:
    """Text delta carried by a chat-completion chunk, or "" if there is none."""
    try:
        chunk = json.loads(event.data)
        return chunk["choices"][0]["delta"].get("content") or ""
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Ignoring non-delta event: %s", event.data[:200])
        return ""


class StreamHttpError(Exception):
    """Raised when the endpoint answers a stream request with an error status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:200]}")


class StreamingHttpClient:
    """Thin wrapper around requests that yields server-sent events."""

    # (connect_timeout, read_timeout)
    TIMEOUT = (10, 300)

    def __init__(self, api_url: str, headers: dict[str, str]) -> None:
        self._api_url = api_url
        self._headers = headers

    def _get_retry_delay(self, response: requests.Response, attempt: int) -> float:
        """Determine retry delay from Retry-After header or default backoff."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                pass
        return RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]

    def _open(self, payload: dict[str, Any]) -> requests.Response:
        """POST the payload, retrying on 429/503 with backoff."""
        attempt = 0
        while True:
            response = requests.post(
                self._api_url,
                headers=self._headers,
                json=payload,
                timeout=self.TIMEOUT,
                stream=True,
            )
            if response.status_code not in RETRYABLE_STATUS_CODES or attempt == MAX_RETRIES:
                return response

            delay = self._get_retry_delay(response, attempt)
            logger.warning(
                "HTTP %d from %s - retrying in %.1fs (attempt %d/%d)",
                response.status_code,
                self._api_url,
                delay,
                attempt + 1,
                MAX_RETRIES,
            )
            response.close()
            time.sleep(delay)
            attempt += 1

    def stream_events(
        self, payload: dict[str, Any], *, emit_done: bool = False
    ) -> Iterator[ServerSentEvent]:
        """Send ``payload`` and yield the events of the streamed response.

        Raises:
            StreamHttpError: If the final response has a non-2xx status.
            SSEFormatError: If the body is not a valid event stream.
        """
        response = self._open({**payload, "stream": True})
        try:
            if not 200 <= response.status_code < 300:
                raise StreamHttpError(response.status_code, response.text or "")
            yield from parse_event_stream(
                response.iter_lines(decode_unicode=True), emit_done=emit_done
            )
        finally:
            response.close()
