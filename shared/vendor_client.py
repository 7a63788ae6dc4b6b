"""
Resilient HTTP executor shared by every vendor adapter.

This module is the single place where outbound vendor calls are retried. Adapters prepare a
request (method, URL, headers, JSON body) and hand it to `execute_with_retry`, which issues up to
`max_retries + 1` attempts through a `requests.Session`. The error taxonomy is deliberately
small so adapters can reason about outcomes without re-implementing resilience:

- A transport failure (connection refused, timeout) or a 5xx response is retryable. The executor
  backs off for `min(cap, base * 2**attempt)` seconds and tries again.
- Any other received response, including every 4xx, is returned immediately so the adapter can
  interpret it (a 404 means different things to read and delete).
- When retries are exhausted the most recent failure is raised as `VendorTransientError`.
- The caller's `CancellationToken` is checked before every attempt and the backoff wait is a wait
  on that token, so a deadline or abort stops the loop promptly with `CancelledError`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from monitoring.metrics import VENDOR_RETRY_COUNT
from shared.cancellation import CancellationToken
from shared.errors import CancelledError, VendorPermanentError, VendorTransientError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_S = 0.1
DEFAULT_MAX_DELAY_S = 5.0
DEFAULT_ATTEMPT_TIMEOUT_S = 30.0
MAX_ERROR_BODY_CHARS = 500


def backoff_delay(
    attempt: int,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
    max_delay_s: float = DEFAULT_MAX_DELAY_S,
) -> float:
    """
    Return the wait after 0-indexed `attempt`: `min(max_delay_s, base_delay_s * 2**attempt)`.

    The schedule is monotonically non-decreasing and capped, e.g. with the defaults:
    0.1, 0.2, 0.4, 0.8, 1.6, 3.2, 5.0, 5.0, ...
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Compare exponents first so very large attempt numbers never overflow a float.
    if attempt >= 64:
        return max_delay_s
    return min(max_delay_s, base_delay_s * (2 ** attempt))


def _truncate(body: str) -> str:
    if len(body) > MAX_ERROR_BODY_CHARS:
        return body[:MAX_ERROR_BODY_CHARS] + "... (truncated)"
    return body


def execute_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    token: CancellationToken,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
    max_delay_s: float = DEFAULT_MAX_DELAY_S,
    attempt_timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S,
    **request_kwargs: Any,
) -> requests.Response:
    """
    Execute one vendor request with retry, exponential backoff and cancellation.

    Args:
        session (requests.Session): Session used for every attempt.
        method (str): HTTP method, e.g. "GET" or "POST".
        url (str): Absolute vendor URL.
        token (CancellationToken): Caller's deadline/abort signal. Checked before each attempt,
            used to bound each attempt's transport timeout, and waited on during backoff.
        max_retries (int): Retries after the first attempt; at most `max_retries + 1` requests.
        base_delay_s (float): Backoff base in seconds.
        max_delay_s (float): Backoff cap in seconds.
        attempt_timeout_s (float): Upper bound on a single attempt's transport timeout.
        **request_kwargs: Passed to `session.request` (headers, json, ...).

    Returns:
        requests.Response: The first response whose status is below 500.

    Raises:
        CancelledError: The token fired before an attempt or during a backoff wait.
        VendorTransientError: Every attempt failed at the transport level or returned 5xx.
        VendorPermanentError: The request could not be sent at all (malformed URL and similar).
    """
    last_error: Optional[requests.RequestException] = None
    last_response: Optional[requests.Response] = None
    total_attempts = max_retries + 1

    for attempt in range(total_attempts):
        token.raise_if_cancelled(f"{method} {url} cancelled before attempt {attempt + 1}")

        timeout = attempt_timeout_s
        remaining = token.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        try:
            response = session.request(method, url, timeout=timeout, **request_kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_error, last_response = exc, None
            if token.cancelled:
                raise CancelledError(f"{method} {url} cancelled: {token.reason}") from exc
        except requests.RequestException as exc:
            raise VendorPermanentError(f"Could not send {method} {url}: {exc}") from exc
        else:
            if response.status_code < 500:
                return response
            last_error, last_response = None, response

        if attempt == max_retries:
            break

        delay = backoff_delay(attempt, base_delay_s, max_delay_s)
        if last_error is not None:
            logger.warning(
                f"[execute_with_retry] {method} {url} failed (attempt {attempt + 1}/{total_attempts}): "
                f"{last_error}. Retrying in {delay:.2f}s"
            )
        else:
            logger.warning(
                f"[execute_with_retry] {method} {url} returned status {last_response.status_code} "
                f"(attempt {attempt + 1}/{total_attempts}). Retrying in {delay:.2f}s"
            )
            last_response.close()
        VENDOR_RETRY_COUNT.labels(method=method).inc()

        if token.wait(delay):
            raise CancelledError(f"{method} {url} cancelled during backoff: {token.reason}")

    if last_error is not None:
        raise VendorTransientError(
            f"{method} {url} failed after {max_retries} retries: {last_error}"
        ) from last_error
    raise VendorTransientError(
        f"{method} {url} failed after {max_retries} retries with status "
        f"{last_response.status_code}: {_truncate(last_response.text)}",
        status_code=last_response.status_code,
    )


def validate_response(response: requests.Response) -> None:
    """
    Raise `VendorPermanentError` for any response with status >= 400.

    The response body is included in the message, truncated to a readable length. Statuses
    below 400 pass silently.
    """
    if response.status_code < 400:
        return
    raise VendorPermanentError(
        f"HTTP {response.status_code}: {response.reason} - Response body: {_truncate(response.text)}",
        status_code=response.status_code,
    )


def execute_and_validate(
    session: requests.Session,
    method: str,
    url: str,
    token: CancellationToken,
    **kwargs: Any,
) -> requests.Response:
    """Convenience wrapper: `execute_with_retry` followed by `validate_response`."""
    response = execute_with_retry(session, method, url, token, **kwargs)
    validate_response(response)
    return response
