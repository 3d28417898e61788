"""HTTP plumbing shared by every upstream source client."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import requests
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": "paperlens/0.1",
}

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

_BODY_EXCERPT_LIMIT = 200


def build_session() -> requests.Session:
    """Session carrying the default headers, for sharing across clients."""

    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    return session


class ClientError(Exception):
    """Base exception for upstream HTTP failures."""


class NotFoundError(ClientError):
    """HTTP 404 from the upstream."""


class RateLimitedError(ClientError):
    """HTTP 429 that persisted through retries."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejectedError(ClientError):
    """Any other 4xx response."""

    def __init__(self, status: int, message: str, body_excerpt: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt


class UpstreamError(ClientError):
    """5xx responses, timeouts and transport failures after retries."""


class _RetryableResponse(Exception):
    def __init__(self, response: requests.Response):
        super().__init__(f"Retryable status {response.status_code}")
        self.response = response


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    if value.isdigit():
        return float(value)
    try:
        retry_time = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_time.tzinfo is None:
        retry_time = retry_time.replace(tzinfo=timezone.utc)
    return max((retry_time - datetime.now(timezone.utc)).total_seconds(), 0.0)


_fallback_wait = wait_exponential(multiplier=0.5, min=0.5, max=8)


def _retry_wait(retry_state: RetryCallState) -> float:
    """Honor ``Retry-After`` when the upstream sends one, else back off exponentially."""

    outcome = retry_state.outcome
    if outcome is not None and outcome.failed:
        exception = outcome.exception()
        if isinstance(exception, _RetryableResponse):
            delay = _parse_retry_after(exception.response.headers.get("Retry-After"))
            if delay is not None:
                return min(delay, 30.0)
    return _fallback_wait(retry_state)


def _body_excerpt(response: requests.Response) -> Optional[str]:
    try:
        body = response.text
    except (UnicodeDecodeError, requests.RequestException):
        return None
    if not body:
        return None
    return " ".join(body.split())[:_BODY_EXCERPT_LIMIT]


class BaseHttpClient:
    """Session, retry and status mapping for a single upstream service.

    Subclasses set ``BASE_URL`` and call :meth:`_request` with a path relative
    to it. ``timeout`` bounds every attempt; a request that times out on all
    attempts surfaces as :class:`UpstreamError`.
    """

    BASE_URL = ""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 20.0,
        max_attempts: int = 3,
    ) -> None:
        if session is None:
            session = build_session()
        else:
            for key, value in DEFAULT_HEADERS.items():
                session.headers.setdefault(key, value)
        self.session = session
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        @retry(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=_retry_wait,
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout, _RetryableResponse)),
        )
        def attempt() -> requests.Response:
            kwargs.setdefault("timeout", self.timeout)
            response = self.session.request(method, url, **kwargs)
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise _RetryableResponse(response)
            return response

        return attempt()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        try:
            response = self._send(method, url, params=params, headers=headers, **kwargs)
        except _RetryableResponse as exc:
            response = exc.response
        except requests.Timeout as exc:
            raise UpstreamError(f"Request to {url} timed out") from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"Request to {url} failed: {exc}") from exc
        return self._handle_response(response)

    def _handle_response(self, response: requests.Response) -> requests.Response:
        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Resource not found: {response.url}")
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError("Rate limit exceeded", retry_after=retry_after)
        if status >= 500:
            excerpt = _body_excerpt(response)
            detail = f": {excerpt}" if excerpt else ""
            raise UpstreamError(f"Upstream service error{detail} ({status})")
        if status >= 400:
            excerpt = _body_excerpt(response)
            detail = f": {excerpt}" if excerpt else ""
            raise RequestRejectedError(
                status, f"Client request rejected{detail} ({status})", body_excerpt=excerpt
            )
        return response


__all__ = [
    "BaseHttpClient",
    "build_session",
    "ClientError",
    "NotFoundError",
    "RateLimitedError",
    "RequestRejectedError",
    "UpstreamError",
]
