"""HTTP client with retries and timeouts for geometry service endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any, Collection

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from suburbs.common.constants import USER_AGENT
from suburbs.common.errors import FetchError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 40.0


@dataclass(frozen=True)
class RetryConfig:
    # Endpoint rotation replaces same-host retries, so one attempt is the default.
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 10.0


class HttpRequestError(FetchError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableHttpError(HttpRequestError):
    error_code = "HTTP_RETRYABLE"


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        retryable_statuses: Collection[int] = RETRYABLE_STATUS_CODES,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.retryable_statuses = frozenset(retryable_statuses)
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in self.retryable_statuses:
            raise RetryableHttpError(f"Retryable HTTP status: {status}", status_code=status)
        if status >= 300:
            raise HttpRequestError(f"HTTP status: {status}", status_code=status)

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> dict[str, Any]:
        req_timeout = timeout or self.timeout

        response = self.session.request(
            method=method,
            url=url,
            params=params,
            data=data,
            headers=self._headers(headers),
            timeout=(req_timeout.connect, req_timeout.read),
        )
        self._raise_for_status_or_retry(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise HttpRequestError(f"Invalid JSON payload from {url}", status_code=response.status_code) from exc

        if not isinstance(payload, dict):
            raise HttpRequestError(f"Unexpected JSON document from {url}", status_code=response.status_code)
        return payload

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> dict[str, Any]:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> dict[str, Any]:
            return self._request_json(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=timeout,
            )

        return _wrapped()

    def post_form_json(
        self,
        url: str,
        *,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> dict[str, Any]:
        merged = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            merged.update(headers)
        return self.request_json(
            "POST",
            url,
            data=data,
            headers=merged,
            timeout=timeout,
        )
