from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from catalog_pipeline.core.config import settings

from .errors import (
    ProviderClientError,
    ProviderNotFound,
    ProviderRateLimited,
    ProviderRequestError,
    ProviderResponseError,
    ProviderServerError,
)

Json = dict[str, Any]


def _status_error(status_code: int, message: str) -> ProviderRequestError:
    if status_code == 404:
        return ProviderNotFound(message, status_code=status_code)
    if status_code == 429:
        return ProviderRateLimited(message, status_code=status_code)
    if status_code >= 500:
        return ProviderServerError(message, status_code=status_code)
    return ProviderClientError(message, status_code=status_code)


@dataclass
class BaseHttpClient:
    """
    Provider-agnostic HTTP client wrapper.

    - Uses a single underlying httpx.Client for connection pooling.
    - Maps non-2xx statuses onto the provider error hierarchy (404 / 429 / 5xx / other).
    - `path` may also be an absolute URL (pagination `next` links).
    """

    base_url: str
    timeout_s: float = field(default_factory=lambda: settings.http_timeout_s)
    connect_timeout_s: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)
    verify: ssl.SSLContext | bool = True

    transport: httpx.BaseTransport | None = None

    def __post_init__(self) -> None:
        self._client = httpx.Client(
            base_url=self.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self.timeout_s, connect=self.connect_timeout_s),
            headers=dict(self.headers),
            verify=self.verify,
            transport=self.transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> BaseHttpClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request_json_value(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        Perform an HTTP request and return the parsed JSON body (any JSON type).
        Raises a ProviderRequestError subclass on transport issues / non-2xx.
        """
        try:
            resp = self._client.request(
                method=method,
                url=path.lstrip("/"),
                params=params,
                headers=headers,
            )
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise ProviderRequestError(str(e)) from e

        if resp.is_error:
            raise _status_error(
                resp.status_code, f"HTTP {resp.status_code} for {method} {resp.request.url}"
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderResponseError("Response was not valid JSON.") from e

    def get_json_value(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return self.request_json_value("GET", path, params=params, headers=headers)

    def get_json(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Json:
        data = self.get_json_value(path, params=params, headers=headers)
        if not isinstance(data, dict):
            raise ProviderResponseError(f"Expected JSON object, got {type(data)}")
        return data
