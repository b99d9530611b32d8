from __future__ import annotations

from dataclasses import dataclass


class ProviderError(RuntimeError):
    """Base exception for provider-related failures."""


class ProviderRequestError(ProviderError):
    """HTTP/network/transport layer failures (timeouts, connection errors, non-2xx, etc.)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimited(ProviderRequestError):
    """Provider throttled the request (HTTP 429)."""


class ProviderNotFound(ProviderRequestError):
    """HTTP 404: the resource (or the requested page) does not exist upstream."""


class ProviderServerError(ProviderRequestError):
    """HTTP 5xx: transient upstream failure, worth retrying on a later run."""


class ProviderClientError(ProviderRequestError):
    """Any other non-2xx status; not expected to succeed on retry."""


class ProviderResponseError(ProviderError):
    """Provider returned a 2xx response with an unusable body."""


@dataclass(frozen=True)
class ProviderMappingError(ProviderError):
    """Mapping/extraction failed due to unexpected schema or values."""

    message: str
    context: dict[str, object] | None = None

    def __str__(self) -> str:  # pragma: no cover
        if not self.context:
            return self.message
        return f"{self.message} | context={self.context}"
