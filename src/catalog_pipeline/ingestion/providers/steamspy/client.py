from __future__ import annotations

import logging
import ssl
from pathlib import Path
from typing import Any

import certifi

from catalog_pipeline.core.config import settings
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.base.errors import ProviderResponseError

logger = logging.getLogger(__name__)

TOP_100_IN_2_WEEKS = "top100in2weeks"


def build_ssl_context(extra_ca_path: Path | None) -> ssl.SSLContext:
    """Default trust store plus an optional extra CA bundle.

    SteamSpy's chain is not always covered by the default bundle. If the extra
    bundle cannot be loaded we log and keep default trust rather than fail.
    """

    ctx = ssl.create_default_context(cafile=certifi.where())
    if extra_ca_path is None:
        return ctx
    try:
        ctx.load_verify_locations(cafile=str(extra_ca_path))
    except (OSError, ssl.SSLError) as e:
        logger.warning(
            "Failed to load extra CA file at %s; using default trust store (%s)", extra_ca_path, e
        )
    else:
        logger.info("Loaded extra CA for SteamSpy from %s", extra_ca_path)
    return ctx


def make_steamspy_http(extra_ca_path: Path | None = None) -> BaseHttpClient:
    ca_path = extra_ca_path if extra_ca_path is not None else settings.steamspy_extra_ca_path
    return BaseHttpClient(
        base_url=settings.steamspy_base_url,
        headers={"Cache-Control": "no-store"},
        verify=build_ssl_context(ca_path),
    )


class SteamSpyClient:
    def __init__(self, *, http: BaseHttpClient) -> None:
        self.http = http

    def get_ranking(self, request: str = TOP_100_IN_2_WEEKS) -> dict[str, Any]:
        """Flat object keyed by app id, e.g. `{"730": {"appid": 730, ...}}`."""

        value = self.http.get_json_value("/api.php", params={"request": request})
        # SteamSpy answers an empty ranking with `[]` rather than `{}`.
        if isinstance(value, list) and not value:
            return {}
        if not isinstance(value, dict):
            raise ProviderResponseError(f"Expected JSON object, got {type(value)}")
        return value
