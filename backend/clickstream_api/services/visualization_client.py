"""Visualization provider client.

WHAT:
    Async HTTP client for the BI/visualization backend that owns dashboards,
    datasets and embed URLs. Three calls cover every attribution request:
    - PREVIEW:                 POST /dashboards/preview
    - PUBLISH, new dashboard:  POST /dashboards
    - PUBLISH, existing one:   POST /dashboards/{dashboardId}/visuals

WHY:
    Keeps provider specifics (URLs, auth header, retries) out of the
    reporting service, which only deals in dataset/visual definitions.
    Tests swap the provider for an in-memory fake or an httpx.MockTransport.

REFERENCES:
    - clickstream_api/services/reporting_service.py (only consumer)
    - clickstream_api/deps.py (VISUALIZATION_API_URL / _KEY / _TIMEOUT_SECONDS)
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, Protocol

import httpx

from ..attribution.errors import VisualizationProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 3
DEFAULT_RETRY_AFTER_SECONDS = 1.0
MAX_RETRY_AFTER_SECONDS = 60.0


def parse_retry_after(value: Optional[str]) -> float:
    """Seconds to wait from a Retry-After header (delay-seconds or HTTP-date).

    Missing or unparseable values fall back to DEFAULT_RETRY_AFTER_SECONDS.
    The result is clamped to [0, MAX_RETRY_AFTER_SECONDS].
    """
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        seconds = float(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return DEFAULT_RETRY_AFTER_SECONDS
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        seconds = (retry_at - datetime.now(timezone.utc)).total_seconds()
    if math.isnan(seconds):
        return DEFAULT_RETRY_AFTER_SECONDS
    return min(max(seconds, 0.0), MAX_RETRY_AFTER_SECONDS)


class VisualizationProvider(Protocol):
    """Anything able to turn a dashboard payload into provider resources."""

    async def create_dashboard_visuals(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


class HttpVisualizationProvider:
    """REST client for the visualization backend.

    Usage:
        provider = HttpVisualizationProvider("https://bi.internal/api", api_key="...")
        result = await provider.create_dashboard_visuals(payload)
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retries: int = DEFAULT_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider client.

        Args:
            base_url: Root URL of the visualization API
            api_key: Bearer token (optional for local deployments)
            timeout: Per-request timeout in seconds
            retries: Attempts for 429/5xx/network errors
            transport: Custom httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retries = max(1, retries)
        self._transport = transport

        logger.info(f"[VISUALIZATION_CLIENT] Initialized for {self.base_url}")

    def _endpoint(self, payload: Dict[str, Any]) -> str:
        if payload.get("action") == "PREVIEW":
            return f"{self.base_url}/dashboards/preview"
        dashboard_id = payload.get("dashboardId")
        if dashboard_id:
            return f"{self.base_url}/dashboards/{dashboard_id}/visuals"
        return f"{self.base_url}/dashboards"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def create_dashboard_visuals(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create (or extend) a dashboard from dataset and visual definitions.

        Retries 429 and 5xx responses and network errors with a linear backoff.
        Other 4xx responses fail immediately.

        Returns:
            Provider response body (dashboardId, dashboardEmbedUrl, ...)

        Raises:
            VisualizationProviderError: When the provider rejects the payload
                or keeps failing after all retries
        """
        url = self._endpoint(payload)
        last_error: Optional[Exception] = None

        for attempt in range(self.retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(url, json=payload, headers=self._headers())

                if response.status_code == 429:
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    logger.warning(
                        f"[VISUALIZATION_CLIENT] Rate limited, waiting {retry_after}s "
                        f"(attempt {attempt + 1}/{self.retries})"
                    )
                    last_error = VisualizationProviderError("Provider rate limited", status_code=429)
                    if attempt < self.retries - 1:
                        await asyncio.sleep(retry_after)
                    continue

                if 400 <= response.status_code < 500:
                    logger.error(
                        f"[VISUALIZATION_CLIENT] Rejected with {response.status_code}: {response.text[:500]}"
                    )
                    raise VisualizationProviderError(
                        f"Provider rejected request with status {response.status_code}",
                        status_code=response.status_code,
                        details={"body": response.text[:500]},
                    )

                response.raise_for_status()
                data = response.json()
                logger.info(
                    f"[VISUALIZATION_CLIENT] Dashboard {data.get('dashboardId')} ready "
                    f"(action={payload.get('action')})"
                )
                return data

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.warning(
                    f"[VISUALIZATION_CLIENT] HTTP error {e.response.status_code} "
                    f"(attempt {attempt + 1}/{self.retries})"
                )
                if attempt < self.retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))

            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    f"[VISUALIZATION_CLIENT] Request error: {e} (attempt {attempt + 1}/{self.retries})"
                )
                if attempt < self.retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))

            except ValueError as e:
                raise VisualizationProviderError(
                    "Provider returned a non-JSON response",
                    status_code=response.status_code,
                ) from e

        raise VisualizationProviderError(f"Failed after {self.retries} attempts: {last_error}")
