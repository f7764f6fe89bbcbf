"""
Solar CRM Integration
======================

Async client for the company's CRM REST API: customers, proposals,
projects, leads and the combined dashboard report.

Every call:
  - is bounded by SOLAR_API_TIMEOUT
  - retries transient failures (timeouts, 429, 5xx) with exponential backoff
  - goes through a per-endpoint circuit breaker
  - raises a scripts.lib.errors type on failure (callers decide whether to degrade)

Setup:
1. Set SOLAR_API_URL (e.g. http://localhost:5002) in .env
2. Set SOLAR_API_TOKEN to a bearer token if the API requires auth
"""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from scripts.lib.circuit_breaker import CircuitBreaker, circuit_breaker_call
from scripts.lib.errors import (
    APIAuthError,
    APIError,
    APIRateLimitError,
    APITimeoutError,
    CircuitOpenError,
    ConfigError,
    DataFetchError,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("solar_crm")

CUSTOMERS_PATH = "/api/customers"
PROPOSALS_PATH = "/api/proposals"
PROJECTS_PATH = "/api/projects"
LEADS_PATH = "/api/leads"
DASHBOARD_REPORT_PATH = "/api/reports/dashboard"


def _is_transient(exc: BaseException) -> bool:
    """Timeouts, rate limits, 5xx and connection failures are worth retrying."""
    if isinstance(exc, (CircuitOpenError, APIAuthError)):
        return False
    if isinstance(exc, (APITimeoutError, APIRateLimitError)):
        return True
    if isinstance(exc, APIError):
        return exc.status_code is None or exc.status_code >= 500
    return False


class SolarCRMClient:
    """Solar CRM connector."""

    SERVICE = "solar_crm"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if base_url is None:
            base_url = os.getenv("SOLAR_API_URL", "")
        self.base_url = base_url.rstrip("/")
        self.token = token if token is not None else os.getenv("SOLAR_API_TOKEN", "")
        self.timeout = float(timeout if timeout is not None else os.getenv("SOLAR_API_TIMEOUT", "15"))
        self.max_retries = max(1, int(
            max_retries if max_retries is not None else os.getenv("SOLAR_API_MAX_RETRIES", "3")
        ))
        self.backoff = backoff
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _send(self, method: str, path: str, params: Optional[Dict] = None) -> Any:
        """One HTTP round trip, mapped onto the error taxonomy."""
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method, url, headers=self._headers(), params=params,
                )
            except httpx.TimeoutException as e:
                raise APITimeoutError(url, self.timeout) from e
            except httpx.HTTPError as e:
                raise APIError(f"Request failed: {e}", url=url) from e

        if response.status_code in (401, 403):
            raise APIAuthError(url, status_code=response.status_code)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise APIRateLimitError(url, int(retry_after) if retry_after.isdigit() else None)

        if not response.is_success:
            raise APIError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code, url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DataFetchError(f"Invalid JSON from {method} {path}", source=path) from e

    async def _request(self, method: str, path: str, params: Optional[Dict] = None) -> Any:
        """Make a retried, circuit-protected request to the CRM API."""
        if not self.is_configured:
            raise ConfigError("SOLAR_API_URL is not set", setting="SOLAR_API_URL")

        body = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff, max=8),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "Retrying %s %s (attempt %d/%d)",
                        method, path, attempt.retry_state.attempt_number, self.max_retries,
                    )
                body = await circuit_breaker_call(
                    f"{self.SERVICE}:{path}", self._send, method, path, params,
                )
        return body

    async def get_customers(self, limit: int = 1000) -> Any:
        """Fetch customers."""
        return await self._request("GET", CUSTOMERS_PATH, {"limit": limit})

    async def get_proposals(self, limit: int = 100) -> Any:
        """Fetch proposals."""
        return await self._request("GET", PROPOSALS_PATH, {"limit": limit})

    async def get_projects(self, limit: int = 100) -> Any:
        """Fetch projects."""
        return await self._request("GET", PROJECTS_PATH, {"limit": limit})

    async def get_leads(self, limit: int = 100, sort: str = "-createdAt") -> Any:
        """Fetch leads, newest first by default."""
        return await self._request("GET", LEADS_PATH, {"limit": limit, "sort": sort})

    async def get_dashboard_summary(self) -> Any:
        """Fetch the server-side combined dashboard report, where the API offers one."""
        return await self._request("GET", DASHBOARD_REPORT_PATH)

    def get_status(self) -> Dict[str, Any]:
        prefix = f"{self.SERVICE}:"
        return {
            "name": "Solar CRM",
            "configured": self.is_configured,
            "base_url": self.base_url or None,
            "features": ["customers", "proposals", "projects", "leads", "dashboard_report"],
            "circuits": [
                s for s in CircuitBreaker.all_status() if s["service"].startswith(prefix)
            ],
        }
