"""Relay API quote provider.

Talks to the Relay REST API over httpx. Every transport error, timeout,
non-2xx status and malformed payload surfaces as QuoteProviderError.
Transaction signing and broadcast are not implemented; execution is
simulated by the leg executor.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from relay_payroll.config import get_settings
from relay_payroll.errors import QuoteProviderError
from relay_payroll.providers.base import QuoteRequest, RelayQuote, RelayStatus, RelayToken

logger = logging.getLogger(__name__)


class RelayQuoteProvider:
    """Async client for the Relay API."""

    provider_name = "relay"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: API root, defaults to RELAY_BASE_URL.
            api_key: Bearer token, defaults to RELAY_API_KEY (optional).
            timeout_seconds: Per-request timeout, defaults to RELAY_TIMEOUT_SECONDS.
            client: Pre-built httpx client. Not closed by this provider.
            transport: Transport for the internally built client (tests).
        """
        settings = get_settings()
        self.base_url = base_url or settings.relay_base_url
        self.timeout_seconds = timeout_seconds or settings.relay_timeout_seconds

        headers = {"Content-Type": "application/json"}
        key = settings.relay_api_key if api_key is None else api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> RelayQuoteProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_quote(self, request: QuoteRequest) -> RelayQuote:
        """Fetch a cross-chain swap quote."""
        data = await self._request(
            "POST", "/quote", error_prefix="Relay quote failed:", json=request.to_payload()
        )
        try:
            return RelayQuote.model_validate(data)
        except ValidationError as exc:
            raise QuoteProviderError(
                f"Relay quote failed: malformed response ({exc.error_count()} invalid fields)"
            ) from exc

    async def get_status(self, request_id: str) -> RelayStatus:
        """Poll the status of a submitted request."""
        data = await self._request(
            "GET", f"/requests/v2/{request_id}", error_prefix="Relay status check failed:"
        )
        try:
            return RelayStatus.model_validate(data)
        except ValidationError as exc:
            raise QuoteProviderError("Relay status check failed: malformed response") from exc

    async def get_supported_tokens(self, chain_id: int) -> list[RelayToken]:
        """List the verified tokens Relay supports on a chain."""
        data = await self._request(
            "GET",
            "/currencies/v1",
            error_prefix=f"Failed to fetch tokens for chain {chain_id}:",
            params={"chainId": chain_id, "verified": "true"},
        )
        currencies = data.get("currencies") if isinstance(data, dict) else None
        if not currencies:
            return []
        try:
            return [RelayToken.model_validate(item) for item in currencies]
        except ValidationError as exc:
            raise QuoteProviderError(
                f"Failed to fetch tokens for chain {chain_id}: malformed response"
            ) from exc

    async def _request(
        self, method: str, path: str, *, error_prefix: str, **kwargs: Any
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise QuoteProviderError(
                f"{error_prefix} timed out after {self.timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise QuoteProviderError(f"{error_prefix} {str(exc) or type(exc).__name__}") from exc

        logger.debug("Relay %s %s -> %s", method, path, response.status_code)

        if not response.is_success:
            raise QuoteProviderError(
                f"{error_prefix} {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise QuoteProviderError(f"{error_prefix} response is not valid JSON") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract the provider's error message, falling back to the status line."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status_code}"
