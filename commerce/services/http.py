"""
Shared async HTTP client for the remote storefront API.

Maps transport and HTTP failures onto the engine's error taxonomy:
- network errors, timeouts and 5xx -> TransientRemoteError
- 4xx -> BusinessRuleError carrying the server's message
"""
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from commerce.config import Settings
from commerce.errors import (
    BusinessRuleError,
    ERROR_INVALID_RESPONSE,
    ERROR_NETWORK,
    RemoteServiceError,
    TransientRemoteError,
    extract_remote_message,
)
from commerce.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

OPERATION_ID_HEADER = "X-Operation-Id"


class ApiClient:
    """Thin JSON client over a lazily created httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiClient":
        return cls(settings.api_url, token=settings.api_token, timeout=settings.api_timeout)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    def _headers(self, operation_id: Optional[str]) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if operation_id:
            headers[OPERATION_ID_HEADER] = operation_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        operation_id: Optional[str] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body (None for empty bodies).

        Raises:
            TransientRemoteError: network failure, timeout or 5xx
            BusinessRuleError: 4xx response
            RemoteServiceError: body is not valid JSON
        """
        client = await self._get_http_client()
        logger.debug(f"API request: {method} {path} op={sanitize_id_for_logging(operation_id)}")

        try:
            response = await client.request(method, path, json=json, headers=self._headers(operation_id))
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"{ERROR_NETWORK}: timeout on {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientRemoteError(f"{ERROR_NETWORK}: {e}") from e

        payload = self._decode(response)

        if response.status_code >= 500:
            remote_message = extract_remote_message(payload)
            raise TransientRemoteError(
                f"{method} {path} failed with {response.status_code}",
                status_code=response.status_code,
                user_message=remote_message,
            )
        if response.status_code >= 400:
            remote_message = extract_remote_message(payload)
            raise BusinessRuleError(
                remote_message or f"{method} {path} rejected with {response.status_code}",
                status_code=response.status_code,
                user_message=remote_message,
            )
        if payload is _INVALID:
            raise RemoteServiceError(ERROR_INVALID_RESPONSE, status_code=response.status_code)
        return payload

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return _INVALID

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=3),
        retry=retry_if_exception_type(TransientRemoteError),
        reraise=True,
    )
    async def fetch(self, path: str) -> Any:
        """GET with retry on transient failures. Only for idempotent reads."""
        return await self.request("GET", path)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class _InvalidBody:
    def __repr__(self) -> str:
        return "<invalid body>"


_INVALID = _InvalidBody()
