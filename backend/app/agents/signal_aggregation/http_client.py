"""
Backend RPC Client

Provides a shared httpx.AsyncClient with connection pooling and a thin
``invoke(function_name, payload)`` wrapper over the analysis backend's
serverless functions.

Every call is fallible.  Transport errors, non-2xx responses and bodies
carrying an ``error`` all come back as ``InvokeResult.error``; nothing is
retried here, a failed source stays failed until explicitly refreshed.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


# Timeout configurations (in seconds)
class Timeouts:
    """Timeout presets for backend calls."""
    BACKEND = 12.0      # single serverless function call
    CONNECT = 5.0


# Shared client instance (lazily initialized)
_client: Optional[httpx.AsyncClient] = None


async def get_client() -> httpx.AsyncClient:
    """Get the shared async HTTP client."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(Timeouts.BACKEND, connect=Timeouts.CONNECT),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
            follow_redirects=True,
        )
    return _client


async def close_client():
    """Close the shared client (call on app shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


@dataclass(frozen=True)
class InvokeResult:
    """Outcome of one backend function call.  Exactly one side is set."""

    data: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


def _error(message: str, **extra: Any) -> InvokeResult:
    return InvokeResult(error={"message": message, **extra})


class BackendClient:
    """Invokes named backend functions over HTTP.

    Configuration comes from ``BACKEND_FUNCTIONS_URL`` and
    ``BACKEND_API_KEY`` unless passed explicitly.  A missing URL is not
    fatal: every invoke returns an error, so sources degrade to
    ``unavailable`` instead of crashing the service.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = Timeouts.BACKEND,
    ):
        self.base_url = (base_url or os.getenv("BACKEND_FUNCTIONS_URL") or "").rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("BACKEND_API_KEY")
        self._http_client = http_client
        self._timeout = httpx.Timeout(timeout, connect=Timeouts.CONNECT)

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def invoke(self, function_name: str, payload: Dict[str, Any]) -> InvokeResult:
        """Call *function_name* with *payload* and return data or error."""
        if not self.configured:
            return _error("BACKEND_FUNCTIONS_URL is not set", function=function_name)

        client = self._http_client or await get_client()
        url = f"{self.base_url}/{function_name}"

        try:
            response = await client.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            logger.warning("Backend function %s timed out", function_name)
            return _error("timeout", function=function_name)
        except httpx.HTTPError as exc:
            logger.warning("Backend function %s transport error: %s", function_name, exc)
            return _error(str(exc) or type(exc).__name__, function=function_name)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = None
            if isinstance(body, dict):
                message = body.get("reason") or body.get("error")
            logger.warning("Backend function %s returned HTTP %d", function_name, response.status_code)
            return _error(
                str(message or f"HTTP {response.status_code}"),
                function=function_name,
                status_code=response.status_code,
            )

        if not isinstance(body, dict):
            return _error("response body is not a JSON object", function=function_name)

        if body.get("error"):
            error = body["error"]
            if not isinstance(error, dict):
                error = {"message": str(error)}
            return InvokeResult(error={"function": function_name, **error})

        return InvokeResult(data=body)
