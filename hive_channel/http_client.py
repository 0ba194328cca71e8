"""
HTTP request helper for the Hive REST API.

Every call opens its own ``httpx.AsyncClient`` so concurrent tool and
router calls share no state. Calls are fire-once: retries belong to the
event stream client only.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from .config import HiveConfig
from .errors import RequestError, TransportError


logger = logging.getLogger(__name__)


API_PREFIX = "/api"
DEFAULT_TIMEOUT = 30.0


def build_url(base_url: str, path: str) -> str:
    """
    Join the configured base URL and an API path.

    Trailing slashes are trimmed from the base and the path gets a leading
    slash. When the base already ends in ``/api`` and the path repeats it,
    the duplicate prefix is dropped so ``.../api`` + ``/api/wake`` does not
    become ``.../api/api/wake``.

    Args:
        base_url: Configured base URL
        path: API path, with or without a leading slash

    Returns:
        Absolute URL
    """
    base = base_url.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path

    if base.endswith(API_PREFIX) and (path == API_PREFIX or path.startswith(API_PREFIX + "/")):
        path = path[len(API_PREFIX):]

    return base + path


def decode_body(text: str) -> Any:
    """Decode a response body as JSON, falling back to the raw text."""
    if not text:
        return text
    try:
        return json.loads(text)
    except ValueError:
        return text


def error_message(response: httpx.Response, parsed: Any, text: str) -> str:
    """Pick the most useful error message for a failed response."""
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), str):
        return parsed["error"]
    if text:
        return text
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class HiveHttpClient:
    """Authenticated request/response calls against the Hive API."""

    def __init__(
        self,
        config: HiveConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the request helper.

        Args:
            config: Resolved Hive connection config
            transport: Optional httpx transport (used by tests)
            timeout: Per-request timeout in seconds
        """
        self.config = config
        self.transport = transport
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return build_url(self.config.base_url, path)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Perform one authenticated request.

        Args:
            method: HTTP method
            path: API path
            body: JSON-serialisable request body (optional)
            params: Query parameters (optional)

        Returns:
            Decoded JSON body, or the raw text if it is not JSON

        Raises:
            ConfigError: If no token is configured (before any network call)
            TransportError: On connection, timeout or TLS failure
            RequestError: On a non-success status code
        """
        token = self.config.require_token()
        method = method.upper()
        url = self.url_for(path)

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(body).encode("utf-8")

        logger.debug(f"{method} {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                verify=self.config.verify_tls,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    content=content,
                )
                text = response.text
        except httpx.TransportError as e:
            raise TransportError(f"Request failed: {e}", method=method, path=path) from e

        parsed = decode_body(text)

        if not response.is_success:
            message = error_message(response, parsed, text)
            logger.warning(f"{method} {path} failed with HTTP {response.status_code}: {message}")
            raise RequestError(
                message,
                status_code=response.status_code,
                method=method,
                path=path,
                body=parsed,
            )

        return parsed

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body=body)
