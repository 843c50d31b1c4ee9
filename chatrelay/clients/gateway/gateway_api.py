import asyncio
import json
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import aiohttp
from loguru import logger

from ...shared.constants import (
    API_MAX_RETRIES,
    API_TIMEOUT,
    GATEWAY_MAX_CONCURRENCY,
    HTTP_BAD_REQUEST,
    HTTP_FORBIDDEN,
    HTTP_NO_CONTENT,
    HTTP_OK,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
    USER_AGENT,
    WS_HEARTBEAT,
)
from ...shared.exceptions import (
    APIBadRequestError,
    APIConnectionError,
    APIRateLimitError,
    AuthenticationError,
    ClientConnectorError,
    GatewayConnectionError,
)
from ...shared.utils import redact_access_token, retry_async

__all__ = ("GatewayAPI",)

_STATUS_ERRORS: dict[int, type[Exception]] = {
    HTTP_BAD_REQUEST: APIBadRequestError,
    HTTP_UNAUTHORIZED: AuthenticationError,
    HTTP_FORBIDDEN: AuthenticationError,
    HTTP_TOO_MANY_REQUESTS: APIRateLimitError,
}


class GatewayAPI:
    """Client for the WeChat gateway bridge.

    ``POST /self`` describes the bot account, ``POST /send`` answers a message
    by id and the ``/events`` WebSocket pushes inbound messages. One aiohttp
    session carries all three.
    """

    def __init__(self, base_url: str, access_token: str = ""):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self._session: aiohttp.ClientSession | None = None
        self._semaphore = asyncio.Semaphore(GATEWAY_MAX_CONCURRENCY)

    @property
    def headers(self) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=API_TIMEOUT),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            try:
                await self._session.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.warning(f"Error closing gateway session: {e}")
        self._session = None
        logger.debug("Gateway client closed")

    def events_url(self) -> tuple[str, str]:
        """Return the WebSocket URL and a copy safe to log (no token)."""
        raw = self.base_url if "://" in self.base_url else f"http://{self.base_url}"
        parts = urlsplit(raw)
        scheme = parts.scheme.lower()
        if scheme not in {"http", "https", "ws", "wss"}:
            raise ValueError(f"unsupported gateway URL scheme: {scheme}")
        ws_scheme = "wss" if scheme in {"https", "wss"} else "ws"
        safe_url = urlunsplit((ws_scheme, parts.netloc, f"{parts.path.rstrip('/')}/events", "", ""))
        if not self.access_token:
            return safe_url, safe_url
        return f"{safe_url}?{urlencode({'access_token': self.access_token})}", safe_url

    async def ws_connect(self) -> aiohttp.ClientWebSocketResponse:
        url, safe_url = self.events_url()
        try:
            ws = await self.session.ws_connect(url, heartbeat=WS_HEARTBEAT)
        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"WebSocket connection failed: {redact_access_token(str(e))}")
            raise GatewayConnectionError(safe_url) from e
        logger.debug(f"WebSocket connected: {safe_url}")
        return ws

    @staticmethod
    def _error_detail(body: str) -> str:
        body = body.strip()
        try:
            obj = json.loads(body)
        except json.JSONDecodeError:
            return body
        if isinstance(obj, dict):
            detail = obj.get("message") or obj.get("error")
            if isinstance(detail, str) and detail:
                return detail
        return body

    async def _read_response(
        self, response: aiohttp.ClientResponse, endpoint: str
    ) -> dict[str, Any]:
        if response.status == HTTP_NO_CONTENT:
            return {}
        if response.status == HTTP_OK:
            try:
                result = await response.json(content_type=None)
            except json.JSONDecodeError as e:
                raise APIConnectionError(f"invalid JSON from /{endpoint}") from e
            if result is None:
                return {}
            return result if isinstance(result, dict) else {"data": result}
        detail = self._error_detail(await response.text())
        error_cls = _STATUS_ERRORS.get(response.status, APIConnectionError)
        logger.error(f"Gateway /{endpoint} failed: {response.status} {detail}")
        raise error_cls(detail or f"HTTP {response.status}")

    async def post(self, endpoint: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one request; callers choose their own retry policy."""
        url = f"{self.base_url}/{endpoint}"
        try:
            async with self._semaphore, self.session.post(url, json=payload or {}) as response:
                return await self._read_response(response, endpoint)
        except aiohttp.ClientConnectorError as e:
            logger.error(f"Gateway unreachable: /{endpoint} {e}")
            raise ClientConnectorError(str(e)) from e
        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"Gateway request error: /{endpoint} {e}")
            raise APIConnectionError(str(e)) from e

    @retry_async(
        max_retries=API_MAX_RETRIES,
        retryable_exceptions=(APIConnectionError, APIRateLimitError),
    )
    async def get_current_user(self) -> dict[str, Any]:
        return await self.post("self")

    # A failure after connecting may still have delivered the message.
    @retry_async(
        max_retries=API_MAX_RETRIES,
        retryable_exceptions=(ClientConnectorError,),
    )
    async def reply_text(self, message_id: str, text: str) -> dict[str, Any]:
        return await self.post("send", {"reply_to": message_id, "text": text})
