"""HTTP transport for the Transmission RPC endpoint.

One POST per call. The transport owns the CSRF-style session token: a 409
response carries a fresh ``X-Transmission-Session-Id`` which is adopted for
all later requests, and the rejected request is replayed exactly once.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from enum import Enum
from typing import Any

import aiohttp

from unitorrent.adapter.transmission.dialect import Dialect, DialectAccessor
from unitorrent.exceptions import (
    AuthenticationError,
    RPCError,
    SessionRenegotiationError,
)

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = "X-Transmission-Session-Id"

HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_CONFLICT = 409


class SessionState(str, Enum):
    """Session token state."""

    VALID = "valid"
    RENEGOTIATING = "renegotiating"


class RPCTransport:
    """Dialect-aware JSON-over-HTTP RPC client."""

    def __init__(
        self,
        url: str,
        accessor: DialectAccessor,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """Initialize transport.

        Args:
            url: Full RPC endpoint URL
            accessor: Naming strategy of the selected dialect
            username: HTTP Basic username (optional)
            password: HTTP Basic password (optional)
            timeout: Total request timeout in seconds, applied per request
                even on an injected session
            session: Externally owned aiohttp session (not closed by us)

        """
        self.url = url
        self.accessor = accessor
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.state = SessionState.VALID

        self._session = session
        self._owns_session = session is None
        self._session_id: str | None = None
        self._auth: aiohttp.BasicAuth | None = None
        self._ids = itertools.count(1)
        self.set_credentials(username, password)

    @property
    def session_id(self) -> str | None:
        """The session token currently echoed on requests."""
        return self._session_id

    @property
    def has_credentials(self) -> bool:
        return self._auth is not None

    def set_credentials(self, username: str | None, password: str | None) -> None:
        """Set HTTP Basic credentials; both empty means no auth header."""
        if not username and not password:
            self._auth = None
            return
        self._auth = aiohttp.BasicAuth(username or "", password or "")

    def clear_credentials(self) -> None:
        self._auth = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._session_id:
            headers[SESSION_ID_HEADER] = self._session_id
        return headers

    def build_payload(self, operation: str, params: dict[str, Any] | None) -> dict[str, Any]:
        """Build the request envelope for the selected dialect."""
        method = self.accessor.method(operation)
        if self.accessor.dialect is Dialect.JSONRPC2:
            payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": next(self._ids)}
            if params is not None:
                payload["params"] = params
            return payload
        payload = {"method": method, "tag": next(self._ids)}
        if params is not None:
            payload["arguments"] = params
        return payload

    async def call(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        """Execute one RPC operation and return its unwrapped result.

        Args:
            operation: Logical operation name (e.g. ``"torrent-get"``)
            params: Operation arguments, already in wire spelling

        Returns:
            The ``result`` (modern) or ``arguments`` (legacy) member, or
            None for an empty response

        Raises:
            RPCError: The daemon reported an application error
            SessionRenegotiationError: The token was rejected twice
            AuthenticationError: The daemon refused the credentials
            aiohttp.ClientError: Connection-level failure (not wrapped)
            asyncio.TimeoutError: Request timed out (not wrapped)

        """
        payload = self.build_payload(operation, params)
        logger.debug("RPC %s (%s)", payload["method"], self.accessor.dialect.value)
        body = await self._post(payload)
        if body is None:
            return None
        return self._unwrap(operation, body)

    async def _post(self, payload: dict[str, Any]) -> Any:
        session = await self._ensure_session()
        data = json.dumps(payload)

        for attempt in range(2):
            async with session.post(
                self.url,
                data=data,
                headers=self._headers(),
                auth=self._auth,
                timeout=self.timeout,
            ) as resp:
                if resp.status == HTTP_CONFLICT:
                    token = resp.headers.get(SESSION_ID_HEADER)
                    if not token:
                        msg = "Conflict response without a session token"
                        raise RPCError(msg, code=HTTP_CONFLICT)
                    self._adopt_session_id(token)
                    if attempt:
                        msg = "Session token rejected after renegotiation"
                        raise SessionRenegotiationError(msg, code=HTTP_CONFLICT)
                    continue

                self.state = SessionState.VALID
                if resp.status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                    msg = f"Authentication failed: {resp.reason or resp.status}"
                    raise AuthenticationError(msg, code=resp.status)
                if resp.status == HTTP_NO_CONTENT:
                    return None

                text = await resp.text()
                if not 200 <= resp.status < 300:
                    msg = f"HTTP {resp.status}: {resp.reason or text.strip()[:200]}"
                    raise RPCError(msg, code=resp.status)
                if not text.strip():
                    return None
                try:
                    return json.loads(text)
                except json.JSONDecodeError as e:
                    msg = "Invalid JSON in RPC response"
                    raise RPCError(msg, details={"body": text[:200]}) from e

        # range(2) always returns or raises above
        msg = "unreachable"  # pragma: no cover
        raise AssertionError(msg)  # pragma: no cover

    def _adopt_session_id(self, token: str) -> None:
        if token != self._session_id:
            logger.info("Transmission session token renegotiated")
        self.state = SessionState.RENEGOTIATING
        self._session_id = token

    def _unwrap(self, operation: str, body: Any) -> Any:
        if not isinstance(body, dict):
            msg = f"Unexpected RPC response shape for {operation}"
            raise RPCError(msg)

        if self.accessor.dialect is Dialect.JSONRPC2:
            error = body.get("error")
            if error:
                code = error.get("code") if isinstance(error, dict) else None
                message = (
                    error.get("message", "RPC error") if isinstance(error, dict) else str(error)
                )
                data = error.get("data") if isinstance(error, dict) else None
                extra = data.get("errorString") if isinstance(data, dict) else None
                if extra is None and isinstance(data, dict):
                    extra = data.get("error_string")
                if extra:
                    message = f"{message}: {extra}"
                raise RPCError(message, code=code, details={"operation": operation})
            return body.get("result")

        result = body.get("result")
        if result != "success":
            raise RPCError(str(result or "unknown error"), details={"operation": operation})
        return body.get("arguments")

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            # Let the connector finish closing transports
            await asyncio.sleep(0)
        self._session = None

    async def __aenter__(self) -> RPCTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
