# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from astradocs.exceptions import (
    ClientClosedException,
    DataAPIFaultyResponseException,
    DataAPITimeoutException,
)
from astradocs.settings.defaults import DEFAULT_HTTP1_MAX_KEEPALIVE_CONNECTIONS
from astradocs.utils.request_tools import (
    HttpMethod,
    log_wire_request,
    log_wire_response,
    to_httpx_timeout,
)
from astradocs.utils.transform_payload import serialize_command

logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """
    Everything a strategy needs to issue one command.

    Attributes:
        url: the full URL to POST the command to.
        command: the command, a single-key dictionary.
        headers: the HTTP headers for the request.
        timeout_ms: the timeout for the request. None or zero mean no timeout.
        method: the HTTP method.
    """

    url: str
    command: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None
    method: str = HttpMethod.POST


@dataclass
class RawResponse:
    """The HTTP status of a response and its body, parsed as JSON."""

    status_code: int
    data: dict[str, Any]


class RequestStrategy(ABC):
    """
    A way to send commands to the API over HTTP. A strategy is shared by a
    client and every object spawned from it, and is closed only once, with
    the client.
    """

    http_version_description: str = "HTTP"

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether `close()` was called on this strategy."""
        ...

    @abstractmethod
    def _get_client(self) -> httpx.AsyncClient:
        """
        Return the httpx client to use for the next request.
        Must not suspend: no awaits between any checks and the returned client.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all connections. Terminal: further requests will fail."""
        ...

    async def _release_client(self, client: httpx.AsyncClient) -> None:
        """Called once for each `_get_client`, when its request is over."""
        pass

    def _on_transport_error(
        self, client: httpx.AsyncClient, exc: httpx.TransportError
    ) -> None:
        """Hook for strategies reacting to a connection-level failure."""
        pass

    @staticmethod
    def _parse_response_body(raw_response: httpx.Response) -> dict[str, Any]:
        # non-200 responses are classified by status alone: any body goes
        response_data: Any
        try:
            response_data = json.loads(raw_response.text)
        except ValueError:
            response_data = None
        if isinstance(response_data, dict):
            return response_data
        if raw_response.status_code != 200:
            return {}
        raise DataAPIFaultyResponseException(
            text=f'Unable to parse response as JSON, got: "{raw_response.text}"',
            raw_response=raw_response.text,
        )

    async def request(self, info: RequestInfo) -> RawResponse:
        """
        Send a command and return the parsed response.

        Raises:
            ClientClosedException: if the strategy has been closed.
            DataAPITimeoutException: if no response arrives in time.
            DataAPIFaultyResponseException: if the body is not a JSON object.
            httpx.HTTPError: for any other transport-level failure.
        """
        client = self._get_client()
        try:
            return await self._send(client, info)
        finally:
            await self._release_client(client)

    async def _send(self, client: httpx.AsyncClient, info: RequestInfo) -> RawResponse:
        encoded_payload = serialize_command(info.command)
        log_wire_request(info.method, info.url, info.command)
        overall_timeout_s = info.timeout_ms / 1000 if info.timeout_ms else None

        try:
            raw_response = await asyncio.wait_for(
                client.request(
                    method=info.method,
                    url=info.url,
                    content=encoded_payload.encode(),
                    headers=info.headers,
                    timeout=to_httpx_timeout(info.timeout_ms),
                ),
                timeout=overall_timeout_s,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.warning(
                f"{self.http_version_description} request to {info.url} timed out "
                f"after {info.timeout_ms} ms"
            )
            raise DataAPITimeoutException(
                text="Command timed out",
                command=info.command,
                timeout_ms=info.timeout_ms,
                endpoint=info.url,
            )
        except httpx.TransportError as transport_exc:
            self._on_transport_error(client, transport_exc)
            raise

        response_data = self._parse_response_body(raw_response)
        log_wire_response(
            info.method, info.url, raw_response.status_code, response_data
        )
        return RawResponse(status_code=raw_response.status_code, data=response_data)


class HTTP1Strategy(RequestStrategy):
    """
    Requests go through a pool of HTTP/1.1 connections, kept alive and
    reused across requests.
    """

    http_version_description = "HTTP/1.1"

    def __init__(
        self,
        *,
        max_keepalive_connections: int = DEFAULT_HTTP1_MAX_KEEPALIVE_CONNECTIONS,
    ) -> None:
        self._closed = False
        self._client = httpx.AsyncClient(
            http2=False,
            limits=httpx.Limits(max_keepalive_connections=max_keepalive_connections),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise ClientClosedException("Cannot make http request when client is closed")
        return self._client

    async def close(self) -> None:
        self._closed = True
        await self._client.aclose()


class SessionState(Enum):
    """
    The states of the session held by an `HTTP2Strategy`.

    Values:
        LIVE: the session can be used for requests.
        CLOSED_BY_PEER: the server (or the network) terminated the session.
            A new one will be opened for the next request.
        CLOSED_BY_USER: `close()` was called. This is final.
    """

    LIVE = "live"
    CLOSED_BY_PEER = "closed_by_peer"
    CLOSED_BY_USER = "closed_by_user"


class HTTP2Strategy(RequestStrategy):
    """
    Requests are multiplexed on a single, long-lived HTTP/2 session.

    If the session gets closed by the other side (e.g. after the server sends
    a GOAWAY), the next request transparently opens a new session. The old
    session is closed as soon as the requests still running on it are over.
    A session closed with `close()` is never reopened.

    A failure to connect does not replace the session: no stream can be
    running on a connection that was never established, and the next
    request simply tries to connect again.
    """

    http_version_description = "HTTP/2"

    _client: httpx.AsyncClient
    _state: SessionState

    def __init__(self) -> None:
        self._retired_clients: list[httpx.AsyncClient] = []
        self._in_flight: dict[httpx.AsyncClient, int] = {}
        self.sessions_opened = 0
        self._open_session()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self._state.value})"

    def _open_session(self) -> None:
        self._client = httpx.AsyncClient(http2=True)
        self._state = SessionState.LIVE
        self.sessions_opened += 1

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == SessionState.CLOSED_BY_USER

    def _get_client(self) -> httpx.AsyncClient:
        if self._state == SessionState.CLOSED_BY_USER:
            raise ClientClosedException(
                "Cannot make http2 request when client is closed"
            )
        if self._state == SessionState.CLOSED_BY_PEER or self._client.is_closed:
            logger.info("HTTP/2 session was closed by the peer, opening a new one")
            # closed by _release_client once its running requests are over
            self._retired_clients.append(self._client)
            self._open_session()
        self._in_flight[self._client] = self._in_flight.get(self._client, 0) + 1
        return self._client

    async def _release_client(self, client: httpx.AsyncClient) -> None:
        remaining = self._in_flight.get(client, 1) - 1
        if remaining > 0:
            self._in_flight[client] = remaining
        else:
            self._in_flight.pop(client, None)
        idle_clients = [
            retired
            for retired in self._retired_clients
            if retired not in self._in_flight
        ]
        if idle_clients:
            self._retired_clients = [
                retired
                for retired in self._retired_clients
                if retired in self._in_flight
            ]
            for idle_client in idle_clients:
                logger.debug("Closing a retired HTTP/2 session")
                await idle_client.aclose()

    def _on_transport_error(
        self, client: httpx.AsyncClient, exc: httpx.TransportError
    ) -> None:
        if client is self._client and self._state == SessionState.LIVE:
            if isinstance(exc, httpx.RemoteProtocolError):
                logger.warning(f"HTTP/2 session terminated: {exc}")
                self._state = SessionState.CLOSED_BY_PEER

    async def close(self) -> None:
        self._state = SessionState.CLOSED_BY_USER
        clients = [self._client, *self._retired_clients]
        self._retired_clients = []
        for client in clients:
            await client.aclose()
