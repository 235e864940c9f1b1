"""
Transport layer for MCP over Server-Sent Events.

Reads and writes travel different paths:

    GET  <sse url>           long-lived text/event-stream, server -> client
    POST <message endpoint>  one JSON-RPC request per call, client -> server

The server announces the message endpoint as the first `endpoint` event on
the stream. Replies to POSTed requests do not come back in the HTTP
response; they arrive later on the stream and are matched to the caller by
JSON-RPC id.

Implements:
  - JSON-RPC envelopes and parse_envelope() (the inbound tagged variant)
  - EndpointHandshake: single-use gate released by the endpoint frame
  - RequestCorrelator: id allocation and id -> pending future table
  - SseTransport: owns the HTTP client and the background reader task
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import urlsplit

import httpx

from mcp_chat.errors import (
    HandshakeTimeout,
    McpChatError,
    RequestTimeout,
    SessionNotReadyError,
    TransportError,
)
from mcp_chat.sse import SseFrame, aiter_frames

logger = logging.getLogger(__name__)

DEFAULT_HANDSHAKE_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request."""
    method: str
    params: dict[str, Any]
    id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class JsonRpcResponse:
    """JSON-RPC 2.0 response, correlated by id."""
    id: str
    result: Any = None
    error: dict | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class JsonRpcNotification:
    """Server-initiated message without an id. Needs no reply."""
    method: str
    params: Any = None


@dataclass(frozen=True)
class Unparseable:
    """A frame payload that is not a JSON-RPC message (diagnostic text etc.)."""
    raw: str
    reason: str


Envelope = Union[JsonRpcResponse, JsonRpcNotification, Unparseable]


def parse_envelope(data: str) -> Envelope:
    """Classify one frame payload. Never raises."""
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        return Unparseable(raw=data, reason=f"not JSON: {e.msg}")

    if not isinstance(parsed, dict):
        return Unparseable(raw=data, reason=f"expected object, got {type(parsed).__name__}")

    if "id" in parsed and parsed["id"] is not None:
        error = parsed.get("error")
        return JsonRpcResponse(
            id=str(parsed["id"]),
            result=parsed.get("result"),
            error=error if isinstance(error, dict) or error is None else {"message": str(error)},
        )

    if isinstance(parsed.get("method"), str):
        return JsonRpcNotification(method=parsed["method"], params=parsed.get("params"))

    return Unparseable(raw=data, reason="neither 'id' nor 'method' present")


def resolve_endpoint(transport_url: str, payload: str) -> str:
    """
    Turn the endpoint announced by the server into an absolute URL.

    "/messages?sid=1" against "https://host:8443/sse" gives
    "https://host:8443/messages?sid=1". Absolute URLs pass through.
    """
    payload = payload.strip()
    if _SCHEME_RE.match(payload):
        return payload

    parts = urlsplit(transport_url)
    if not payload.startswith("/"):
        payload = "/" + payload
    return f"{parts.scheme}://{parts.netloc}{payload}"


class EndpointHandshake:
    """
    Single-use gate opened by the server's `endpoint` frame.

    A later endpoint frame overwrites the stored value; the gate stays open.
    """

    def __init__(self, transport_url: str, lock: threading.Lock):
        self.transport_url = transport_url
        self._lock = lock
        self._endpoint: str | None = None
        self._ready = asyncio.Event()

    @property
    def endpoint(self) -> str | None:
        with self._lock:
            return self._endpoint

    def offer(self, payload: str) -> str | None:
        """Record an endpoint frame payload. Returns the resolved URL."""
        if not payload.strip():
            logger.warning("Ignoring empty endpoint frame")
            return None

        resolved = resolve_endpoint(self.transport_url, payload)
        with self._lock:
            previous = self._endpoint
            self._endpoint = resolved

        if previous and previous != resolved:
            logger.info(f"Message endpoint changed: {previous} -> {resolved}")
        else:
            logger.info(f"Received message endpoint: {resolved}")
        self._ready.set()
        return resolved

    async def wait(self, timeout: float) -> str:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            raise HandshakeTimeout(
                f"Did not receive message endpoint from SSE server within {timeout:g}s"
            ) from None
        return self.endpoint

    def is_set(self) -> bool:
        return self._ready.is_set()


class RequestCorrelator:
    """
    Matches replies read off the stream to the requests that caused them.

    Ids start at 1 and are never reused. Each id has at most one pending
    future, removed exactly once: by resolve() or by the timeout in wait().
    A reply for an id that is no longer pending is dropped.
    """

    def __init__(self, lock: threading.Lock | None = None):
        self._lock = lock or threading.Lock()
        self._pending: dict[str, asyncio.Future] = {}
        self._last_id = 0

    def register(self) -> tuple[str, asyncio.Future]:
        """Allocate the next id and a future for its reply."""
        future = asyncio.get_running_loop().create_future()
        with self._lock:
            self._last_id += 1
            request_id = str(self._last_id)
            self._pending[request_id] = future
        return request_id, future

    def resolve(self, response: JsonRpcResponse) -> bool:
        """Complete the pending request for response.id. False if nobody is waiting."""
        with self._lock:
            future = self._pending.pop(response.id, None)
        if future is None or future.done():
            return False
        future.set_result(response)
        return True

    def discard(self, request_id: str) -> None:
        with self._lock:
            future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()

    def is_pending(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._pending

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    async def wait(
        self,
        request_id: str,
        future: asyncio.Future,
        timeout: float,
        method: str = "",
    ) -> JsonRpcResponse:
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise RequestTimeout(method, request_id, timeout) from None
        finally:
            self.discard(request_id)


class Transport(ABC):
    """Abstract transport layer for MCP communication."""

    @abstractmethod
    async def send(self, method: str, params: dict[str, Any]) -> JsonRpcResponse:
        """Send a request and return the correlated response."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Open the transport and wait until it can carry requests."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Close the transport."""
        ...

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the transport is active."""
        ...


class SseTransport(Transport):
    """
    JSON-RPC over an SSE stream (reads) plus HTTP POST (writes).

    start() launches the background reader and blocks until the endpoint
    frame arrives. The endpoint value and the pending-request table are the
    only state shared between the reader and callers; both sit behind one lock.
    """

    def __init__(
        self,
        sse_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Args:
            sse_url: URL of the server's text/event-stream endpoint.
            http_client: Optional client to use. It is not closed by stop().
            handshake_timeout: Seconds to wait for the endpoint frame.
            request_timeout: Seconds to wait for each correlated reply.
        """
        self.sse_url = sse_url
        self.handshake_timeout = handshake_timeout
        self.request_timeout = request_timeout
        self._client = http_client
        self._owns_client = http_client is None
        self._lock = threading.Lock()
        self._handshake = EndpointHandshake(sse_url, self._lock)
        self._correlator = RequestCorrelator(self._lock)
        self._reader: asyncio.Task | None = None

    @property
    def message_endpoint(self) -> str | None:
        return self._handshake.endpoint

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    async def start(self) -> None:
        if self.is_alive():
            logger.warning("Transport already running, stopping first")
            await self.stop()

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(300.0))
            self._owns_client = True

        self._handshake = EndpointHandshake(self.sse_url, self._lock)
        logger.info(f"Connecting to MCP SSE server: {self.sse_url}")
        self._reader = asyncio.create_task(self._read_stream(), name="mcp-sse-reader")
        gate = asyncio.create_task(self._handshake.wait(self.handshake_timeout))

        done, _ = await asyncio.wait(
            {gate, self._reader}, return_when=asyncio.FIRST_COMPLETED
        )

        if gate in done:
            try:
                endpoint = gate.result()
            except HandshakeTimeout:
                await self.stop()
                raise
            logger.info(f"Connected to SSE stream. Message endpoint: {endpoint}")
            return

        # Reader finished before the endpoint arrived
        gate.cancel()
        await asyncio.gather(gate, return_exceptions=True)
        error = self._reader.exception()
        await self.stop()
        if isinstance(error, McpChatError):
            raise error
        raise TransportError("SSE stream closed before endpoint was received", url=self.sse_url)

    async def stop(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None:
            if not reader.done():
                reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
            except McpChatError as e:
                logger.debug(f"SSE reader ended with: {e}")

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("SSE transport stopped")

    def is_alive(self) -> bool:
        return self._reader is not None and not self._reader.done()

    async def send(self, method: str, params: dict[str, Any]) -> JsonRpcResponse:
        """POST a request to the message endpoint and wait for its reply on the stream."""
        endpoint = self.message_endpoint
        if not endpoint or self._client is None:
            raise SessionNotReadyError("Message endpoint not yet established", url=self.sse_url)

        request_id, future = self._correlator.register()
        request = JsonRpcRequest(method=method, params=params, id=request_id)
        logger.info(f"Sending to {endpoint}: {method} (id={request_id})")

        try:
            try:
                response = await self._client.post(endpoint, json=request.to_dict())
            except httpx.HTTPError as e:
                raise TransportError(f"POST {method} failed: {e}", url=endpoint) from e

            if response.is_error:
                raise TransportError(
                    f"Request failed: {response.text[:500]}",
                    status_code=response.status_code,
                    url=endpoint,
                )

            return await self._correlator.wait(request_id, future, self.request_timeout, method)
        finally:
            # Covers cancellation mid-POST as well as errors
            self._correlator.discard(request_id)

    async def _read_stream(self) -> None:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        try:
            async with self._client.stream(
                "GET",
                self.sse_url,
                headers=headers,
                timeout=httpx.Timeout(self.handshake_timeout, read=None),
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise TransportError(
                        f"SSE request failed: {response.text[:500]}",
                        status_code=response.status_code,
                        url=self.sse_url,
                    )
                async for frame in aiter_frames(response.aiter_lines()):
                    self._dispatch(frame)
        except httpx.HTTPError as e:
            logger.error(f"SSE stream error: {e}")
            raise TransportError(f"SSE stream error: {e}", url=self.sse_url) from e
        logger.info("SSE stream closed by server")

    def _dispatch(self, frame: SseFrame) -> None:
        """Route one frame. Errors are logged; the reader keeps going."""
        try:
            if frame.event == "endpoint":
                self._handshake.offer(frame.data)
                return

            if frame.event not in (None, "", "message"):
                logger.debug(f"Ignoring SSE event {frame.event}: {frame.data[:200]}")
                return

            envelope = parse_envelope(frame.data)
            if isinstance(envelope, JsonRpcResponse):
                if self._correlator.resolve(envelope):
                    logger.debug(f"Resolved request {envelope.id}")
                else:
                    logger.debug(f"Dropping reply for id {envelope.id}: no pending request")
            elif isinstance(envelope, JsonRpcNotification):
                logger.info(f"Server notification: {envelope.method}")
            else:
                logger.info(f"Event {frame.event or 'message'}: {envelope.raw[:200]} ({envelope.reason})")
        except Exception:
            logger.exception("Error processing SSE event")
