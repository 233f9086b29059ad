"""Client - Builds REST requests, sends them, and normalizes the responses.

A call flows: RequestDescriptor -> URL -> httpx.Request -> transport ->
Response (or EMPTY_REPLY). Every failure reaches the caller of ``call`` as a
NetworkError; the per-method entry points still raise UrlSyntaxError
unmerged so the cause of a failure can be told apart.

Usage:
    with Client(ClientConfig(test_mode=False)) as client:
        result = client.call(RequestDescriptor(
            method=Method.GET,
            base_address="api.example.com",
            path="/v1/widgets",
            query_params={"limit": "10"},
        ))
        if isinstance(result, Response):
            print(result.status_code, result.body)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping

import httpx

from rest_client.config_loader import load_client_config
from rest_client.models import (
    EMPTY_REPLY,
    CallResult,
    ClientConfig,
    Method,
    RequestDescriptor,
    Response,
)
from rest_client.url_builder import UrlSyntaxError, build_url

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
UNSUPPORTED_METHOD = "unsupported method"


def _has_body_stream(response: httpx.Response) -> bool:
    """Whether the transport attached a body stream to the response."""
    return getattr(response, "stream", None) is not None


class ClientError(Exception):
    """Base class for client errors."""


class NetworkError(ClientError):
    """Raised when a call fails (connection error, timeout, bad request, etc.)."""


class Client:
    """Sends REST calls through an httpx.Client transport.

    Usage:
        client = Client()
        try:
            result = client.call(descriptor)
        finally:
            client.close()

    Or with context manager:
        with Client() as client:
            result = client.call(descriptor)

    A transport passed in by the caller is never closed by this client.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Construction-time settings. Defaults to ClientConfig().
            transport: HTTP client to send requests through. If None, the
                       client creates one (using config.timeout) and owns it.
        """
        self._config = config or ClientConfig()
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else httpx.Client(
            timeout=self._config.timeout
        )
        self._closed = False

    @classmethod
    def from_config_file(
        cls,
        config_path: Path,
        transport: httpx.Client | None = None,
    ) -> "Client":
        """Create a client from a YAML config file (see config_loader)."""
        return cls(load_client_config(config_path), transport=transport)

    def __enter__(self) -> "Client":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def owns_transport(self) -> bool:
        return self._owns_transport

    def close(self) -> None:
        """Release pooled connections of a transport this client created.

        No-op for a caller-supplied transport. Safe to call more than once.
        """
        if not self._owns_transport or self._closed:
            return
        self._closed = True
        self._transport.close()

    # -------------------------------------------------------------------------
    # Top-level call
    # -------------------------------------------------------------------------

    def call(self, request: RequestDescriptor) -> CallResult:
        """Send the call described by ``request`` using its method.

        Args:
            request: The call to make. ``request.method`` must be set.

        Returns:
            The normalized Response, or EMPTY_REPLY if the reply has no body stream.

        Raises:
            NetworkError: On a missing method, an invalid URL, or a transport failure.
        """
        dispatch: dict[Method, Callable[[RequestDescriptor], CallResult]] = {
            Method.GET: self.get,
            Method.POST: self.post,
            Method.PUT: self.put,
            Method.PATCH: self.patch,
            Method.DELETE: self.delete,
        }
        handler = dispatch.get(request.method) if request.method is not None else None
        if handler is None:
            raise NetworkError(UNSUPPORTED_METHOD)

        try:
            return handler(request)
        except UrlSyntaxError as e:
            # Callers see a single failure type; the cause stays on __cause__.
            raise NetworkError(f"invalid URL: {e}") from e

    def get(self, request: RequestDescriptor) -> CallResult:
        """Make a GET request. Any body on ``request`` is not sent.

        Args:
            request: The call to make; its method is ignored.

        Returns:
            The normalized Response, or EMPTY_REPLY.

        Raises:
            UrlSyntaxError: If the URL cannot be built.
            NetworkError: If the request fails.
        """
        return self._send(request, Method.GET)

    def post(self, request: RequestDescriptor) -> CallResult:
        """Make a POST request with a JSON body."""
        return self._send(request, Method.POST)

    def put(self, request: RequestDescriptor) -> CallResult:
        """Make a PUT request with a JSON body."""
        return self._send(request, Method.PUT)

    def patch(self, request: RequestDescriptor) -> CallResult:
        """Make a PATCH request with a JSON body."""
        return self._send(request, Method.PATCH)

    def delete(self, request: RequestDescriptor) -> CallResult:
        """Make a DELETE request; the (possibly empty) body is sent as JSON."""
        return self._send(request, Method.DELETE)

    def _send(self, request: RequestDescriptor, method: Method) -> CallResult:
        if self._closed or self._transport.is_closed:
            raise NetworkError("client is closed")
        url = self.build_url(request.base_address, request.path, request.query_params)
        return self.execute(self.assemble(request, url, method))

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def build_url(
        self,
        base_address: str,
        path: str,
        query_params: Mapping[str, str] | None = None,
    ) -> httpx.URL:
        """Build a URL using this client's scheme (http in test mode, else https)."""
        return build_url(base_address, path, query_params, test_mode=self._config.test_mode)

    def assemble(
        self,
        request: RequestDescriptor,
        url: httpx.URL,
        method: Method | None = None,
    ) -> httpx.Request:
        """Convert a descriptor and its URL into a transport request.

        Headers are set, not added: a later key that matches an earlier one
        case-insensitively replaces it. Body-bearing methods always send
        ``Content-Type: application/json`` and the body byte-exact (empty
        when unset). GET never sends a body. The request is built by the
        transport, so its default headers and timeout apply.

        Args:
            request: The call being made.
            url: URL built for the call.
            method: Method to use; defaults to ``request.method``.

        Returns:
            The httpx.Request, ready to send.

        Raises:
            NetworkError: If no method is given or a header is not ASCII.
        """
        method = method or request.method
        if method is None:
            raise NetworkError(UNSUPPORTED_METHOD)

        # Lowercase key -> (name, value). Reassignment keeps the first position.
        merged: dict[str, tuple[str, str]] = {}
        for name, value in request.headers.items():
            merged[name.lower()] = (name, value)

        content: bytes | None = None
        if method.has_body:
            merged["content-type"] = ("Content-Type", JSON_CONTENT_TYPE)
            content = request.body or b""

        try:
            headers = httpx.Headers(list(merged.values()))
        except UnicodeEncodeError as e:
            raise NetworkError(
                f"encoding error: non-ASCII character {e.object[e.start:e.end]!r} "
                f"in request header. HTTP requires ASCII header names and values."
            ) from e

        return self._transport.build_request(method.value, url, headers=headers, content=content)

    def execute(self, request: httpx.Request) -> CallResult:
        """Send a request and normalize the reply.

        The transport response is always closed before returning or raising,
        including when normalization fails.

        Raises:
            NetworkError: If the transport fails or the body cannot be read.
        """
        logger.debug("Sending %s %s", request.method, request.url)
        try:
            http_response = self._transport.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise NetworkError(f"request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise NetworkError(f"connection error: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"request error: {e}") from e

        try:
            return self.normalize(http_response)
        finally:
            # A response without a body stream holds no connection.
            if _has_body_stream(http_response):
                http_response.close()

    def normalize(self, response: httpx.Response) -> CallResult:
        """Convert an httpx Response to a Response.

        A response the transport sent without a body stream returns
        EMPTY_REPLY without capturing status or headers. An empty body
        (e.g. 204 No Content) is still a Response with body "".

        Args:
            response: httpx Response object.

        Returns:
            Response model instance, or EMPTY_REPLY.

        Raises:
            NetworkError: If the body cannot be read.
        """
        if not _has_body_stream(response):
            logger.debug("No body stream for status %d", response.status_code)
            return EMPTY_REPLY

        try:
            response.read()
        except (httpx.RequestError, httpx.StreamError) as e:
            raise NetworkError(f"error reading response body: {e}") from e

        # One value per name: first-seen casing, last value reported.
        encoding = response.headers.encoding
        names: dict[str, str] = {}
        headers: dict[str, str] = {}
        for raw_name, raw_value in response.headers.raw:
            name = raw_name.decode(encoding)
            headers[names.setdefault(name.lower(), name)] = raw_value.decode(encoding)

        logger.debug("Received %d (%d bytes)", response.status_code, len(response.content))
        return Response(
            status_code=response.status_code,
            body=response.text,
            headers=headers,
        )
