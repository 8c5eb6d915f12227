"""HTTP Exchange - Posts a JSON body and captures the response.

One exchange is one POST on its own httpx client: the connection is opened
for the request and closed once the response body has been read. Nothing is
retried; any transport failure surfaces as TransportError.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from jsonpost.models import ResponseRecord, Timeouts
from jsonpost.tls import ClientAuth, TlsContextProvider

logger = logging.getLogger(__name__)

# Servers commonly answer 403 to requests without a browser-like User-Agent.
USER_AGENT = "Mozilla/5.0"
CONTENT_TYPE = "application/json; charset=UTF-8"
ACCEPT = "application/json"

REQUEST_LOG_FORMAT = "Method: '%s' | URL: '%s' | Headers: %s | Body: '%s'"

_LINE_TERMINATOR = re.compile(r"\r\n|\r|\n")


class ExchangeError(Exception):
    """Base class for exchange errors."""


class TransportError(ExchangeError):
    """Raised when the request fails (connection error, timeout, TLS, I/O)."""


def build_request_headers(payload: bytes) -> dict[str, str]:
    """Headers sent with every POST."""
    return {
        "User-Agent": USER_AGENT,
        "Content-Type": CONTENT_TYPE,
        "Content-Length": str(len(payload)),
        "Accept": ACCEPT,
    }


def flatten_headers(headers: httpx.Headers) -> str:
    """Render headers as ``Name: v1,v2`` entries joined with ``,``."""
    return ",".join(f"{name}: {value}" for name, value in aggregate_headers(headers).items())


def aggregate_headers(headers: httpx.Headers) -> dict[str, str]:
    """Group headers by lowercase name, joining repeated values with ``,``."""
    grouped: dict[str, list[str]] = {}
    for key, value in headers.multi_items():
        grouped.setdefault(key.lower(), []).append(value)
    return {key: ",".join(values) for key, values in grouped.items()}


def host_of(url: httpx.URL) -> str:
    """Host name of a URL, with IPv6 literals kept in brackets (``[::1]``)."""
    host = url.host
    if ":" in host:
        return f"[{host}]"
    return host


def try_read_body(response: httpx.Response) -> str:
    """Read a streamed response body with line terminators removed.

    A body stream that is no longer available yields "" rather than an error.
    Transport failures while reading still propagate.
    """
    try:
        response.read()
    except httpx.StreamError:
        return ""
    return _LINE_TERMINATOR.sub("", response.text)


class HTTPExchange:
    """Performs JSON POST requests.

    Usage:
        exchange = HTTPExchange(tls_provider=provider)
        record = exchange.post("https://api.example.test/items", '{"id": 1}')
    """

    def __init__(
        self,
        tls_provider: TlsContextProvider | None = None,
        timeout: Timeouts | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the exchange.

        Args:
            tls_provider: Source of client SSL contexts for https URLs. None
                uses the platform defaults.
            timeout: Per-phase timeouts. Defaults to Timeouts().
            transport: Optional httpx transport (used by tests).
        """
        self._tls_provider = tls_provider
        self._timeout = timeout or Timeouts()
        self._transport = transport

    def _build_client_kwargs(self, url: httpx.URL) -> dict[str, Any]:
        """Build kwargs for httpx.Client including TLS configuration."""
        kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(
                connect=self._timeout.connect,
                read=self._timeout.read,
                write=self._timeout.write,
                pool=self._timeout.pool,
            ),
        }

        if url.scheme == "https" and self._tls_provider is not None:
            ssl_context = self._tls_provider.create_ssl_context(ClientAuth.NONE)
            if ssl_context is not None:
                kwargs["verify"] = ssl_context

        if self._transport is not None:
            kwargs["transport"] = self._transport

        return kwargs

    def post(self, url: str, json_body: str) -> ResponseRecord:
        """POST a JSON body and capture the response.

        Args:
            url: Absolute http(s) URL.
            json_body: JSON text, sent UTF-8 encoded.

        Returns:
            ResponseRecord for the response, whatever its status.

        Raises:
            TransportError: If the request fails due to connection/timeout/TLS
                or the connection breaks while reading the response.
        """
        target = httpx.URL(url)
        payload = json_body.encode("utf-8")

        try:
            with httpx.Client(**self._build_client_kwargs(target)) as client:
                request = client.build_request(
                    "POST", target, headers=build_request_headers(payload), content=payload
                )

                logger.debug(
                    REQUEST_LOG_FORMAT,
                    request.method,
                    request.url,
                    flatten_headers(request.headers),
                    json_body,
                )

                response = client.send(request, stream=True)
                try:
                    body = try_read_body(response)
                finally:
                    response.close()

        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {url} timed out: {e}") from e
        except httpx.ConnectError as e:
            raise TransportError(f"Connection to {url} failed: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        except OSError as e:
            raise TransportError(f"I/O error while posting to {url}: {e}") from e

        return self._convert_response(response, body)

    def _convert_response(self, response: httpx.Response, body: str) -> ResponseRecord:
        """Convert an httpx Response to a ResponseRecord."""
        return ResponseRecord(
            status_code=response.status_code,
            status_message=response.reason_phrase,
            content_type=response.headers.get("content-type"),
            body=body,
            headers=aggregate_headers(response.headers),
            host_url=host_of(response.request.url),
        )
