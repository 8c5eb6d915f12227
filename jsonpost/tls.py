"""TLS context providers for https exchanges.

A provider is asked for a client context right before a request to an https
URL. Returning None is a normal outcome: the exchange then uses the platform
default trust store and no client certificate.
"""

from __future__ import annotations

import ssl
from enum import Enum
from typing import Protocol

from jsonpost.models import TlsConfig


class TlsConfigError(Exception):
    """Raised when TLS settings cannot be turned into an SSL context."""


class ClientAuth(str, Enum):
    """Client authentication policy requested from a provider.

    NONE and WANT present the configured client certificate if there is one.
    REQUIRED also demands that one is configured.
    """

    NONE = "none"
    WANT = "want"
    REQUIRED = "required"


class TlsContextProvider(Protocol):
    """Capability that yields ready-to-use client SSL contexts."""

    def create_ssl_context(self, client_auth: ClientAuth) -> ssl.SSLContext | None:
        ...


class StandardTlsContextProvider:
    """Builds client SSL contexts from a TlsConfig.

    Usage:
        provider = StandardTlsContextProvider(TlsConfig(ca_bundle="ca.pem"))
        context = provider.create_ssl_context(ClientAuth.NONE)
    """

    def __init__(self, config: TlsConfig) -> None:
        self._config = config

    @property
    def config(self) -> TlsConfig:
        return self._config

    def create_ssl_context(self, client_auth: ClientAuth) -> ssl.SSLContext | None:
        """Create a client context, or None when nothing is configured.

        The client certificate is loaded whenever cert and key are both set;
        the server decides whether to ask for it. ClientAuth.REQUIRED fails
        when no certificate is configured.

        Raises:
            TlsConfigError: If the cipher string is invalid, a certificate,
                key, or CA file cannot be loaded, or client authentication is
                required without a configured certificate.
        """
        config = self._config
        if client_auth is ClientAuth.REQUIRED and not (config.cert and config.key):
            raise TlsConfigError(
                "Client authentication is required but no client certificate and key are configured"
            )
        if config.is_empty:
            return None

        ssl_context = ssl.create_default_context()

        if config.ciphers:
            try:
                ssl_context.set_ciphers(config.ciphers)
            except ssl.SSLError as e:
                raise TlsConfigError(f"Invalid cipher string '{config.ciphers}': {e}") from e

        # Load CA bundle if specified
        if config.ca_bundle:
            try:
                ssl_context.load_verify_locations(config.ca_bundle)
            except (OSError, ssl.SSLError) as e:
                raise TlsConfigError(f"Cannot load CA bundle '{config.ca_bundle}': {e}") from e
        elif not config.verify_ssl:
            # Disable verification
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        # Handle client certificate (mTLS)
        if config.cert and config.key:
            try:
                ssl_context.load_cert_chain(config.cert, config.key, config.key_password)
            except (OSError, ssl.SSLError) as e:
                raise TlsConfigError(
                    f"Cannot load client certificate '{config.cert}' / key '{config.key}': {e}"
                ) from e

        return ssl_context
