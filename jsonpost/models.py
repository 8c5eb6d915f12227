"""Internal data models for jsonpost.

All models use Pydantic v2. Value objects produced per invocation are frozen.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Mapping, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Work Items
# =============================================================================


class WorkItem(BaseModel):
    """The unit of data the host circulates between processing stages.

    Immutable: every update returns a new version with the same id.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Item identifier")
    attributes: dict[str, str] = Field(default_factory=dict, description="String attributes")
    content: bytes = Field(default=b"", description="Item content")

    def with_attributes(self, attributes: Mapping[str, str]) -> WorkItem:
        """Return a new version with attributes merged in (existing keys overwritten)."""
        merged = dict(self.attributes)
        merged.update(attributes)
        return self.model_copy(update={"attributes": merged})

    def with_content(self, content: bytes) -> WorkItem:
        """Return a new version whose content is replaced."""
        return self.model_copy(update={"content": content})


# =============================================================================
# Core HTTP Models
# =============================================================================


class RequestSpec(BaseModel):
    """A concrete POST request resolved from templates for one work item."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str = Field(description="Absolute http(s) URL")
    body: str = Field(description="JSON body text")


class ResponseRecord(BaseModel):
    """One HTTP response captured from the remote.

    Header values are joined with "," when a header is repeated.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    status_message: str = Field(default="", description="Reason phrase")
    content_type: str | None = Field(default=None, description="Content-Type header, if any")
    body: str = Field(default="", description="Response body with line terminators removed")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Response headers (comma-joined values)"
    )
    host_url: str = Field(description="Host name of the remote")

    @property
    def header_log(self) -> str:
        """Flattened headers for diagnostics, e.g. ``Server: x,Vary: a,b``."""
        return ",".join(f"{name}: {value}" for name, value in self.headers.items())


# =============================================================================
# Routing Models
# =============================================================================


class RoutingOutcome(str, Enum):
    """Named destination a work item is transferred to."""

    SUCCESS = "Success"
    FAILURE = "Failure"


class RoutingDecision(BaseModel):
    """What to do with the work item once the exchange is over."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    destination: RoutingOutcome = Field(description="Where the item goes")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="Attributes merged into the item"
    )
    content: str | None = Field(
        default=None, description="New item content (None leaves content untouched)"
    )


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class TlsConfig(BaseModel):
    """TLS material used to build a client SSL context."""

    model_config = ConfigDict(extra="forbid")

    ca_bundle: str | None = Field(default=None, description="CA bundle used to verify the server")
    verify_ssl: bool = Field(default=True, description="Verify the server certificate")
    cert: str | None = Field(default=None, description="Client certificate (PEM)")
    key: str | None = Field(default=None, description="Client private key (PEM)")
    key_password: str | None = Field(default=None, description="Password for an encrypted key")
    ciphers: str | None = Field(default=None, description="OpenSSL cipher string")

    @property
    def is_empty(self) -> bool:
        """True when nothing differs from the platform default."""
        return (
            self.ca_bundle is None
            and self.verify_ssl
            and not (self.cert and self.key)
            and self.ciphers is None
        )


class Timeouts(BaseModel):
    """Per-phase timeouts in seconds. None disables the limit."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    connect: float | None = Field(default=30.0, gt=0, description="Connect timeout")
    read: float | None = Field(default=30.0, gt=0, description="Read timeout")
    write: float | None = Field(default=30.0, gt=0, description="Write timeout")
    pool: float | None = Field(default=30.0, gt=0, description="Connection acquire timeout")


class ProcessorConfig(BaseModel):
    """Top-level configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(description="URL template, e.g. https://host/items/{id}")
    body: str | None = Field(default=None, description="JSON body template")
    minify_body: bool = Field(default=False, description="Send the body in minified form")
    tls: TlsConfig | None = Field(default=None, description="TLS settings for https URLs")
    timeout: Timeouts = Field(default_factory=Timeouts, description="Exchange timeouts")

    @model_validator(mode="after")
    def check_url_template(self) -> Self:
        if not self.url.strip():
            raise ValueError("url must not be empty")
        return self
