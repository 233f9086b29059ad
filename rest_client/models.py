"""Data models for rest-client.

All models use Pydantic v2. Request and response values are frozen: a
descriptor is built once by the caller and never mutated by the client.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Request Models
# =============================================================================


class Method(str, Enum):
    """HTTP methods the client knows how to send."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def has_body(self) -> bool:
        """Whether requests with this method carry a JSON body."""
        return self is not Method.GET


class RequestDescriptor(BaseModel):
    """One logical API call, before it is bound to a URL and a transport.

    Headers keep insertion order. Keys that differ only in case are allowed
    here; the assembler applies them in order so the last one wins.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: Method | None = Field(default=None, description="HTTP method; None means not set")
    base_address: str = Field(description="Host without scheme, e.g. api.example.com")
    path: str = Field(default="", description="Already percent-encoded path, e.g. /v3/mail/send")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    query_params: dict[str, str] | None = Field(
        default=None, description="Query parameters; None means no query string"
    )
    body: bytes | None = Field(default=None, description="Raw request body")

    @field_validator("body", mode="before")
    @classmethod
    def encode_text_body(cls, value: Any) -> Any:
        # Text bodies are sent as UTF-8, byte-exact.
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    def with_header(self, name: str, value: str) -> Self:
        """Return a copy with ``name`` set to ``value``."""
        headers = dict(self.headers)
        headers[name] = value
        return self.model_copy(update={"headers": headers})

    def with_query_param(self, name: str, value: str) -> Self:
        """Return a copy with the query parameter ``name`` set to ``value``."""
        query_params = dict(self.query_params or {})
        query_params[name] = value
        return self.model_copy(update={"query_params": query_params})

    def with_body(self, body: bytes | str | None) -> Self:
        """Return a copy carrying ``body``."""
        return self.model_validate({**self.model_dump(), "body": body})


# =============================================================================
# Response Models
# =============================================================================


class Response(BaseModel):
    """Normalized result of one completed call.

    Header values are flattened: only the last value per header name is kept.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    body: str = Field(default="", description="Response body decoded to text")
    headers: dict[str, str] = Field(default_factory=dict, description="Flattened response headers")


class EmptyReply:
    """Marker returned instead of a Response when the reply has no body stream.

    Use the module-level ``EMPTY_REPLY`` instance.
    """

    _instance: EmptyReply | None = None

    def __new__(cls) -> EmptyReply:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY_REPLY"


EMPTY_REPLY = EmptyReply()

# What every call returns: check with isinstance(result, Response).
CallResult = Response | EmptyReply


# =============================================================================
# Configuration Models
# =============================================================================


class ClientConfig(BaseModel):
    """Construction-time configuration for a Client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_mode: bool = Field(
        default=False, description="Use http instead of https (local and mock servers)"
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a transport the client creates itself",
    )
