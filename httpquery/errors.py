"""Exception classes for the HTTP query engine.

Configuration-time problems are raised synchronously by the builder, before
any network call. Call-time problems are all surfaced as HTTPClientError,
which carries an ErrorKind, a message and, when there is one, the original
exception as ``__cause__``.
"""

from enum import Enum
from typing import Optional


class HTTPQueryError(Exception):
    """Base exception for all errors raised by httpquery.

    Example:
        try:
            response = HTTPClient(config).invoke()
        except HTTPQueryError as e:
            logger.error(f"Query failed: {e}")
    """


class InvalidArgumentError(HTTPQueryError, ValueError):
    """Raised when a builder receives a blank, null or negative required value."""


class InvalidStateError(HTTPQueryError, RuntimeError):
    """Raised when a builder operation conflicts with what is already configured.

    The typical case is setting a body of one kind after a body of another
    kind has been set on the same builder.
    """


class ErrorKind(str, Enum):
    """Kinds of call-time failures."""

    TOO_MANY_REDIRECTIONS = "TOO_MANY_REDIRECTIONS"
    REDIRECTION_REJECTED = "REDIRECTION_REJECTED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    AUTHENTICATION_FAILURE = "AUTHENTICATION_FAILURE"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    TRANSPORT = "TRANSPORT"
    UNSUPPORTED = "UNSUPPORTED"


class HTTPClientError(HTTPQueryError):
    """Raised when a call fails while it is being executed.

    Attributes:
        kind: What went wrong.
        message: Human readable description. For AUTHENTICATION_FAILURE it
            contains the token endpoint error body verbatim.

    Example:
        try:
            client.invoke()
        except HTTPClientError as e:
            if e.kind == ErrorKind.TOO_MANY_REDIRECTIONS:
                ...
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"
