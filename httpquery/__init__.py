"""
Name: httpquery package.
Description: Declarative HTTP query engine. Defines the package version and exports the builder, the query configuration model, substitution, pagination, OAuth2.0 token handling and the httpx based client.
"""

__version__ = "0.1.0"

from .auth import AuthentMode, InMemoryTokenCache, Token, TokenCache
from .builder import QueryConfigurationBuilder
from .client import HTTPClient, HTTPResponse, Status
from .config import HttpClientDefaults, get_defaults, reload_defaults
from .errors import (
    ErrorKind,
    HTTPClientError,
    HTTPQueryError,
    InvalidArgumentError,
    InvalidStateError,
)
from .models import (
    APIKeyDestination,
    AuthenticationType,
    BodyFormat,
    PaginationParametersLocation,
    ProxyType,
    QueryConfiguration,
    ResponseFormat,
)
from .pagination import (
    NoPagination,
    OffsetLimitPaginationStrategy,
    PaginationStrategy,
    iterate_pages,
)
from .redirects import RedirectTracker
from .substitutor import PlaceholderConfiguration, Substitutor
from .utils import RetryConfig, RetryHandler, configure_logging

__all__ = [
    "APIKeyDestination",
    "AuthentMode",
    "AuthenticationType",
    "BodyFormat",
    "ErrorKind",
    "HTTPClient",
    "HTTPClientError",
    "HTTPQueryError",
    "HTTPResponse",
    "HttpClientDefaults",
    "InMemoryTokenCache",
    "InvalidArgumentError",
    "InvalidStateError",
    "NoPagination",
    "OffsetLimitPaginationStrategy",
    "PaginationParametersLocation",
    "PaginationStrategy",
    "PlaceholderConfiguration",
    "ProxyType",
    "QueryConfiguration",
    "QueryConfigurationBuilder",
    "RedirectTracker",
    "ResponseFormat",
    "RetryConfig",
    "RetryHandler",
    "Status",
    "Substitutor",
    "Token",
    "TokenCache",
    "configure_logging",
    "get_defaults",
    "iterate_pages",
    "reload_defaults",
]
