"""Authentication helpers: OAuth2.0 client credentials flow and token caches."""

from .cache import InMemoryTokenCache, TokenCache
from .oauth import AuthentMode, Token, compute_token_cache_key, parse_token_response

__all__ = [
    "AuthentMode",
    "InMemoryTokenCache",
    "Token",
    "TokenCache",
    "compute_token_cache_key",
    "parse_token_response",
]
