"""Token caches keyed by QueryConfiguration.oauth_token_cache_key."""

import threading
from typing import Dict, Optional, Protocol

from .oauth import Token


class TokenCache(Protocol):
    """Storage for OAuth tokens shared between request pipelines.

    Implementations must tolerate concurrent get/put calls. Two pipelines
    asking for the same missing key may both fetch a token; the last put wins.
    """

    def get(self, key: str) -> Optional[Token]:
        ...

    def put(self, key: str, token: Token) -> None:
        ...


class InMemoryTokenCache:
    """Thread-safe in-process token cache."""

    def __init__(self):
        self._tokens: Dict[str, Token] = {}
        self.lock = threading.RLock()

    def get(self, key: str) -> Optional[Token]:
        with self.lock:
            return self._tokens.get(key)

    def put(self, key: str, token: Token) -> None:
        with self.lock:
            self._tokens[key] = token

    def remove(self, key: str) -> None:
        with self.lock:
            self._tokens.pop(key, None)

    def clear(self) -> None:
        with self.lock:
            self._tokens.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self._tokens)
