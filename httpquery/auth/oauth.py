"""OAuth2.0 client credentials flow.

Keys of the token endpoint protocol, derivation of the token cache key, the
Token model and the parsing of token endpoint responses.
"""

import hashlib
import json
import logging
import time
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from ..config import HttpClientDefaults, get_defaults
from ..errors import ErrorKind, HTTPClientError

logger = logging.getLogger(__name__)

BEARER = "Bearer"
GRANT_TYPE_CLIENT_CREDENTIALS = "client_credentials"

# Request keys
CLIENT_ID = "client_id"
CLIENT_SECRET = "client_secret"
GRANT_TYPE = "grant_type"
SCOPE = "scope"

# Successful response keys
ACCESS_TOKEN = "access_token"
TOKEN_TYPE = "token_type"
EXPIRES_IN = "expires_in"

# Error response keys
ERROR = "error"
ERROR_DESCRIPTION = "error_description"
ERROR_URI = "error_uri"


class AuthentMode(str, Enum):
    """How the client credentials are sent to the token endpoint."""

    FORM = "FORM"
    BASIC = "BASIC"
    DIGEST = "DIGEST"


def join_scopes(scopes: Optional[Iterable[str]]) -> str:
    """Join scopes with a space, in the given order."""
    if not scopes:
        return ""
    return " ".join(scopes).strip()


def compute_token_cache_key(
    token_endpoint: str,
    client_id: str,
    client_secret: str,
    scopes: Optional[Iterable[str]] = None,
) -> str:
    """Compute the key identifying the tokens of one client credentials flow.

    Identical inputs always give the same key. Any difference, including the
    order of the scopes, gives another key.

    Args:
        token_endpoint: URL of the token endpoint
        client_id: OAuth client id
        client_secret: OAuth client secret
        scopes: Requested scopes

    Returns:
        Hex encoded SHA-256 digest
    """
    digest = hashlib.sha256()
    for part in (
        token_endpoint,
        GRANT_TYPE_CLIENT_CREDENTIALS,
        join_scopes(scopes),
        client_id,
        client_secret,
    ):
        digest.update(part.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


def current_time_millis() -> int:
    return int(time.time() * 1000)


class Token(BaseModel):
    """An OAuth2.0 access token.

    Args:
        access_token: The token value
        token_type: Prefix used in the Authorization header, usually Bearer
        delivered_at: Epoch time in milliseconds when the token was received
        expires_in: Lifetime in seconds, already reduced by the security duration
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = BEARER
    delivered_at: int
    expires_in: int = 0

    @property
    def authorization_value(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def is_expired(self, now: Optional[int] = None) -> bool:
        """Check whether the token has expired.

        Args:
            now: Epoch time in milliseconds, the current time if not given

        Returns:
            True if the token has expired
        """
        if now is None:
            now = current_time_millis()
        return now > self.delivered_at + self.expires_in * 1000


def _get_string(payload: dict, key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def parse_token_response(
    status_code: int,
    reason: str,
    body: str,
    defaults: Optional[HttpClientDefaults] = None,
    now: Optional[int] = None,
) -> Token:
    """Build a Token from a token endpoint response.

    Args:
        status_code: HTTP status code of the response
        reason: HTTP reason phrase
        body: Response body
        defaults: Defaults giving the security duration and forced lifetime
        now: Delivery time in epoch milliseconds, the current time if not given

    Returns:
        The retrieved token

    Raises:
        HTTPClientError: AUTHENTICATION_FAILURE when the endpoint rejected the
            request, INVALID_RESPONSE when the response can't be used.
    """
    defaults = defaults or get_defaults()
    delivered_at = now if now is not None else current_time_millis()
    success = 200 <= status_code < 300

    try:
        payload = json.loads(body) if body else {}
    except ValueError as e:
        if not success:
            raise HTTPClientError(
                ErrorKind.AUTHENTICATION_FAILURE,
                f"Failing to retrieve OAuth 2.0 token:\nstatus = {status_code} {reason}\nbody = {body}",
                e,
            )
        raise HTTPClientError(
            ErrorKind.INVALID_RESPONSE,
            "Can't parse OAuth2.0 token response as a json.",
            e,
        )

    if not isinstance(payload, dict):
        payload = {}

    if not success:
        raise HTTPClientError(
            ErrorKind.AUTHENTICATION_FAILURE,
            "Failing to retrieve OAuth 2.0 token:"
            f"\nstatus = {status_code} {reason}"
            f"\nerror = {_get_string(payload, ERROR)}"
            f"\ndescription = {_get_string(payload, ERROR_DESCRIPTION)}"
            f"\nuri = {_get_string(payload, ERROR_URI)}"
            f"\nbody = {body}",
        )

    access_token = payload.get(ACCESS_TOKEN)
    if access_token is None:
        raise HTTPClientError(
            ErrorKind.INVALID_RESPONSE,
            f"OAuth 2.0 {ACCESS_TOKEN} response field is null. No token retrieved.",
        )

    token_type = payload.get(TOKEN_TYPE) or BEARER
    try:
        expires_in = int(payload.get(EXPIRES_IN) or 0)
    except (TypeError, ValueError) as e:
        raise HTTPClientError(
            ErrorKind.INVALID_RESPONSE,
            f"OAuth 2.0 {EXPIRES_IN} response field is not a number: {payload.get(EXPIRES_IN)}",
            e,
        )

    if defaults.oauth_token_forced_expires_in is not None:
        expires_in = defaults.oauth_token_forced_expires_in
        logger.info(f"Force expires_in value for oauth2.0 token to '{expires_in}'.")

    # Let some time to do the HTTP call
    security_duration = defaults.token_security_duration // 1000
    if expires_in > security_duration:
        expires_in -= security_duration

    return Token(
        access_token=str(access_token),
        token_type=str(token_type),
        delivered_at=delivered_at,
        expires_in=expires_in,
    )
