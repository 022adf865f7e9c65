"""
Name: HTTP client.
Description: Reference invoker executing a built QueryConfiguration with httpx. It applies authentication (including the OAuth2.0 token flow through a token cache), enforces the redirect policy and wraps responses with pagination support.
"""

import io
import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from .auth.cache import InMemoryTokenCache, TokenCache
from .auth.oauth import Token, parse_token_response
from .config import HttpClientDefaults, get_defaults
from .errors import ErrorKind, HTTPClientError
from .models import (
    AuthenticationType,
    BodyFormat,
    FormBody,
    ProxyType,
    QueryConfiguration,
    TextBody,
)
from .pagination import PaginationStrategy, get_pagination_strategy, iterate_pages
from .redirects import RedirectTracker
from .utils import get_charset_name

logger = logging.getLogger(__name__)

AUTHORIZATION = "Authorization"
CONTENT_TYPE = "Content-Type"
ACCEPT = "Accept"
ACCEPT_ENCODING = "Accept-Encoding"
LOCATION = "Location"

# Values of a repeated response header are joined with this separator
HEADER_VALUES_SEPARATOR = ";"

NTLMAuthFactory = Callable[[str, Optional[str]], httpx.Auth]

_STATUS_FAMILIES = {
    1: "INFORMATIONAL",
    2: "SUCCESSFUL",
    3: "REDIRECTION",
    4: "CLIENT_ERROR",
    5: "SERVER_ERROR",
}


class Status(BaseModel):
    """HTTP status of a response."""

    model_config = ConfigDict(frozen=True)

    code: int
    reason: str = ""

    @property
    def family(self) -> str:
        return _STATUS_FAMILIES.get(self.code // 100, "OTHER")

    @property
    def code_with_reason(self) -> str:
        return f"{self.code} {self.reason}".strip()


class HTTPResponse:
    """Response of one physical call.

    The body is fully read when the response is created. For paginated
    configurations, next_page_query_configuration() gives the configuration
    of the following call.
    """

    def __init__(
        self,
        configuration: QueryConfiguration,
        status: Status,
        headers: Dict[str, str],
        content: bytes,
        oauth20_token: Optional[Token] = None,
    ):
        self.configuration = configuration
        self.status = status
        self.headers = headers
        self.content = content
        self.encoding = get_charset_name(headers)
        self.oauth20_token = oauth20_token
        self._pagination_strategy: Optional[PaginationStrategy] = None

    @property
    def is_success(self) -> bool:
        return self.status.family == "SUCCESSFUL"

    def body_as_bytes(self) -> bytes:
        return self.content

    def body_as_string(self) -> str:
        try:
            return self.content.decode(self.encoding, errors="replace")
        except LookupError:
            logger.warning(f"Unknown response charset '{self.encoding}', decoding as utf-8.")
            return self.content.decode("utf-8", errors="replace")

    def body_as_stream(self) -> io.BytesIO:
        return io.BytesIO(self.content)

    @property
    def pagination_strategy(self) -> PaginationStrategy:
        if self._pagination_strategy is None:
            self._pagination_strategy = get_pagination_strategy(self.configuration)
        return self._pagination_strategy

    def next_page_query_configuration(self) -> Optional[QueryConfiguration]:
        """Configuration of the next page, None when there is no more page."""
        return self.pagination_strategy.get_next_page_configuration(self)

    @property
    def last_page_count(self) -> int:
        """Number of elements received in this response."""
        return self.pagination_strategy.get_last_count(self)

    def __repr__(self) -> str:
        return f"HTTPResponse({self.status.code_with_reason}, {len(self.content)} bytes)"


def _join_headers(headers: httpx.Headers) -> Dict[str, str]:
    joined: Dict[str, str] = {}
    for name, value in headers.multi_items():
        if name in joined:
            joined[name] = f"{joined[name]}{HEADER_VALUES_SEPARATOR}{value}"
        else:
            joined[name] = value
    return joined


def _has_header(headers: List[Tuple[str, str]], name: str) -> bool:
    return any(key.lower() == name.lower() for key, _ in headers)


class HTTPClient:
    """Execute a QueryConfiguration.

    Args:
        configuration: Built configuration of the call
        token_cache: Cache of OAuth2.0 tokens, shared between clients. A
            private in-memory cache is used when not given.
        transport: Optional httpx transport, e.g. httpx.MockTransport
        defaults: Defaults used to parse OAuth2.0 token responses
        ntlm_auth: Factory of the httpx.Auth used for NTLM authentication,
            called with login and password

    Example:
        client = HTTPClient(configuration, token_cache=shared_cache)
        response = client.invoke()
        print(response.status.code_with_reason)
    """

    def __init__(
        self,
        configuration: QueryConfiguration,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
        defaults: Optional[HttpClientDefaults] = None,
        ntlm_auth: Optional[NTLMAuthFactory] = None,
    ):
        self.configuration = configuration
        self.token_cache = token_cache if token_cache is not None else InMemoryTokenCache()
        self.transport = transport
        self.defaults = defaults or get_defaults()
        self.ntlm_auth = ntlm_auth

    def _with_configuration(self, configuration: QueryConfiguration) -> "HTTPClient":
        return HTTPClient(
            configuration,
            token_cache=self.token_cache,
            transport=self.transport,
            defaults=self.defaults,
            ntlm_auth=self.ntlm_auth,
        )

    def invoke(self) -> HTTPResponse:
        """Execute the call.

        Returns:
            The response, whatever its status

        Raises:
            HTTPClientError: On timeout, transport failure, rejected
                redirection or OAuth2.0 token retrieval failure
        """
        configuration = self.configuration
        headers = [(p.key, p.value) for p in configuration.headers]
        auth: Optional[httpx.Auth] = None
        token: Optional[Token] = None

        auth_type = configuration.authentication_type
        if auth_type in (AuthenticationType.BASIC, AuthenticationType.DIGEST, AuthenticationType.NTLM):
            credentials = configuration.login_password
            if auth_type == AuthenticationType.BASIC:
                auth = httpx.BasicAuth(credentials.login, credentials.password or "")
            elif auth_type == AuthenticationType.DIGEST:
                auth = httpx.DigestAuth(credentials.login, credentials.password or "")
            elif self.ntlm_auth is None:
                raise HTTPClientError(
                    ErrorKind.UNSUPPORTED,
                    "NTLM authentication needs an ntlm_auth factory.",
                )
            else:
                auth = self.ntlm_auth(credentials.login, credentials.password)
        elif auth_type == AuthenticationType.AUTHORIZATION_TOKEN:
            headers.append((AUTHORIZATION, configuration.authorization_token))
        elif auth_type == AuthenticationType.OAUTH20_CLIENT_CREDENTIAL:
            token = self.get_oauth20_token()
            headers.append((AUTHORIZATION, token.authorization_value))

        if configuration.response_format is not None and not _has_header(headers, ACCEPT):
            headers.append((ACCEPT, configuration.response_format.accepted_type))

        # Without decompression the payload is expected as the server stores it
        if not configuration.decompress_response_payload and not _has_header(headers, ACCEPT_ENCODING):
            headers.append((ACCEPT_ENCODING, "identity"))

        return self._execute(headers, auth, token)

    def get_oauth20_token(self) -> Token:
        """Return the cached OAuth2.0 token, fetching a new one when missing or expired."""
        key = self.configuration.oauth_token_cache_key
        token = self.token_cache.get(key)
        if token is not None and not token.is_expired():
            return token

        oauth_call = self.configuration.oauth_call
        if oauth_call is None:
            raise HTTPClientError(
                ErrorKind.AUTHENTICATION_FAILURE,
                "OAuth2.0 token call is not configured, the configuration must be built first.",
            )

        logger.info(f"Retrieving OAuth2.0 token from '{oauth_call.url}'.")
        response = self._with_configuration(oauth_call).invoke()
        token = parse_token_response(
            response.status.code,
            response.status.reason,
            response.body_as_string(),
            self.defaults,
        )
        self.token_cache.put(key, token)
        logger.info(f"OAuth2.0 token retrieved, expires in {token.expires_in}s.")
        return token

    def iterate_pages(self, max_pages: Optional[int] = None) -> Iterator[HTTPResponse]:
        """Call each page of the configuration in turn.

        Args:
            max_pages: Optional maximum number of calls

        Yields:
            The response of each page
        """
        return iterate_pages(
            self.configuration,
            lambda configuration: self._with_configuration(configuration).invoke(),
            max_pages,
        )

    def _client_kwargs(self) -> dict:
        configuration = self.configuration
        kwargs = {
            "timeout": httpx.Timeout(
                configuration.receive_timeout / 1000,
                connect=configuration.connection_timeout / 1000,
            ),
            "verify": not configuration.bypass_certificate_validation,
            "follow_redirects": False,
        }
        # A given transport replaces the proxy transports
        if self.transport is not None:
            kwargs["transport"] = self.transport
        elif configuration.proxy is not None:
            kwargs["proxy"] = self._proxy_url()
        return kwargs

    def _proxy_url(self) -> str:
        proxy = self.configuration.proxy
        scheme = "socks5" if proxy.type == ProxyType.SOCKS else "http"
        userinfo = ""
        if proxy.credentials is not None and proxy.credentials.login:
            userinfo = quote(proxy.credentials.login, safe="")
            if proxy.credentials.password is not None:
                userinfo += ":" + quote(proxy.credentials.password, safe="")
            userinfo += "@"
        return f"{scheme}://{userinfo}{proxy.host}:{proxy.port}"

    def _body_kwargs(self, headers: List[Tuple[str, str]]) -> dict:
        body = self.configuration.body
        if isinstance(body, TextBody):
            if not _has_header(headers, CONTENT_TYPE):
                headers.append((CONTENT_TYPE, body.format.content_type))
            return {"content": body.content.encode("utf-8")}

        if isinstance(body, FormBody):
            if body.format == BodyFormat.X_WWW_FORM_URLENCODED:
                if not _has_header(headers, CONTENT_TYPE):
                    headers.append((CONTENT_TYPE, body.format.content_type))
                return {"content": urlencode([(p.key, p.value) for p in body.params])}

            # httpx sets the multipart Content-Type with its boundary
            files = [(p.key, (None, p.value)) for p in body.params]
            files.extend(
                (a.name, (a.filename, a.content, a.content_type or "application/octet-stream"))
                for a in body.attachments
            )
            return {"files": files} if files else {}
        return {}

    def _execute(
        self,
        headers: List[Tuple[str, str]],
        auth: Optional[httpx.Auth],
        token: Optional[Token],
    ) -> HTTPResponse:
        configuration = self.configuration
        body_kwargs = self._body_kwargs(headers)

        try:
            with httpx.Client(**self._client_kwargs()) as client:
                request = client.build_request(
                    configuration.effective_method,
                    configuration.url,
                    params=[(p.key, p.value) for p in configuration.query_params],
                    headers=headers,
                    **body_kwargs,
                )
                tracker = RedirectTracker(configuration, str(request.url))

                while True:
                    response = client.send(request, auth=auth, stream=True)
                    try:
                        next_request = response.next_request
                        location = response.headers.get(LOCATION)
                        if (
                            response.is_redirect
                            and next_request is not None
                            and tracker.follow(location, str(next_request.url))
                        ):
                            request = next_request
                            continue

                        content = response.read()
                    finally:
                        response.close()
                    break
        except httpx.TimeoutException as e:
            raise HTTPClientError(
                ErrorKind.REQUEST_TIMEOUT, f"Request to '{configuration.url}' timed out: {e}", e
            )
        except httpx.HTTPError as e:
            raise HTTPClientError(
                ErrorKind.TRANSPORT, f"Request to '{configuration.url}' failed: {e}", e
            )

        status = Status(code=response.status_code, reason=response.reason_phrase)
        logger.info(
            f"{request.method} {request.url.scheme}://{request.url.host}{request.url.path}"
            f" -> {status.code_with_reason}"
        )
        return HTTPResponse(
            configuration,
            status,
            _join_headers(response.headers),
            content,
            oauth20_token=token,
        )
