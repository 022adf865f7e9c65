"""
Name: Query configuration builder.
Description: Validates request settings one at a time and produces the immutable QueryConfiguration, applying pagination, placeholder substitution and the OAuth token call on build.
"""

import logging
from typing import Iterable, Optional, Union

from .auth.oauth import (
    CLIENT_ID,
    CLIENT_SECRET,
    GRANT_TYPE,
    GRANT_TYPE_CLIENT_CREDENTIALS,
    SCOPE,
    AuthentMode,
    compute_token_cache_key,
    join_scopes,
)
from .config import HttpClientDefaults, get_defaults
from .errors import InvalidArgumentError, InvalidStateError
from .models import (
    APIKeyDestination,
    Attachment,
    AuthenticationType,
    AuthorizationTokenAuthentication,
    BodyFormat,
    FormBody,
    KeyValuePair,
    LoginPassword,
    LoginPasswordAuthentication,
    NoAuthentication,
    OAuth20ClientCredentialAuthentication,
    OffsetLimitPagination,
    PaginationParametersLocation,
    ProxyConfiguration,
    ProxyType,
    QueryConfiguration,
    ResponseFormat,
    TextBody,
)
from .pagination import get_pagination_strategy
from .substitutor import PlaceholderConfiguration, Substitutor

logger = logging.getLogger(__name__)


def _not_none(name: str, value):
    if value is None:
        raise InvalidArgumentError(f"{name} can't be null.")
    return value


def _not_blank(name: str, value: Optional[str], strip: bool = True) -> str:
    if value is None or not value.strip():
        raise InvalidArgumentError(f"{name} can't be empty nor null.")
    return value.strip() if strip else value


def _not_negative(name: str, value: Optional[int]) -> int:
    _not_none(name, value)
    if value < 0:
        raise InvalidArgumentError(f"{name} must be >= 0, got {value}.")
    return value


def _pair(key: str, value: Optional[str]) -> KeyValuePair:
    return KeyValuePair(key=key, value="" if value is None else value)


def _token_cache_key(oauth_call: QueryConfiguration) -> str:
    # Computed on the substituted token call
    body = oauth_call.body
    params = {p.key: p.value for p in body.params} if isinstance(body, FormBody) else {}
    credentials = oauth_call.login_password
    if credentials is not None:
        client_id, client_secret = credentials.login, credentials.password or ""
    else:
        client_id, client_secret = params.get(CLIENT_ID, ""), params.get(CLIENT_SECRET, "")
    scope = params.get(SCOPE)
    return compute_token_cache_key(
        oauth_call.url, client_id, client_secret, [scope] if scope else None
    )


class QueryConfigurationBuilder:
    """Accumulates the settings of one HTTP request.

    Each setter validates its input immediately, so configuration errors are
    raised before any network call. The builder keeps a frozen
    QueryConfiguration and replaces it with an updated copy on every call.

    Example:
        configuration = (
            QueryConfigurationBuilder.create("https://api.example.com/{version}/users")
            .add_path_param("version", "v2")
            .set_authorization_token("abc", prefix="Bearer")
            .build()
        )
    """

    def __init__(
        self,
        configuration: QueryConfiguration,
        defaults: Optional[HttpClientDefaults] = None,
    ):
        self._configuration = configuration
        self._defaults = defaults or get_defaults()
        # Builder of the token call, only set for OAuth2.0 client credentials
        self._oauth_call_builder: Optional["QueryConfigurationBuilder"] = None

    @classmethod
    def create(
        cls, url: str, defaults: Optional[HttpClientDefaults] = None
    ) -> "QueryConfigurationBuilder":
        """Start a configuration for the given url.

        Timeouts and redirect policy are initialised from the process-wide
        defaults unless other defaults are given.

        Raises:
            InvalidArgumentError: If url is blank
        """
        url = _not_blank("url", url)
        defaults = defaults or get_defaults()
        configuration = QueryConfiguration(
            url=url,
            connection_timeout=defaults.connect_timeout,
            receive_timeout=defaults.receive_timeout,
            accept_redirections=defaults.accept_redirections,
            max_redirections_on_same_uri=defaults.max_redirections_on_same_uri,
            accept_only_same_host_redirection=defaults.accept_only_same_host_redirection,
            accept_relative_url_redirection=defaults.accept_relative_url_redirection,
        )
        return cls(configuration, defaults)

    @property
    def configuration(self) -> QueryConfiguration:
        """Configuration as currently accumulated, before build()."""
        return self._configuration

    def _update(self, **changes) -> "QueryConfigurationBuilder":
        self._configuration = self._configuration.model_copy(update=changes)
        return self

    # Connection

    def set_connection_timeout(self, timeout: int) -> "QueryConfigurationBuilder":
        """Set the connection timeout in milliseconds."""
        return self._update(connection_timeout=_not_negative("connection_timeout", timeout))

    def set_receive_timeout(self, timeout: int) -> "QueryConfigurationBuilder":
        """Set the receive timeout in milliseconds."""
        return self._update(receive_timeout=_not_negative("receive_timeout", timeout))

    def bypass_certificate_validation(self, bypass: bool = True) -> "QueryConfigurationBuilder":
        return self._update(bypass_certificate_validation=bool(bypass))

    def set_method(self, method: str) -> "QueryConfigurationBuilder":
        return self._update(method=_not_blank("method", method))

    # Authentication

    def _set_authentication(self, authentication) -> "QueryConfigurationBuilder":
        # Any variant replaces the previous one and its token call
        self._oauth_call_builder = None
        return self._update(authentication=authentication)

    def set_no_authentication(self) -> "QueryConfigurationBuilder":
        return self._set_authentication(NoAuthentication())

    def _set_login_password(
        self, type: AuthenticationType, login: str, password: Optional[str]
    ) -> "QueryConfigurationBuilder":
        credentials = LoginPassword(
            login=_not_blank("login", login, strip=False), password=password
        )
        return self._set_authentication(
            LoginPasswordAuthentication(type=type, credentials=credentials)
        )

    def set_basic_authentication(
        self, login: str, password: Optional[str]
    ) -> "QueryConfigurationBuilder":
        return self._set_login_password(AuthenticationType.BASIC, login, password)

    def set_digest_authentication(
        self, login: str, password: Optional[str]
    ) -> "QueryConfigurationBuilder":
        return self._set_login_password(AuthenticationType.DIGEST, login, password)

    def set_ntlm_authentication(
        self, login: str, password: Optional[str]
    ) -> "QueryConfigurationBuilder":
        return self._set_login_password(AuthenticationType.NTLM, login, password)

    def set_authorization_token(
        self, token: str, prefix: Optional[str] = None
    ) -> "QueryConfigurationBuilder":
        """Send ``<prefix> <token>`` as the Authorization header.

        Args:
            token: The token
            prefix: Optional prefix, e.g. "Bearer"
        """
        token = _not_blank("token", token, strip=False)
        value = f"{prefix.strip()} {token}" if prefix and prefix.strip() else token
        return self._set_authentication(AuthorizationTokenAuthentication(token=value))

    def set_oauth20_client_credential(
        self,
        mode: Union[AuthentMode, str],
        token_endpoint: str,
        client_id: str,
        client_secret: str,
        scopes: Optional[Iterable[str]] = None,
    ) -> "QueryConfigurationBuilder":
        """Retrieve a token with the OAuth2.0 client credentials flow.

        The token call is a POST of an x-www-form-urlencoded body to the token
        endpoint. It is built along with this configuration and inherits its
        certificate and redirect settings.

        Args:
            mode: How client_id and client_secret are sent: as form fields,
                with Basic or with Digest authentication
            token_endpoint: URL of the token endpoint
            client_id: OAuth client id
            client_secret: OAuth client secret
            scopes: Requested scopes, sent space separated

        Returns:
            The builder
        """
        _not_none("mode", mode)
        try:
            mode = AuthentMode(mode)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown OAuth2.0 authentication mode '{mode}'.") from e

        token_endpoint = _not_blank("token_endpoint", token_endpoint)
        client_id = _not_blank("client_id", client_id)
        client_secret = _not_none("client_secret", client_secret)
        scopes = [s for s in (scopes or []) if s is not None]
        joined_scopes = join_scopes(scopes)

        oauth_builder = QueryConfigurationBuilder.create(token_endpoint, self._defaults)
        oauth_builder.set_method("POST")
        oauth_builder.add_x_www_form_urlencoded_body_param(
            GRANT_TYPE, GRANT_TYPE_CLIENT_CREDENTIALS
        )
        if joined_scopes:
            oauth_builder.add_x_www_form_urlencoded_body_param(SCOPE, joined_scopes)

        if mode == AuthentMode.FORM:
            oauth_builder.add_x_www_form_urlencoded_body_param(CLIENT_ID, client_id)
            oauth_builder.add_x_www_form_urlencoded_body_param(CLIENT_SECRET, client_secret)
        elif mode == AuthentMode.BASIC:
            oauth_builder.set_basic_authentication(client_id, client_secret)
        else:
            oauth_builder.set_digest_authentication(client_id, client_secret)

        token_cache_key = compute_token_cache_key(
            token_endpoint, client_id, client_secret, scopes
        )
        self._set_authentication(
            OAuth20ClientCredentialAuthentication(token_cache_key=token_cache_key)
        )
        self._oauth_call_builder = oauth_builder
        return self

    def set_api_key(
        self,
        destination: APIKeyDestination,
        name: str,
        prefix: Optional[str],
        token: str,
    ) -> "QueryConfigurationBuilder":
        """Send an API key as a header or a query parameter.

        Args:
            destination: Where the key is sent
            name: Name of the header or query parameter
            prefix: Optional prefix put before the token
            token: The key
        """
        _not_none("destination", destination)
        name = _not_blank("name", name)
        token = _not_blank("token", token)
        value = f"{(prefix or '').strip()} {token}".strip()
        if APIKeyDestination(destination) == APIKeyDestination.HEADERS:
            return self.add_header(name, value)
        return self.add_query_param(name, value)

    # Request parameters

    def add_path_param(self, key: str, value: Optional[str]) -> "QueryConfigurationBuilder":
        """Add a value for the ``{key}`` placeholder of the url."""
        key = _not_blank("path param key", key)
        params = dict(self._configuration.url_path_params)
        params[key] = "" if value is None else value
        return self._update(url_path_params=params)

    def add_header(self, key: str, value: Optional[str]) -> "QueryConfigurationBuilder":
        key = _not_blank("header key", key)
        return self._update(headers=self._configuration.headers + (_pair(key, value),))

    def add_query_param(self, key: str, value: Optional[str]) -> "QueryConfigurationBuilder":
        key = _not_blank("query param key", key)
        return self._update(
            query_params=self._configuration.query_params + (_pair(key, value),)
        )

    # Body

    def check_body_already_set(self, format: BodyFormat) -> None:
        """Check that no body of another format has been set.

        Raises:
            InvalidStateError: If the current body has another format
        """
        current = self._configuration.body_type
        if current is not None and current != format:
            raise InvalidStateError(
                f"Body has already been set as {current.value}, it can't be changed to {format.value}."
            )

    def _set_text_body(self, format: BodyFormat, content: Optional[str]) -> "QueryConfigurationBuilder":
        self.check_body_already_set(format)
        return self._update(body=TextBody(format=format, content=content or ""))

    def set_raw_text_body(self, content: Optional[str]) -> "QueryConfigurationBuilder":
        return self._set_text_body(BodyFormat.TEXT, content)

    def set_json_body(self, content: Optional[str]) -> "QueryConfigurationBuilder":
        return self._set_text_body(BodyFormat.JSON, content)

    def set_xml_body(self, content: Optional[str]) -> "QueryConfigurationBuilder":
        return self._set_text_body(BodyFormat.XML, content)

    def _form_body(self, format: BodyFormat) -> FormBody:
        self.check_body_already_set(format)
        body = self._configuration.body
        if isinstance(body, FormBody):
            return body
        return FormBody(format=format)

    def _add_body_param(
        self, format: BodyFormat, key: str, value: Optional[str]
    ) -> "QueryConfigurationBuilder":
        body = self._form_body(format)
        key = _not_blank("body param key", key)
        return self._update(
            body=body.model_copy(update={"params": body.params + (_pair(key, value),)})
        )

    def add_multipart_form_data_body_param(
        self, key: str, value: Optional[str]
    ) -> "QueryConfigurationBuilder":
        return self._add_body_param(BodyFormat.FORM_DATA, key, value)

    def add_x_www_form_urlencoded_body_param(
        self, key: str, value: Optional[str]
    ) -> "QueryConfigurationBuilder":
        return self._add_body_param(BodyFormat.X_WWW_FORM_URLENCODED, key, value)

    def add_attachment(
        self,
        name: str,
        content: Union[str, bytes],
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> "QueryConfigurationBuilder":
        """Add a file part to a multipart/form-data body.

        Args:
            name: Name of the form field
            content: Content of the part
            filename: Optional file name sent in the part headers
            content_type: Optional content type of the part
        """
        body = self._form_body(BodyFormat.FORM_DATA)
        attachment = Attachment(
            name=_not_blank("attachment name", name),
            content=_not_none("attachment content", content),
            filename=filename,
            content_type=content_type,
        )
        return self._update(
            body=body.model_copy(update={"attachments": body.attachments + (attachment,)})
        )

    # Response

    def decompress_response_payload(self, decompress: bool = True) -> "QueryConfigurationBuilder":
        return self._update(decompress_response_payload=bool(decompress))

    def set_response_format(self, response_format: ResponseFormat) -> "QueryConfigurationBuilder":
        _not_none("response_format", response_format)
        return self._update(response_format=ResponseFormat(response_format))

    # Redirections

    def set_max_redirections_on_same_uri(self, max_redirections: int) -> "QueryConfigurationBuilder":
        return self._update(
            max_redirections_on_same_uri=_not_negative(
                "max_redirections_on_same_uri", max_redirections
            )
        )

    def accept_redirections(self, accept: bool = True) -> "QueryConfigurationBuilder":
        return self._update(accept_redirections=bool(accept))

    def accept_only_same_host_redirection(self, accept: bool = True) -> "QueryConfigurationBuilder":
        return self._update(accept_only_same_host_redirection=bool(accept))

    def accept_relative_url_redirection(self, accept: bool = True) -> "QueryConfigurationBuilder":
        return self._update(accept_relative_url_redirection=bool(accept))

    def set_allowed_uri_redirection(self, uri: str) -> "QueryConfigurationBuilder":
        """Only accept redirections to urls starting with the given uri."""
        return self._update(allowed_uri_redirection=_not_blank("allowed_uri_redirection", uri))

    # Proxy

    def _set_proxy(
        self,
        type: ProxyType,
        host: str,
        port: int,
        login: Optional[str],
        password: Optional[str],
    ) -> "QueryConfigurationBuilder":
        credentials = None
        if login is not None or password is not None:
            credentials = LoginPassword(
                login=login.strip() if login is not None else None, password=password
            )
        proxy = ProxyConfiguration(
            type=type,
            host=_not_blank("proxy host", host),
            port=_not_negative("proxy port", port),
            credentials=credentials,
        )
        return self._update(proxy=proxy)

    def set_http_proxy(
        self,
        host: str,
        port: int,
        login: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "QueryConfigurationBuilder":
        return self._set_proxy(ProxyType.HTTP, host, port, login, password)

    def set_socks_proxy(
        self,
        host: str,
        port: int,
        login: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "QueryConfigurationBuilder":
        return self._set_proxy(ProxyType.SOCKS, host, port, login, password)

    # Pagination

    def set_offset_limit_pagination(
        self,
        location: PaginationParametersLocation,
        offset_param_name: str,
        offset_value: str,
        limit_param_name: str,
        limit_value: str,
        elements_path: Optional[str] = None,
    ) -> "QueryConfigurationBuilder":
        """Page through the results with offset and limit parameters.

        Args:
            location: Whether the parameters are sent as query params or headers
            offset_param_name: Name of the offset parameter
            offset_value: Offset of the first page
            limit_param_name: Name of the limit parameter
            limit_value: Number of elements requested per page
            elements_path: Dotted path of the JSON array holding the elements
        """
        pagination = OffsetLimitPagination(
            location=PaginationParametersLocation(_not_none("location", location)),
            offset_param_name=_not_blank("offset_param_name", offset_param_name),
            offset_value=str(_not_none("offset_value", offset_value)),
            limit_param_name=_not_blank("limit_param_name", limit_param_name),
            limit_value=str(_not_none("limit_value", limit_value)),
            elements_path=elements_path or "",
        )
        return self._update(pagination=pagination, init_pagination_done=False)

    # Build

    def build(self, substitutor: Optional[Substitutor] = None) -> QueryConfiguration:
        """Produce the final configuration.

        The passes run in this order:
        1. the pagination strategy adds the first page parameters
        2. the given substitutor replaces placeholders of every text setting,
           including the OAuth token call
        3. url placeholders are replaced with the path params
        4. the OAuth token call is built and inherits the certificate and
           redirect settings

        Args:
            substitutor: Optional substitutor for placeholders from an
                external source

        Returns:
            The configuration
        """
        self._initiate_pagination()
        if substitutor is not None:
            self._substitute(substitutor)
            if self._oauth_call_builder is not None:
                self._oauth_call_builder._substitute(substitutor)
        self._substitute_url()
        self._finalize_oauth_configuration()
        return self._configuration

    def _initiate_pagination(self) -> None:
        strategy = get_pagination_strategy(self._configuration)
        self._configuration = strategy.initiate_pagination(self._configuration)

    def _substitute(self, substitutor: Substitutor) -> None:
        configuration = self._configuration
        replace = substitutor.replace

        def pairs(values):
            return tuple(_pair(p.key, replace(p.value)) for p in values)

        changes = {
            "url": replace(configuration.url),
            "method": replace(configuration.method),
            "allowed_uri_redirection": replace(configuration.allowed_uri_redirection),
            "url_path_params": {
                k: replace(v) for k, v in configuration.url_path_params.items()
            },
            "query_params": pairs(configuration.query_params),
            "headers": pairs(configuration.headers),
        }

        authentication = configuration.authentication
        if isinstance(authentication, LoginPasswordAuthentication):
            credentials = authentication.credentials
            changes["authentication"] = authentication.model_copy(
                update={
                    "credentials": LoginPassword(
                        login=replace(credentials.login),
                        password=replace(credentials.password),
                    )
                }
            )
        elif isinstance(authentication, AuthorizationTokenAuthentication):
            changes["authentication"] = authentication.model_copy(
                update={"token": replace(authentication.token)}
            )

        body = configuration.body
        if isinstance(body, TextBody):
            changes["body"] = body.model_copy(update={"content": replace(body.content)})
        elif isinstance(body, FormBody):
            changes["body"] = body.model_copy(update={"params": pairs(body.params)})

        proxy = configuration.proxy
        if proxy is not None:
            credentials = proxy.credentials
            if credentials is not None:
                credentials = LoginPassword(
                    login=replace(credentials.login),
                    password=replace(credentials.password),
                )
            changes["proxy"] = proxy.model_copy(
                update={"host": replace(proxy.host), "credentials": credentials}
            )

        self._update(**changes)

    def _substitute_url(self) -> None:
        placeholder = PlaceholderConfiguration(
            self._defaults.url_placeholder_begin, self._defaults.url_placeholder_end
        )
        substitutor = Substitutor.from_mapping(
            self._configuration.url_path_params, placeholder
        )
        self._update(url=substitutor.replace(self._configuration.url))

    def _finalize_oauth_configuration(self) -> None:
        authentication = self._configuration.authentication
        if (
            not isinstance(authentication, OAuth20ClientCredentialAuthentication)
            or self._oauth_call_builder is None
        ):
            return

        parent = self._configuration
        oauth_call = self._oauth_call_builder.build().model_copy(
            update={
                "bypass_certificate_validation": parent.bypass_certificate_validation,
                "accept_redirections": parent.accept_redirections,
                "max_redirections_on_same_uri": parent.max_redirections_on_same_uri,
                "accept_only_same_host_redirection": parent.accept_only_same_host_redirection,
                "accept_relative_url_redirection": parent.accept_relative_url_redirection,
                "allowed_uri_redirection": parent.allowed_uri_redirection,
            }
        )
        logger.debug(f"OAuth2.0 token call configured on '{oauth_call.url}'.")
        self._update(
            authentication=authentication.model_copy(
                update={
                    "oauth_call": oauth_call,
                    "token_cache_key": _token_cache_key(oauth_call),
                }
            )
        )
