"""Models describing a declarative HTTP query."""

from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    DEFAULT_ACCEPT_ONLY_SAME_HOST_REDIRECTIONS,
    DEFAULT_ACCEPT_REDIRECTIONS,
    DEFAULT_ACCEPT_RELATIVE_REDIRECTIONS,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_REDIRECTIONS_ON_SAME_URI,
    DEFAULT_METHOD,
    DEFAULT_RECEIVE_TIMEOUT,
)


class AuthenticationType(str, Enum):
    """Authentication strategies."""

    NONE = "None"
    BASIC = "Basic"
    DIGEST = "Digest"
    NTLM = "NTLM"
    AUTHORIZATION_TOKEN = "AuthorizationToken"
    OAUTH20_CLIENT_CREDENTIAL = "OAuth20ClientCredential"


class BodyFormat(str, Enum):
    """Kinds of request body."""

    TEXT = "TEXT"
    JSON = "JSON"
    XML = "XML"
    FORM_DATA = "FORM_DATA"
    X_WWW_FORM_URLENCODED = "X_WWW_FORM_URLENCODED"

    @property
    def content_type(self) -> str:
        """MIME type sent in the Content-Type header."""
        return _BODY_CONTENT_TYPES[self]


_BODY_CONTENT_TYPES = {
    BodyFormat.TEXT: "text/plain",
    BodyFormat.JSON: "application/json",
    BodyFormat.XML: "text/xml",
    BodyFormat.FORM_DATA: "multipart/form-data",
    BodyFormat.X_WWW_FORM_URLENCODED: "application/x-www-form-urlencoded",
}


class ResponseFormat(str, Enum):
    """Expected response formats, sent as the Accept header."""

    JSON = "JSON"
    XML = "XML"
    TEXT = "TEXT"
    RAW = "RAW"

    @property
    def accepted_type(self) -> str:
        return _ACCEPTED_TYPES[self]


_ACCEPTED_TYPES = {
    ResponseFormat.JSON: "application/json",
    ResponseFormat.XML: "application/xml",
    ResponseFormat.TEXT: "text/plain",
    ResponseFormat.RAW: "*/*",
}


class ProxyType(str, Enum):
    HTTP = "HTTP"
    SOCKS = "SOCKS"


class PaginationParametersLocation(str, Enum):
    """Where pagination parameters are sent."""

    QUERY_PARAMETERS = "QUERY_PARAMETERS"
    HEADERS = "HEADERS"


class APIKeyDestination(str, Enum):
    QUERY_PARAMETERS = "QUERY_PARAMETERS"
    HEADERS = "HEADERS"


class KeyValuePair(BaseModel):
    """A single header, query parameter or form field."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""


class LoginPassword(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: Optional[str] = None
    password: Optional[str] = None


class ProxyConfiguration(BaseModel):
    """Proxy used to reach the target host."""

    model_config = ConfigDict(frozen=True)

    type: ProxyType
    host: str
    port: int = Field(ge=0)
    credentials: Optional[LoginPassword] = None


class OffsetLimitPagination(BaseModel):
    """Offset/limit pagination settings.

    elements_path locates the returned collection in a JSON response, as a
    dotted path like ``.data.items``. An empty path means the response root
    is the collection.
    """

    model_config = ConfigDict(frozen=True)

    location: PaginationParametersLocation
    offset_param_name: str
    offset_value: str
    limit_param_name: str
    limit_value: str
    elements_path: str = ""


class Attachment(BaseModel):
    """Extra part of a multipart/form-data body."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: Union[str, bytes]
    filename: Optional[str] = None
    content_type: Optional[str] = None


# Authentication variants


class NoAuthentication(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[AuthenticationType.NONE] = AuthenticationType.NONE


class LoginPasswordAuthentication(BaseModel):
    """Basic, Digest or NTLM authentication."""

    model_config = ConfigDict(frozen=True)

    type: Literal[
        AuthenticationType.BASIC, AuthenticationType.DIGEST, AuthenticationType.NTLM
    ]
    credentials: LoginPassword


class AuthorizationTokenAuthentication(BaseModel):
    """Prefixed token sent as is in the Authorization header."""

    model_config = ConfigDict(frozen=True)

    type: Literal[AuthenticationType.AUTHORIZATION_TOKEN] = (
        AuthenticationType.AUTHORIZATION_TOKEN
    )
    token: str


class OAuth20ClientCredentialAuthentication(BaseModel):
    """OAuth2.0 client credentials flow.

    oauth_call is the query used to retrieve the token. It is set when the
    parent configuration is built.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal[AuthenticationType.OAUTH20_CLIENT_CREDENTIAL] = (
        AuthenticationType.OAUTH20_CLIENT_CREDENTIAL
    )
    token_cache_key: str
    oauth_call: Optional["QueryConfiguration"] = None


Authentication = Annotated[
    Union[
        NoAuthentication,
        LoginPasswordAuthentication,
        AuthorizationTokenAuthentication,
        OAuth20ClientCredentialAuthentication,
    ],
    Field(discriminator="type"),
]


# Body variants


class TextBody(BaseModel):
    """Plain text body: raw text, JSON or XML."""

    model_config = ConfigDict(frozen=True)

    format: Literal[BodyFormat.TEXT, BodyFormat.JSON, BodyFormat.XML]
    content: str = ""


class FormBody(BaseModel):
    """multipart/form-data or application/x-www-form-urlencoded body."""

    model_config = ConfigDict(frozen=True)

    format: Literal[BodyFormat.FORM_DATA, BodyFormat.X_WWW_FORM_URLENCODED]
    params: Tuple[KeyValuePair, ...] = ()
    attachments: Tuple[Attachment, ...] = ()


Body = Annotated[Union[TextBody, FormBody], Field(discriminator="format")]


class QueryConfiguration(BaseModel):
    """Full declarative description of one HTTP request.

    Instances are immutable. The builder produces them and the pagination
    strategy derives new ones for the following pages.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    method: Optional[str] = None
    connection_timeout: int = Field(default=DEFAULT_CONNECT_TIMEOUT, ge=0)
    receive_timeout: int = Field(default=DEFAULT_RECEIVE_TIMEOUT, ge=0)
    bypass_certificate_validation: bool = False
    authentication: Authentication = Field(default_factory=NoAuthentication)
    # Only used to replace placeholders of the url
    url_path_params: Dict[str, str] = Field(default_factory=dict)
    query_params: Tuple[KeyValuePair, ...] = ()
    headers: Tuple[KeyValuePair, ...] = ()
    body: Optional[Body] = None
    decompress_response_payload: bool = False

    # Redirect policy, enforced by the invoker
    accept_redirections: bool = DEFAULT_ACCEPT_REDIRECTIONS
    max_redirections_on_same_uri: int = Field(
        default=DEFAULT_MAX_REDIRECTIONS_ON_SAME_URI, ge=0
    )
    accept_only_same_host_redirection: bool = DEFAULT_ACCEPT_ONLY_SAME_HOST_REDIRECTIONS
    accept_relative_url_redirection: bool = DEFAULT_ACCEPT_RELATIVE_REDIRECTIONS
    allowed_uri_redirection: Optional[str] = None

    response_format: Optional[ResponseFormat] = None
    proxy: Optional[ProxyConfiguration] = None
    pagination: Optional[OffsetLimitPagination] = None
    # True once the pagination strategy has added the first page parameters
    init_pagination_done: bool = False

    @property
    def effective_method(self) -> str:
        return self.method or DEFAULT_METHOD

    @property
    def authentication_type(self) -> AuthenticationType:
        return self.authentication.type

    @property
    def login_password(self) -> Optional[LoginPassword]:
        if isinstance(self.authentication, LoginPasswordAuthentication):
            return self.authentication.credentials
        return None

    @property
    def authorization_token(self) -> Optional[str]:
        if isinstance(self.authentication, AuthorizationTokenAuthentication):
            return self.authentication.token
        return None

    @property
    def oauth_call(self) -> Optional["QueryConfiguration"]:
        if isinstance(self.authentication, OAuth20ClientCredentialAuthentication):
            return self.authentication.oauth_call
        return None

    @property
    def oauth_token_cache_key(self) -> Optional[str]:
        if isinstance(self.authentication, OAuth20ClientCredentialAuthentication):
            return self.authentication.token_cache_key
        return None

    @property
    def body_type(self) -> Optional[BodyFormat]:
        return self.body.format if self.body is not None else None

    @property
    def plain_text_body(self) -> Optional[str]:
        if isinstance(self.body, TextBody):
            return self.body.content
        return None

    @property
    def body_query_params(self) -> Tuple[KeyValuePair, ...]:
        if isinstance(self.body, FormBody):
            return self.body.params
        return ()

    @property
    def attachments(self) -> Tuple[Attachment, ...]:
        if isinstance(self.body, FormBody):
            return self.body.attachments
        return ()


OAuth20ClientCredentialAuthentication.model_rebuild()
QueryConfiguration.model_rebuild()
