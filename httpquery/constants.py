"""
Name: Constants and settings.
Description: Centralized location for the property keys and default values used by the HTTP query engine.
Each property can be overridden with an environment variable whose name is the key upper-cased with dots
replaced by underscores (see httpquery.config).
"""


# Property keys
CONNECT_TIMEOUT_KEY = "httpquery.client.connection.timeout"
RECEIVE_TIMEOUT_KEY = "httpquery.client.receive.timeout"
TOKEN_SECURITY_DURATION_KEY = "httpquery.client.token.expiresin.security.duration"
URL_PLACEHOLDER_BEGIN_KEY = "httpquery.client.url.place.holder.begin"
URL_PLACEHOLDER_END_KEY = "httpquery.client.url.place.holder.end"
ACCEPT_REDIRECTIONS_KEY = "httpquery.client.accept.redirection"
MAX_REDIRECTIONS_ON_SAME_URI_KEY = "httpquery.client.max.number.redirections.on.same.uri"
ACCEPT_ONLY_SAME_HOST_REDIRECTIONS_KEY = "httpquery.client.accept.only.same.host.redirections"
ACCEPT_RELATIVE_REDIRECTIONS_KEY = "httpquery.client.accept.relative.redirections"
OAUTH_TOKEN_FORCED_EXPIRES_IN_KEY = "httpquery.client.oauth.token.forced.expires_in"

# Timeout settings (milliseconds)
DEFAULT_CONNECT_TIMEOUT = 30000
DEFAULT_RECEIVE_TIMEOUT = 120000

# Time removed from a token lifetime to leave room for the call (milliseconds)
DEFAULT_TOKEN_SECURITY_DURATION = 5000

# Placeholder delimiters
DEFAULT_URL_PLACEHOLDER_BEGIN = "{"
DEFAULT_URL_PLACEHOLDER_END = "}"

# Redirect settings
DEFAULT_ACCEPT_REDIRECTIONS = True
DEFAULT_MAX_REDIRECTIONS_ON_SAME_URI = 3
DEFAULT_ACCEPT_ONLY_SAME_HOST_REDIRECTIONS = False
DEFAULT_ACCEPT_RELATIVE_REDIRECTIONS = True

# Forced OAuth token lifetime, None means use the server value
DEFAULT_OAUTH_TOKEN_FORCED_EXPIRES_IN = None

# HTTP settings
DEFAULT_METHOD = "GET"
DEFAULT_ENCODING = "utf-8"

# Retry settings
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
DEFAULT_RETRY_STATUS_CODES = [429, 500, 502, 503, 504]
