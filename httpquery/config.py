"""
Name: Process-wide defaults.
Description: Loads the default values used when a QueryConfiguration is created (timeouts, placeholder
delimiters, redirect policy, OAuth token lifetime tuning). Values come from environment variables (a .env file
is honoured), then from an optional properties mapping, then from httpquery.constants.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    ACCEPT_ONLY_SAME_HOST_REDIRECTIONS_KEY,
    ACCEPT_REDIRECTIONS_KEY,
    ACCEPT_RELATIVE_REDIRECTIONS_KEY,
    CONNECT_TIMEOUT_KEY,
    DEFAULT_ACCEPT_ONLY_SAME_HOST_REDIRECTIONS,
    DEFAULT_ACCEPT_REDIRECTIONS,
    DEFAULT_ACCEPT_RELATIVE_REDIRECTIONS,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_REDIRECTIONS_ON_SAME_URI,
    DEFAULT_OAUTH_TOKEN_FORCED_EXPIRES_IN,
    DEFAULT_RECEIVE_TIMEOUT,
    DEFAULT_TOKEN_SECURITY_DURATION,
    DEFAULT_URL_PLACEHOLDER_BEGIN,
    DEFAULT_URL_PLACEHOLDER_END,
    MAX_REDIRECTIONS_ON_SAME_URI_KEY,
    OAUTH_TOKEN_FORCED_EXPIRES_IN_KEY,
    RECEIVE_TIMEOUT_KEY,
    TOKEN_SECURITY_DURATION_KEY,
    URL_PLACEHOLDER_BEGIN_KEY,
    URL_PLACEHOLDER_END_KEY,
)

logger = logging.getLogger(__name__)


class HttpClientDefaults(BaseModel):
    """Default values applied to every new QueryConfiguration."""

    model_config = ConfigDict(frozen=True)

    connect_timeout: int = Field(
        default=DEFAULT_CONNECT_TIMEOUT, ge=0, description="Connection timeout in milliseconds"
    )
    receive_timeout: int = Field(
        default=DEFAULT_RECEIVE_TIMEOUT, ge=0, description="Receive timeout in milliseconds"
    )
    token_security_duration: int = Field(
        default=DEFAULT_TOKEN_SECURITY_DURATION,
        ge=0,
        description="Milliseconds removed from an OAuth token lifetime",
    )
    url_placeholder_begin: str = Field(
        default=DEFAULT_URL_PLACEHOLDER_BEGIN, min_length=1, description="Placeholder opener"
    )
    url_placeholder_end: str = Field(
        default=DEFAULT_URL_PLACEHOLDER_END, min_length=1, description="Placeholder closer"
    )
    accept_redirections: bool = Field(
        default=DEFAULT_ACCEPT_REDIRECTIONS, description="Whether redirections are followed"
    )
    max_redirections_on_same_uri: int = Field(
        default=DEFAULT_MAX_REDIRECTIONS_ON_SAME_URI,
        ge=0,
        description="Maximum number of redirections to the same URI",
    )
    accept_only_same_host_redirection: bool = Field(
        default=DEFAULT_ACCEPT_ONLY_SAME_HOST_REDIRECTIONS,
        description="Reject redirections to another host",
    )
    accept_relative_url_redirection: bool = Field(
        default=DEFAULT_ACCEPT_RELATIVE_REDIRECTIONS,
        description="Accept relative Location headers",
    )
    oauth_token_forced_expires_in: Optional[int] = Field(
        default=DEFAULT_OAUTH_TOKEN_FORCED_EXPIRES_IN,
        description="When set, replaces the expires_in value returned by token endpoints (seconds)",
    )


# Field name -> property key
PROPERTY_KEYS: Dict[str, str] = {
    "connect_timeout": CONNECT_TIMEOUT_KEY,
    "receive_timeout": RECEIVE_TIMEOUT_KEY,
    "token_security_duration": TOKEN_SECURITY_DURATION_KEY,
    "url_placeholder_begin": URL_PLACEHOLDER_BEGIN_KEY,
    "url_placeholder_end": URL_PLACEHOLDER_END_KEY,
    "accept_redirections": ACCEPT_REDIRECTIONS_KEY,
    "max_redirections_on_same_uri": MAX_REDIRECTIONS_ON_SAME_URI_KEY,
    "accept_only_same_host_redirection": ACCEPT_ONLY_SAME_HOST_REDIRECTIONS_KEY,
    "accept_relative_url_redirection": ACCEPT_RELATIVE_REDIRECTIONS_KEY,
    "oauth_token_forced_expires_in": OAUTH_TOKEN_FORCED_EXPIRES_IN_KEY,
}

_lock = threading.RLock()
_env_var_name_cache: Dict[str, str] = {}
_defaults: Optional[HttpClientDefaults] = None


def env_var_name(property_name: str) -> str:
    """Transform a property key to the name of its environment variable.

    Args:
        property_name: Dotted property key, e.g. httpquery.client.connection.timeout

    Returns:
        The environment variable name, e.g. HTTPQUERY_CLIENT_CONNECTION_TIMEOUT
    """
    with _lock:
        name = _env_var_name_cache.get(property_name)
        if name is None:
            name = property_name.replace(".", "_").upper()
            _env_var_name_cache[property_name] = name
        return name


def get_value(key: str, properties: Optional[Mapping[str, Any]] = None) -> Optional[Any]:
    """Look a property up in the environment first, then in the given properties."""
    value = os.environ.get(env_var_name(key))
    if value is None and properties is not None:
        value = properties.get(key)
    return value


def load_properties_from_file(file_path: str) -> Dict[str, Any]:
    """Load a flat properties mapping from a YAML or JSON file.

    Args:
        file_path: Path to the properties file

    Returns:
        Dict of property key to value
    """
    _, ext = os.path.splitext(file_path)
    with open(file_path, "r") as f:
        if ext.lower() in (".yaml", ".yml"):
            properties = yaml.safe_load(f)
        elif ext.lower() == ".json":
            properties = json.load(f)
        else:
            raise ValueError(f"Unsupported file extension: {ext}")

    if properties is None:
        return {}
    if not isinstance(properties, dict):
        raise ValueError(f"Properties file '{file_path}' must contain a mapping")
    return properties


def load_defaults(
    properties: Optional[Mapping[str, Any]] = None, use_dotenv: bool = True
) -> HttpClientDefaults:
    """Build an HttpClientDefaults from the environment and the given properties.

    Args:
        properties: Optional mapping of property key to value
        use_dotenv: Whether a .env file is loaded into the environment first

    Returns:
        The resolved defaults
    """
    if use_dotenv:
        load_dotenv()

    values = {}
    for field_name, key in PROPERTY_KEYS.items():
        value = get_value(key, properties)
        if value is not None:
            values[field_name] = value

    if values:
        logger.debug(f"Overridden HTTP client defaults: {sorted(values)}")
    return HttpClientDefaults(**values)


def get_defaults() -> HttpClientDefaults:
    """Return the process-wide defaults, loading them on first use."""
    global _defaults
    with _lock:
        if _defaults is None:
            _defaults = load_defaults()
        return _defaults


def reload_defaults(
    properties: Optional[Mapping[str, Any]] = None, use_dotenv: bool = True
) -> HttpClientDefaults:
    """Reload the process-wide defaults.

    Args:
        properties: Optional mapping of property key to value
        use_dotenv: Whether a .env file is loaded into the environment first

    Returns:
        The new process-wide defaults
    """
    global _defaults
    defaults = load_defaults(properties, use_dotenv=use_dotenv)
    with _lock:
        _defaults = defaults
    return defaults
