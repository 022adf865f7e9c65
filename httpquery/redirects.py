"""Redirect acceptance policy of a single logical call."""

import logging
from typing import Dict, Tuple

import httpx

from .errors import ErrorKind, HTTPClientError
from .models import QueryConfiguration

logger = logging.getLogger(__name__)


def canonical_url(url: str) -> str:
    """Return the url with scheme and host lowercased and without fragment."""
    return str(httpx.URL(url)).split("#", 1)[0]


def _allowed_prefixes(allowed: str) -> Tuple[str, ...]:
    # Partial prefixes such as "https://api." may not parse as urls
    try:
        return (canonical_url(allowed), allowed)
    except httpx.InvalidURL:
        return (allowed,)


def _origin(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}"


class RedirectTracker:
    """Decides whether each redirect of a call may be followed.

    One tracker is created per logical call. It counts how many times each
    target has been visited, so a redirect loop between a few urls is stopped
    once any of them is reached more than max_redirections_on_same_uri times.

    Args:
        configuration: Configuration of the call
        original_url: Url of the first request of the call
    """

    def __init__(self, configuration: QueryConfiguration, original_url: str):
        self.configuration = configuration
        self.original_url = httpx.URL(original_url)
        self._visits: Dict[str, int] = {}

    def follow(self, location: str, target_url: str) -> bool:
        """Check a redirect against the policy.

        Args:
            location: Location header value, possibly relative
            target_url: Absolute url the Location resolves to

        Returns:
            False if redirects are not accepted, in which case the redirect
            response itself is the result of the call. True if it may be
            followed.

        Raises:
            HTTPClientError: TOO_MANY_REDIRECTIONS or REDIRECTION_REJECTED
        """
        configuration = self.configuration
        if not configuration.accept_redirections:
            return False

        target = canonical_url(target_url)
        visits = self._visits.get(target, 0) + 1
        self._visits[target] = visits
        if visits > configuration.max_redirections_on_same_uri:
            raise HTTPClientError(
                ErrorKind.TOO_MANY_REDIRECTIONS,
                f"Too many redirections to '{target}' "
                f"(max {configuration.max_redirections_on_same_uri}).",
            )

        if configuration.accept_only_same_host_redirection and _origin(
            httpx.URL(target_url)
        ) != _origin(self.original_url):
            raise HTTPClientError(
                ErrorKind.REDIRECTION_REJECTED,
                f"Redirection to another host is not accepted: '{target}'.",
            )

        if not configuration.accept_relative_url_redirection and httpx.URL(
            location
        ).is_relative_url:
            raise HTTPClientError(
                ErrorKind.REDIRECTION_REJECTED,
                f"Relative redirection is not accepted: '{location}'.",
            )

        allowed = configuration.allowed_uri_redirection
        if allowed and not target.startswith(_allowed_prefixes(allowed)):
            raise HTTPClientError(
                ErrorKind.REDIRECTION_REJECTED,
                f"Redirection to '{target}' is not allowed, it must start with '{allowed}'.",
            )

        logger.debug(f"Follow redirection {visits} to '{target}'.")
        return True
