"""
Name: Utility functions.
Description: Logging setup, response charset detection and the retry handler a caller can wrap around HTTPClient.invoke.
"""

import logging
import sys
from typing import Callable, List, Mapping, Optional, TypeVar

import tenacity
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_ENCODING,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_STATUS_CODES,
)
from .errors import ErrorKind, HTTPClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def configure_logging(debug: bool = False):
    """Configure logging for the application.

    Args:
        debug: Whether to enable debug mode
    """
    logging_level = logging.DEBUG if debug else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(logging_level)

    # Only update the level of existing handlers
    if root_logger.handlers:
        for handler in root_logger.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setLevel(logging_level)
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)


def get_charset_name(headers: Mapping[str, str], default: str = DEFAULT_ENCODING) -> str:
    """Read the charset of a Content-Type header.

    Args:
        headers: Response headers, looked up case-insensitively
        default: Charset returned when none is declared

    Returns:
        The declared charset, or default
    """
    content_type = None
    for name, value in headers.items():
        if name.lower() == "content-type":
            content_type = value
            break

    if not content_type:
        return default

    for parameter in content_type.split(";")[1:]:
        name, _, value = parameter.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'")
    return default


class RetryConfig(BaseModel):
    """Retry configuration for calls made through a RetryHandler."""

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES, ge=0, description="Maximum number of retry attempts"
    )
    backoff_factor: float = Field(
        default=DEFAULT_BACKOFF_FACTOR,
        ge=0,
        description="Exponential backoff factor (in seconds) between retries",
    )
    retry_on_status_codes: List[int] = Field(
        default_factory=lambda: list(DEFAULT_RETRY_STATUS_CODES),
        description="HTTP status codes that should trigger a retry",
    )
    retry_on_timeout: bool = Field(
        default=True, description="Whether REQUEST_TIMEOUT and TRANSPORT errors are retried"
    )
    enabled: bool = Field(default=True, description="Whether retries are enabled")


class RetryableStatusError(Exception):
    """Raised inside a retried call when the response status must be retried."""

    def __init__(self, response):
        super().__init__(f"Retryable status {response.status.code}")
        self.response = response


class RetryHandler:
    """Handler for retrying calls with exponential backoff.

    The query engine never retries by itself. Callers that want retries wrap
    the invocation:

        handler = RetryHandler(RetryConfig(max_retries=2))
        response = handler.call(client.invoke)
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        """Initialize the retry handler.

        Args:
            config: Retry configuration
        """
        self.config = config or RetryConfig()

    def should_retry(self, status_code: int, attempt: int) -> bool:
        """Determine if a call should be retried.

        Args:
            status_code: HTTP status code from the response
            attempt: Current attempt number (0-based)

        Returns:
            True if the call should be retried, False otherwise
        """
        if not self.config.enabled:
            return False

        if attempt >= self.config.max_retries:
            return False

        return status_code in self.config.retry_on_status_codes

    def get_backoff_time(self, attempt: int) -> float:
        """Calculate backoff time for a retry attempt.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Time to wait in seconds before the next attempt
        """
        return self.config.backoff_factor * (2**attempt)

    def _is_retryable_error(self, error: BaseException) -> bool:
        if isinstance(error, RetryableStatusError):
            return True
        if isinstance(error, HTTPClientError) and self.config.retry_on_timeout:
            return error.kind in (ErrorKind.REQUEST_TIMEOUT, ErrorKind.TRANSPORT)
        return False

    def _wait(self, retry_state: tenacity.RetryCallState) -> float:
        return self.get_backoff_time(retry_state.attempt_number - 1)

    def _before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        logger.warning(
            f"Retrying call (attempt {retry_state.attempt_number} of "
            f"{self.config.max_retries + 1}) after {retry_state.outcome.exception()}"
        )

    def tenacity_kwargs(self) -> dict:
        """Keyword arguments for ``tenacity.retry``.

        Returns:
            A dict usable as ``@tenacity.retry(**handler.tenacity_kwargs())``
        """
        if not self.config.enabled:
            return {"stop": tenacity.stop_after_attempt(1), "reraise": True}

        return {
            "stop": tenacity.stop_after_attempt(self.config.max_retries + 1),
            "wait": self._wait,
            "retry": tenacity.retry_if_exception(self._is_retryable_error),
            "before_sleep": self._before_sleep,
            "reraise": True,
        }

    def call(self, fn: Callable[[], T]) -> T:
        """Call fn, retrying on retryable errors and statuses.

        fn must return an object with a ``status.code`` attribute, like
        HTTPResponse. When retries are exhausted on a retryable status, the
        last response is returned.

        Args:
            fn: The call to make

        Returns:
            The result of the last attempt
        """
        attempt = 0

        @tenacity.retry(**self.tenacity_kwargs())
        def _do_call():
            nonlocal attempt
            response = fn()
            retry = self.should_retry(response.status.code, attempt)
            attempt += 1
            if retry:
                raise RetryableStatusError(response)
            return response

        try:
            return _do_call()
        except RetryableStatusError as e:
            return e.response
