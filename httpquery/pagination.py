"""Pagination strategies.

A strategy adds the first page parameters to a configuration, then derives
the configuration of the next page from the response of the previous one.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Optional, Tuple

from .errors import ErrorKind, HTTPClientError, InvalidStateError
from .models import (
    KeyValuePair,
    OffsetLimitPagination,
    PaginationParametersLocation,
    QueryConfiguration,
)

logger = logging.getLogger(__name__)


class PaginationStrategy(ABC):
    """Base class of pagination strategies.

    A strategy is bound to the configuration of the call whose response it
    will inspect.
    """

    def __init__(self, configuration: QueryConfiguration):
        self.configuration = configuration

    @abstractmethod
    def initiate_pagination(self, configuration: QueryConfiguration) -> QueryConfiguration:
        """Return the configuration of the first page.

        The returned configuration must have init_pagination_done set.
        """

    @abstractmethod
    def get_next_page_configuration(self, response: Any) -> Optional[QueryConfiguration]:
        """Return the configuration of the next page, None if there is no more page.

        Args:
            response: Response of the call made with self.configuration. It
                must provide a body_as_string() method.
        """

    @abstractmethod
    def get_last_count(self, response: Any) -> int:
        """Return the number of elements received in the given response."""


class NoPagination(PaginationStrategy):
    """Strategy of configurations without pagination."""

    def initiate_pagination(self, configuration: QueryConfiguration) -> QueryConfiguration:
        return configuration

    def get_next_page_configuration(self, response: Any) -> Optional[QueryConfiguration]:
        return None

    def get_last_count(self, response: Any) -> int:
        return 1


def count_elements(body: str, elements_path: str) -> int:
    """Count the elements of the JSON array found at elements_path.

    The path is a simple dotted path like ``.data.items``: intermediate
    segments must be JSON objects and the last one a JSON array. An empty
    path, or one made only of dots, means the root is the array.

    Args:
        body: JSON response body
        elements_path: Dotted path of the array

    Returns:
        The number of elements of the array

    Raises:
        HTTPClientError: INVALID_RESPONSE if the body doesn't match the path
    """
    try:
        current = json.loads(body)
    except ValueError as e:
        raise HTTPClientError(
            ErrorKind.INVALID_RESPONSE, f"Can't parse paginated response as json: {e}", e
        )

    path = (elements_path or "").strip(".")
    segments = path.split(".") if path else []

    for segment in segments:
        if not isinstance(current, dict) or segment not in current:
            raise HTTPClientError(
                ErrorKind.INVALID_RESPONSE,
                f"Can't find '{segment}' of elements path '{elements_path}' in the response.",
            )
        current = current[segment]

    if not isinstance(current, list):
        raise HTTPClientError(
            ErrorKind.INVALID_RESPONSE,
            f"Elements path '{elements_path}' doesn't point to a json array.",
        )
    return len(current)


def _next_offset(previous_offset: str, nb_received: int) -> str:
    try:
        return str(int(previous_offset) + nb_received)
    except ValueError as e:
        raise InvalidStateError(
            f"Pagination offset must be a number, got '{previous_offset}'."
        ) from e


class OffsetLimitPaginationStrategy(PaginationStrategy):
    """Offset/limit pagination.

    The next offset is the previous offset plus the number of elements
    actually received, not plus the limit. A server returning more elements
    than the limit moves the offset by that larger number.
    """

    def __init__(self, configuration: QueryConfiguration):
        super().__init__(configuration)
        self._last_count: Optional[int] = None

    @property
    def pagination(self) -> OffsetLimitPagination:
        return self.configuration.pagination

    @staticmethod
    def _get_pairs(
        configuration: QueryConfiguration, location: PaginationParametersLocation
    ) -> Tuple[KeyValuePair, ...]:
        if location == PaginationParametersLocation.HEADERS:
            return configuration.headers
        return configuration.query_params

    @staticmethod
    def _with_pairs(
        location: PaginationParametersLocation,
        pairs: Tuple[KeyValuePair, ...],
    ) -> dict:
        if location == PaginationParametersLocation.HEADERS:
            return {"headers": pairs}
        return {"query_params": pairs}

    def initiate_pagination(self, configuration: QueryConfiguration) -> QueryConfiguration:
        if configuration.init_pagination_done:
            return configuration

        pagination = configuration.pagination
        pairs = self._get_pairs(configuration, pagination.location) + (
            KeyValuePair(key=pagination.offset_param_name, value=pagination.offset_value),
            KeyValuePair(key=pagination.limit_param_name, value=pagination.limit_value),
        )

        update = self._with_pairs(pagination.location, pairs)
        update["init_pagination_done"] = True
        return configuration.model_copy(update=update)

    def get_next_page_configuration(self, response: Any) -> Optional[QueryConfiguration]:
        nb_received = self.get_last_count(response)
        if nb_received <= 0:
            # Last call didn't receive any data, stop the pagination
            return None

        pagination = self.pagination
        pairs = list(self._get_pairs(self.configuration, pagination.location))

        offset_index = next(
            (i for i, p in enumerate(pairs) if p.key == pagination.offset_param_name),
            None,
        )
        if offset_index is None:
            pairs.append(
                KeyValuePair(key=pagination.offset_param_name, value=pagination.offset_value)
            )
        else:
            previous = pairs[offset_index]
            pairs[offset_index] = KeyValuePair(
                key=previous.key, value=_next_offset(previous.value, nb_received)
            )

        if not any(p.key == pagination.limit_param_name for p in pairs):
            pairs.append(
                KeyValuePair(key=pagination.limit_param_name, value=pagination.limit_value)
            )

        next_configuration = self.configuration.model_copy(
            update=self._with_pairs(pagination.location, tuple(pairs))
        )
        logger.debug(
            f"Next page of '{self.configuration.url}' after {nb_received} elements."
        )
        return next_configuration

    def get_last_count(self, response: Any) -> int:
        if self._last_count is None:
            self._last_count = count_elements(
                response.body_as_string(), self.pagination.elements_path
            )
        return self._last_count


def get_pagination_strategy(configuration: QueryConfiguration) -> PaginationStrategy:
    """Return the pagination strategy of the given configuration."""
    if configuration.pagination is not None:
        return OffsetLimitPaginationStrategy(configuration)
    return NoPagination(configuration)


def iterate_pages(
    configuration: QueryConfiguration,
    invoke: Callable[[QueryConfiguration], Any],
    max_pages: Optional[int] = None,
) -> Iterator[Any]:
    """Call each page in turn and yield its response.

    The loop stops when the strategy returns no next page, i.e. after the
    first page returning no element, or after max_pages calls.

    Args:
        configuration: Configuration of the first page
        invoke: Function doing one physical call for a configuration
        max_pages: Optional maximum number of calls

    Yields:
        The response of each call
    """
    current = get_pagination_strategy(configuration).initiate_pagination(configuration)
    nb_pages = 0
    while current is not None:
        response = invoke(current)
        nb_pages += 1
        yield response

        if max_pages is not None and nb_pages >= max_pages:
            logger.info(f"Pagination stopped after {nb_pages} pages.")
            return

        current = get_pagination_strategy(current).get_next_page_configuration(response)
