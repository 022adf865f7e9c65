"""Placeholder substitution.

Replaces ``{key}`` style placeholders in a text with values read from a
dictionary function. Delimiters are configurable, and an optional key prefix
lets several dictionaries share the same delimiters, e.g. ``{.input.user}``
and ``{.response.user}``.

Supported syntax:
- ``{key}``: replaced by the value of ``key``. A key the dictionary can't
  resolve is left untouched.
- ``{key:-default}``: replaced by ``default`` when the key can't be resolved.
- ``\\{key}``: the placeholder is kept literally and the backslash removed.
- ``{.user{age > 40}}``: nested delimiters are part of the key.

The text is scanned once; a replacement value is never scanned again.
An escape is consumed by the pass that meets it, so replacing the output of
a previous pass again resolves placeholders that pass kept literally.
"""

from typing import Callable, Dict, Mapping, Optional

from .config import get_defaults

ESCAPE = "\\"
DEFAULT_SEPARATOR = ":-"

Dictionary = Callable[[str], Optional[str]]


class PlaceholderConfiguration:
    """Delimiters of a placeholder.

    Args:
        opener: Placeholder prefix, e.g. "{"
        closer: Placeholder suffix, e.g. "}"
        key_prefix: If set, only placeholders whose key starts with it are
            replaced, and it is removed from the key before the lookup.
    """

    def __init__(self, opener: str, closer: str, key_prefix: Optional[str] = None):
        if not opener or not closer:
            raise ValueError("Placeholder opener and closer can't be empty")
        self.opener = opener
        self.closer = closer
        self.key_prefix = key_prefix
        self.opener_with_key_prefix = opener + (key_prefix or "")

    @classmethod
    def default(cls) -> "PlaceholderConfiguration":
        """Placeholder configuration using the process-wide delimiters."""
        defaults = get_defaults()
        return cls(defaults.url_placeholder_begin, defaults.url_placeholder_end)

    def __repr__(self) -> str:
        return (
            f"PlaceholderConfiguration(opener={self.opener!r}, "
            f"closer={self.closer!r}, key_prefix={self.key_prefix!r})"
        )


class _CachedDictionary:
    """Memoises dictionary lookups, including missing values."""

    def __init__(self, dictionary: Dictionary):
        self._dictionary = dictionary
        self._cache: Dict[str, Optional[str]] = {}

    def __call__(self, key: str) -> Optional[str]:
        if key not in self._cache:
            self._cache[key] = self._dictionary(key)
        return self._cache[key]


class Substitutor:
    """Replace placeholders of a text with values from a dictionary."""

    def __init__(
        self,
        placeholder: Optional[PlaceholderConfiguration],
        dictionary: Dictionary,
    ):
        self.placeholder = placeholder or PlaceholderConfiguration.default()
        if isinstance(dictionary, _CachedDictionary):
            self.dictionary = dictionary
        else:
            self.dictionary = _CachedDictionary(dictionary)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Optional[str]],
        placeholder: Optional[PlaceholderConfiguration] = None,
    ) -> "Substitutor":
        """Create a substitutor reading its values from a mapping.

        Keys missing from the mapping are left untouched, keys mapped to None
        are replaced by an empty string.
        """

        def lookup(key: str) -> Optional[str]:
            if key not in mapping:
                return None
            value = mapping[key]
            return "" if value is None else value

        return cls(placeholder, lookup)

    def replace(self, source: Optional[str]) -> Optional[str]:
        """Replace all placeholders of the given text.

        Args:
            source: Text that may contain placeholders

        Returns:
            The substituted text. None and blank texts are returned unchanged.
        """
        if source is None or not source.strip():
            return source

        opener = self.placeholder.opener_with_key_prefix
        closer = self.placeholder.closer
        if len(source) < len(opener) + len(closer):
            return source

        output = []
        cursor = 0
        while True:
            start = source.find(opener, cursor)
            if start < 0:
                output.append(source[cursor:])
                break

            if start > 0 and source[start - 1] == ESCAPE:
                output.append(source[cursor : start - 1])
                output.append(opener)
                cursor = start + len(opener)
                continue

            end = self._find_closer(source, start)
            if end < 0:
                # Unclosed placeholder
                output.append(source[cursor:])
                break

            output.append(source[cursor:start])
            value = self._get_value(source[start + len(opener) : end])
            if value is None:
                output.append(source[start : end + len(closer)])
            else:
                output.append(value)
            cursor = end + len(closer)

        return "".join(output)

    def _find_closer(self, source: str, start: int) -> int:
        """Return the index of the closer matching the opener found at start.

        Closers of nested placeholders (``{.user{age > 40}}``) are skipped.
        """
        opener = self.placeholder.opener
        closer = self.placeholder.closer

        search_from = start
        while True:
            end = source.find(closer, search_from)
            if end < 0:
                return end

            nested = source.find(opener, search_from + 1)
            if 0 <= nested < end:
                search_from = end + 1
                continue
            return end

    def _get_value(self, key: str) -> Optional[str]:
        name, separator, default = key.partition(DEFAULT_SEPARATOR)
        value = self.dictionary(name)
        if value is None and separator:
            return default
        return value
