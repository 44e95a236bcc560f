"""Exceptions raised by the country matching engine."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Reference data is malformed and cannot be used for matching.

    Raised at load time only. Unresolvable place strings are a data outcome
    (an unmatched result), never an exception.
    """

    def __init__(self, message: str, iso2: str | None = None):
        self.iso2 = iso2
        if iso2:
            message = f"{iso2}: {message}"
        super().__init__(message)
