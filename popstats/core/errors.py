"""
POPSTATS - Error Types
Failures raised by the fetch, parse and store layers.
"""

from typing import List, Optional


class PopstatsError(Exception):
    """Base class for all collector errors."""


class FetchError(PopstatsError):
    """A single master server could not be fetched (network, HTTP or timeout)."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"{url}: {message}")


class ParseError(PopstatsError):
    """
    Malformed input.

    Raised for a master server body that is not a valid stats document, or
    for a CSV chunk containing a malformed line. ``lines`` carries the raw
    lines of the offending chunk so the failure can be diagnosed from logs.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        lines: Optional[List[str]] = None,
    ):
        self.message = message
        self.source = source
        self.lines = list(lines) if lines else []
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class StoreError(PopstatsError):
    """A database operation failed (connectivity, constraint or SQL error)."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")
