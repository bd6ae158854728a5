"""Errors raised by the index registry and query layer."""

from __future__ import annotations


class SearchBridgeError(Exception):
    """Base error for registry and query operations."""

    def __init__(self, message: str, value: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.value = value


class IndexNotFoundError(SearchBridgeError):
    """Raised when an operation names an index that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Index '{name}' not found", name)


class InvalidPathError(SearchBridgeError):
    """Raised when a path does not hold a valid index."""

    def __init__(self, path: str, reason: str = "") -> None:
        message = f"Invalid index path '{path}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, path)


class UnsupportedLanguageError(SearchBridgeError):
    """Raised when no stemmer exists for a language tag."""

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported language '{language}'", language)


class InvalidQueryError(SearchBridgeError):
    """Raised for missing or malformed query parameters and unparseable queries."""


class ReservedIndexNameError(SearchBridgeError):
    """Raised when a write targets a reserved aggregate name such as ``_all``."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Index name '{name}' is reserved", name)
