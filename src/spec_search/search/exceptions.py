"""Exceptions for the search controller."""


class SearchError(Exception):
    """Base exception for all search operations."""


class ConfigError(SearchError):
    """Raised when search configuration values are out of range."""


class CandidateGenerationError(SearchError):
    """Raised when an iteration produces no valid candidate at all."""


class SearchCancelledError(SearchError):
    """Raised when the run-scoped cancellation signal is set."""


class GraphBuildError(SearchError):
    """Raised when graph construction fails."""


class NoResultError(SearchError):
    """Raised when a run ends without any iteration yielding a best result."""
