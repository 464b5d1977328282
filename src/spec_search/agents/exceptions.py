"""Exceptions for agent operations."""


class AgentError(Exception):
    """Base exception for all agent operations."""


class LLMCallError(AgentError):
    """Raised when every configured provider fails to answer."""


class LLMTimeoutError(LLMCallError):
    """Raised when a model call exceeds its timeout."""


class ResponseParseError(AgentError):
    """Raised when a model response lacks the expected tool payload."""


class CoderError(AgentError):
    """Raised when executing a spec against a working copy fails."""


class CoderTimeoutError(CoderError):
    """Raised when executing a spec exceeds the per-attempt timeout."""


class TestRunnerError(AgentError):
    """Raised when the test runner cannot be started."""
