"""Agent collaborators: spec writer, coder and test runner.

The LLM-backed agents live in ``llm_client``, ``spec_writer`` and
``coder_agent`` and are imported from those modules directly, so that
importing this package does not load the provider SDKs.
"""

from spec_search.agents.constants import DEFAULT_MODEL, OPENAI_DEFAULT_MODEL
from spec_search.agents.exceptions import (
    AgentError,
    CoderError,
    CoderTimeoutError,
    LLMCallError,
    LLMTimeoutError,
    ResponseParseError,
    TestRunnerError,
)
from spec_search.agents.protocols import Coder, SpecWriter, SuiteRunner, Workspace
from spec_search.agents.test_runner import run_best_effort_tests, suite_timeout_for

__all__ = [
    "AgentError",
    "Coder",
    "CoderError",
    "CoderTimeoutError",
    "DEFAULT_MODEL",
    "LLMCallError",
    "LLMTimeoutError",
    "OPENAI_DEFAULT_MODEL",
    "ResponseParseError",
    "SpecWriter",
    "SuiteRunner",
    "TestRunnerError",
    "Workspace",
    "run_best_effort_tests",
    "suite_timeout_for",
]
