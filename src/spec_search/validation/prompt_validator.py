"""No-code and structural checks for candidate spec text.

Each rule is a named predicate so the regeneration loop can report
exactly which one failed.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict

COMMAND_LINE_RE = re.compile(
    r"^\s*(?:\$\s*|git\s+\S+|go\s+(?:test|run|build|tool)\b|npm\s+\S+|npx\s+\S+|cargo\s+\S+)",
    re.MULTILINE | re.IGNORECASE,
)
DIFF_MARKER_RE = re.compile(r"^(?:diff\s+--git|@@\s|\+\+\+\s|---\s)", re.MULTILINE)
STACK_TRACE_RE = re.compile(
    r"^\s*(?:at\s+\S+\s+\(.+?:\d+|Traceback \(most recent call last\)|File \".+\", line \d+)",
    re.MULTILINE,
)
COMPILER_OUTPUT_RE = re.compile(r"[A-Za-z0-9_./-]+:\d+(?::\d+)?:\s")
TRACKER_REF_RE = re.compile(
    r"(?:^|\s)(?:#\d+|(?:issue|issues|pr|pull request|pull requests)\s*#?\d+)\b",
    re.IGNORECASE,
)

SECTION_CONTEXT_RE = re.compile(r"^\s*#+\s*context\b", re.MULTILINE | re.IGNORECASE)
SECTION_OUTCOMES_RE = re.compile(
    r"^\s*#+\s*(?:desired outcomes?|goals?)\b", re.MULTILINE | re.IGNORECASE
)
SECTION_CONSTRAINTS_RE = re.compile(
    r"^\s*#+\s*(?:constraints?(?:\s+and\s+non-goals?)?|non-goals?|out of scope)\b",
    re.MULTILINE | re.IGNORECASE,
)
SECTION_ACCEPTANCE_RE = re.compile(
    r"^\s*#+\s*(?:acceptance criteria|validation|test expectations?)\b",
    re.MULTILINE | re.IGNORECASE,
)


class ViolationKind(str, Enum):
    EMPTY = "empty"
    TOO_LONG = "too_long"
    FENCED_CODE = "fenced_code"
    INLINE_CODE = "inline_code"
    DIFF_MARKERS = "diff_markers"
    COMMAND_LINES = "command_lines"
    STACK_TRACE = "stack_trace"
    COMPILER_OUTPUT = "compiler_output"
    TRACKER_REFERENCE = "tracker_reference"
    DIFF_HUNK_LINES = "diff_hunk_lines"
    MISSING_CONTEXT = "missing_context"
    MISSING_OUTCOMES = "missing_outcomes"
    MISSING_CONSTRAINTS = "missing_constraints"
    MISSING_ACCEPTANCE = "missing_acceptance"


class PromptViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    message: str

    @property
    def is_structural(self) -> bool:
        return self.kind in _STRUCTURAL_KINDS


_STRUCTURAL_KINDS = frozenset({
    ViolationKind.MISSING_CONTEXT,
    ViolationKind.MISSING_OUTCOMES,
    ViolationKind.MISSING_CONSTRAINTS,
    ViolationKind.MISSING_ACCEPTANCE,
})


def has_fenced_code(text: str) -> bool:
    return "```" in text


def has_inline_code(text: str) -> bool:
    return "`" in text


def has_diff_markers(text: str) -> bool:
    return DIFF_MARKER_RE.search(text) is not None


def has_command_lines(text: str) -> bool:
    return COMMAND_LINE_RE.search(text) is not None


def has_stack_trace(text: str) -> bool:
    return STACK_TRACE_RE.search(text) is not None


def has_compiler_output(text: str) -> bool:
    return COMPILER_OUTPUT_RE.search(text) is not None


def has_tracker_reference(text: str) -> bool:
    return TRACKER_REF_RE.search(text) is not None


def has_diff_hunk_lines(text: str) -> bool:
    """True when a line starts with +/- immediately followed by a non-space."""
    for line in text.splitlines():
        stripped = line.strip()
        if len(stripped) > 1 and stripped[0] in "+-" and stripped[1] != " ":
            return True
    return False


def strip_tracker_refs(text: str) -> str:
    """Remove issue/PR references such as ``#123`` or ``PR 12``."""
    return TRACKER_REF_RE.sub("", text)


# Ordered: the first failing rule is the one reported.
_NO_CODE_RULES: list[tuple] = [
    (has_fenced_code, ViolationKind.FENCED_CODE, "candidate prompt contains fenced code block"),
    (has_inline_code, ViolationKind.INLINE_CODE, "candidate prompt contains inline code marker"),
    (has_diff_markers, ViolationKind.DIFF_MARKERS, "candidate prompt contains diff markers"),
    (has_command_lines, ViolationKind.COMMAND_LINES, "candidate prompt appears to include command lines"),
    (has_stack_trace, ViolationKind.STACK_TRACE, "candidate prompt appears to include stack trace lines"),
    (has_compiler_output, ViolationKind.COMPILER_OUTPUT, "candidate prompt appears to include compiler/log output"),
    (
        has_tracker_reference,
        ViolationKind.TRACKER_REFERENCE,
        "candidate prompt includes issue/PR references (for example #123)",
    ),
    (has_diff_hunk_lines, ViolationKind.DIFF_HUNK_LINES, "candidate prompt has code-like prefixed lines"),
]

_SECTION_RULES: list[tuple] = [
    (SECTION_CONTEXT_RE, ViolationKind.MISSING_CONTEXT, "missing # Context section"),
    (SECTION_OUTCOMES_RE, ViolationKind.MISSING_OUTCOMES, "missing # Desired Outcomes section"),
    (
        SECTION_CONSTRAINTS_RE,
        ViolationKind.MISSING_CONSTRAINTS,
        "missing # Constraints and Non-Goals section",
    ),
    (SECTION_ACCEPTANCE_RE, ViolationKind.MISSING_ACCEPTANCE, "missing # Acceptance Criteria section"),
]


def validate_no_code(text: str, max_length: int = 0) -> PromptViolation | None:
    """Check a candidate prompt against the no-code constraints.

    Args:
        text: Candidate spec text.
        max_length: Maximum length in characters; 0 disables the check.

    Returns:
        The first violation found, or None when the text is acceptable.
    """
    trimmed = text.strip()
    if not trimmed:
        return PromptViolation(kind=ViolationKind.EMPTY, message="candidate prompt is empty")
    if max_length > 0 and len(trimmed) > max_length:
        return PromptViolation(
            kind=ViolationKind.TOO_LONG,
            message=f"candidate prompt exceeds max length ({len(trimmed)} > {max_length})",
        )
    for predicate, kind, message in _NO_CODE_RULES:
        if predicate(trimmed):
            return PromptViolation(kind=kind, message=message)
    return None


def missing_sections(text: str) -> list[ViolationKind]:
    return [kind for pattern, kind, _ in _SECTION_RULES if not pattern.search(text)]


def has_all_required_sections(text: str) -> bool:
    return not missing_sections(text)


def validate_structure(text: str) -> PromptViolation | None:
    """Require Context, Desired Outcomes, Constraints and Acceptance headers.

    Headers may appear in any order and are matched case-insensitively.
    """
    trimmed = text.strip()
    if not trimmed:
        return PromptViolation(kind=ViolationKind.EMPTY, message="candidate prompt is empty")
    for pattern, kind, message in _SECTION_RULES:
        if not pattern.search(trimmed):
            return PromptViolation(kind=kind, message=message)
    return None


def validate_prompt(text: str, max_length: int = 0) -> PromptViolation | None:
    """Run both checks; a draft is usable only when this returns None."""
    violation = validate_no_code(text, max_length)
    if violation is not None:
        return violation
    return validate_structure(text)


def violation_feedback(violation: PromptViolation) -> str:
    """Corrective text appended to the next generation request."""
    if violation.is_structural:
        return f"structured format violation: {violation.message}"
    return f"no-code constraint violation: {violation.message}"
