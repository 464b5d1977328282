"""Candidate prompt validation."""

from spec_search.validation.prompt_validator import (
    PromptViolation,
    ViolationKind,
    has_all_required_sections,
    has_fenced_code,
    has_inline_code,
    strip_tracker_refs,
    validate_no_code,
    validate_prompt,
    validate_structure,
    violation_feedback,
)

__all__ = [
    "PromptViolation",
    "ViolationKind",
    "has_all_required_sections",
    "has_fenced_code",
    "has_inline_code",
    "strip_tracker_refs",
    "validate_no_code",
    "validate_prompt",
    "validate_structure",
    "violation_feedback",
]
