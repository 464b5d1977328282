"""Feedback synthesis between search iterations."""

from spec_search.feedback.synthesizer import (
    CODER_ISSUE_GAP,
    build_initial_packet,
    build_iteration_packet,
    build_objective_anchor,
    infer_intents,
    merge_gaps,
    packet_text,
    sanitize_one_line,
)

__all__ = [
    "CODER_ISSUE_GAP",
    "build_initial_packet",
    "build_iteration_packet",
    "build_objective_anchor",
    "infer_intents",
    "merge_gaps",
    "packet_text",
    "sanitize_one_line",
]
