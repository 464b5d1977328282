"""State definition for the LangGraph search controller."""

import operator
from typing import Annotated, TypedDict

from spec_search.models import (
    BestResult,
    CandidateDraft,
    CommitInfo,
    DiffSnapshot,
    ExecutionAttempt,
    IterationLog,
)


class SearchState(TypedDict):
    """State threaded through every iteration of the search.

    Fields with Annotated[list, operator.add] reducers accumulate across nodes.
    All other fields use default overwrite semantics.
    """

    # Input
    commit_info: CommitInfo
    target: DiffSnapshot
    objective_anchor: str

    # Iteration progress
    iteration: int
    feedback_text: str
    previous_prompt: str
    previous_outcome: str

    # Current iteration (overwritten each round)
    drafts: list[CandidateDraft]
    attempts: list[ExecutionAttempt]
    attempt_snapshots: list[DiffSnapshot]
    selected_attempt: int

    # Best tracking
    best: BestResult | None
    no_improvement: int
    stopped_reason: str

    # Append-only history
    prompt_history: Annotated[list[str], operator.add]
    iteration_logs: Annotated[list[IterationLog], operator.add]
    errors: Annotated[list[str], operator.add]


def make_initial_state(
    commit_info: CommitInfo,
    target: DiffSnapshot,
    feedback_text: str,
    objective_anchor: str,
) -> SearchState:
    """Create the state before the first iteration.

    Args:
        commit_info: Resolved target and parent commits.
        target: Snapshot of the target change.
        feedback_text: Rendered initial feedback packet.
        objective_anchor: Anchor line prepended to every generation context.

    Returns:
        SearchState dict with all fields initialised to defaults.
    """
    return {
        "commit_info": commit_info,
        "target": target,
        "objective_anchor": objective_anchor,
        "iteration": 0,
        "feedback_text": feedback_text,
        "previous_prompt": "",
        "previous_outcome": "",
        "drafts": [],
        "attempts": [],
        "attempt_snapshots": [],
        "selected_attempt": 0,
        "best": None,
        "no_improvement": 0,
        "stopped_reason": "",
        "prompt_history": [],
        "iteration_logs": [],
        "errors": [],
    }
