"""Search controller: candidate pool, iteration graph and run entry point."""

from spec_search.search.artifacts import ArtifactStore
from spec_search.search.candidate_pool import CandidatePool, candidate_styles, rank_drafts
from spec_search.search.config import SearchConfig, load_config
from spec_search.search.controller import (
    build_search_graph,
    evaluate_stop,
    select_iteration_best,
    update_best,
)
from spec_search.search.exceptions import (
    CandidateGenerationError,
    ConfigError,
    GraphBuildError,
    NoResultError,
    SearchCancelledError,
    SearchError,
)
from spec_search.search.runner import run_search
from spec_search.search.state import SearchState, make_initial_state

__all__ = [
    "ArtifactStore",
    "CandidateGenerationError",
    "CandidatePool",
    "ConfigError",
    "GraphBuildError",
    "NoResultError",
    "SearchCancelledError",
    "SearchConfig",
    "SearchError",
    "SearchState",
    "build_search_graph",
    "candidate_styles",
    "evaluate_stop",
    "load_config",
    "make_initial_state",
    "rank_drafts",
    "run_search",
    "select_iteration_best",
    "update_best",
]
