"""Scoring engines: technical similarity, realism and novelty."""

from spec_search.scoring.novelty import novelty_score
from spec_search.scoring.realism import (
    RealismConfig,
    combine_realism,
    score_realism_heuristic,
)
from spec_search.scoring.technical import clamp01, parse_unified_diff, score_tech_similarity

__all__ = [
    "RealismConfig",
    "clamp01",
    "combine_realism",
    "novelty_score",
    "parse_unified_diff",
    "score_realism_heuristic",
    "score_tech_similarity",
]
