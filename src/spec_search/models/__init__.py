"""Data models for the spec search."""

from spec_search.models.candidate_models import (
    CandidateDraft,
    GenerateSpecRequest,
    SpecCandidate,
)
from spec_search.models.diff_models import CommitInfo, DiffSnapshot, FileStat
from spec_search.models.report_models import (
    BestResult,
    ExecutionAttempt,
    FeedbackPacket,
    IterationLog,
    Metrics,
    RunLog,
    SearchResult,
    StopReason,
    TestCategory,
    TestRunResult,
)
from spec_search.models.score_models import (
    JudgeResult,
    PerFileScore,
    RealismResult,
    TechScore,
)

__all__ = [
    "BestResult",
    "CandidateDraft",
    "CommitInfo",
    "DiffSnapshot",
    "ExecutionAttempt",
    "FeedbackPacket",
    "FileStat",
    "GenerateSpecRequest",
    "IterationLog",
    "JudgeResult",
    "Metrics",
    "PerFileScore",
    "RealismResult",
    "RunLog",
    "SearchResult",
    "SpecCandidate",
    "StopReason",
    "TechScore",
    "TestCategory",
    "TestRunResult",
]
