"""Report models for execution attempts, feedback and the run log."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from spec_search.models.candidate_models import CandidateDraft
from spec_search.models.score_models import RealismResult, TechScore


class TestCategory(str, Enum):
    NOT_RUN = "not_run"
    PASS = "pass"
    COMPILATION = "compilation"
    UNIT_TEST = "unit-test"
    TIMEOUT = "timeout"
    TEST_FAILURE = "test-failure"


class StopReason(str, Enum):
    THRESHOLD_REACHED = "threshold reached"
    NO_IMPROVEMENT = "no improvement for 3 iterations"
    MAX_ITERS = "max-iters reached"


class TestRunResult(BaseModel):
    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    ran: bool = False
    passed: bool = False
    category: TestCategory = TestCategory.NOT_RUN
    runner: str = "none"      # "go" | "npm" | "cargo" | "pytest" | "none"
    summary: str = ""


class ExecutionAttempt(BaseModel):
    """A candidate draft bound to its produced change and scores."""

    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    candidate_index: int
    candidate_style: str
    candidate_prompt: str
    rank: int
    coder_error: str | None = None
    coder_final_message: str = ""
    tech: TechScore
    realism: RealismResult
    final_score: float
    test_result: TestRunResult
    produced_patch_path: str | None = None
    produced_files: list[str] = Field(default_factory=list)


class FeedbackPacket(BaseModel):
    """Target-vs-produced facts rendered into generation context."""

    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    iteration: int
    target_files_changed: int = 0
    produced_files_changed: int = 0
    representative_paths: list[str] = Field(default_factory=list)
    line_count_summaries: list[str] = Field(default_factory=list)
    missing_files: list[str] = Field(default_factory=list)
    unexpected_files: list[str] = Field(default_factory=list)
    intent_gaps: list[str] = Field(default_factory=list)
    target_intent_signals: list[str] = Field(default_factory=list)
    produced_intent_signals: list[str] = Field(default_factory=list)
    test_category: str = ""
    tech_summary: str = ""
    extra_notes: list[str] = Field(default_factory=list)


class BestResult(BaseModel):
    """Running global best across iterations."""

    model_config = ConfigDict(frozen=True)

    iteration: int
    prompt: str
    patch: str
    tech: float
    realism: float
    final: float


class IterationLog(BaseModel):
    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    iteration: int
    drafts: list[CandidateDraft] = Field(default_factory=list)
    coder_attempts: list[ExecutionAttempt] = Field(default_factory=list)
    selected_attempt: int = 0
    feedback_packet: FeedbackPacket
    iteration_best_score: float = 0.0


class RunLog(BaseModel):
    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    repo: str
    target_commit: str
    parent_commit: str
    alpha: float
    threshold: float
    max_iters: int
    best_iteration: int = 0
    iterations: list[IterationLog] = Field(default_factory=list)
    stopped_reason: str = ""
    commit_message: str = ""
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None


class Metrics(BaseModel):
    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    tech_similarity: float
    realism_score: float
    final_score: float
    alpha: float
    best_iteration: int


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    best_iteration: int
    best_tech_similarity: float
    best_realism: float
    best_final_score: float
    stopped_reason: str
    iterations_run: int
    artifacts_dir: str
