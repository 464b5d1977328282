"""Score models for technical similarity and realism."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PerFileScore(BaseModel):
    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    path: str
    similarity: float
    target_lines_added: int = 0
    target_lines_removed: int = 0
    produced_lines_added: int = 0
    produced_lines_removed: int = 0


class TechScore(BaseModel):
    """Technical similarity between a target and a produced diff."""

    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    file_jaccard: float
    diff_similarity: float
    line_precision: float
    line_recall: float
    line_f1: float
    score: float                      # 0.40*file + 0.45*diff + 0.15*f1, clamped
    per_file: list[PerFileScore] = Field(default_factory=list)  # diagnostics only
    target_files: int = 0
    produced_files: int = 0
    target_total_adds: int = 0
    target_total_dels: int = 0
    produced_total_adds: int = 0
    produced_total_dels: int = 0


class RealismResult(BaseModel):
    """Heuristic realism plus the optional judge opinion."""

    model_config = ConfigDict(frozen=False, alias_generator=to_camel, populate_by_name=True)

    heuristic_score: float = 0.0
    judge_score: float | None = None
    score: float = 0.0
    reasons: list[str] = Field(default_factory=list)


class JudgeResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    score: float
    justification: str = ""
