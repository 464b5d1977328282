"""Models for spec candidates and the requests that produce them."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SpecCandidate(BaseModel):
    """Raw output of the spec writer before validation."""

    model_config = ConfigDict(frozen=False)

    candidate_prompt: str
    rationale: str = ""
    scope_hints: list[str] = Field(default_factory=list)
    raw_response: str = ""


class GenerateSpecRequest(BaseModel):
    """Context handed to the spec writer for one draft."""

    model_config = ConfigDict(frozen=False)

    iteration: int
    feedback_text: str
    max_path_refs: int
    max_length: int = 0
    style: str = ""
    previous_prompt: str = ""
    previous_outcome: str = ""
    violation_reason: str = ""


class CandidateDraft(BaseModel):
    """One slot of a candidate pool.

    A draft with ``valid=False`` carries the generation error and is never
    executed.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    index: int
    style: str
    candidate_prompt: str = ""
    rationale: str = ""
    scope_hints: list[str] = Field(default_factory=list)
    validation_retries: int = 0
    raw_response: str = ""
    pre_realism: float = 0.0
    novelty: float = 0.0
    pre_score: float = 0.0
    generation_error: str | None = None
    valid: bool = False
