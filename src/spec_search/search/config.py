"""Search configuration."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from spec_search.agents.constants import DEFAULT_MODEL
from spec_search.scoring import RealismConfig
from spec_search.search.exceptions import ConfigError

JUDGE_TIMEOUT_SECONDS = 90.0
GAP_TIMEOUT_SECONDS = 90.0
GAP_MAX_ITEMS = 4


class SearchConfig(BaseModel):
    """Every knob of a search run.

    Build it through ``load_config`` to get ``ConfigError`` instead of a
    raw pydantic ``ValidationError``.
    """

    model_config = ConfigDict(frozen=True)

    repo: str = Field(min_length=1)
    commit: str = Field(min_length=1)
    workdir: str = "./work"
    max_iters: int = Field(default=8, gt=0)
    threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    timeout_seconds: int = Field(default=600, gt=0)
    keep_runs: bool = False
    verbose: bool = False
    alpha: float = Field(default=0.75, ge=0.0, le=1.0)
    max_path_refs: int = Field(default=3, ge=0)
    max_identifiers: int = Field(default=25, ge=1)
    max_length: int = Field(default=0, ge=0)   # 0 = unlimited
    candidates_per_iter: int = Field(default=3, ge=1)
    coder_runs_per_iter: int = Field(default=2, ge=1)
    model: str = DEFAULT_MODEL
    llm_provider: Literal["auto", "anthropic", "openai"] = "auto"
    llm_fallback_provider: Literal["anthropic", "openai"] | None = None
    allow_llm_fallback: bool = False

    @model_validator(mode="after")
    def _check_coder_budget(self) -> "SearchConfig":
        if self.coder_runs_per_iter > self.candidates_per_iter:
            raise ValueError("coder_runs_per_iter must be <= candidates_per_iter")
        return self

    def realism_config(self) -> RealismConfig:
        return RealismConfig(
            max_path_refs=self.max_path_refs,
            max_identifiers=self.max_identifiers,
            max_length=self.max_length,
        )


def load_config(**values) -> SearchConfig:
    """Validate ``values`` into a SearchConfig.

    Raises:
        ConfigError: Listing every invalid field.
    """
    try:
        return SearchConfig(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigError(f"invalid configuration: {problems}") from exc
