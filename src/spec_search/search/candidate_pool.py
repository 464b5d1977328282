"""Per-iteration candidate pool: generation, validation, seeding and ranking."""

import logging
from typing import Callable

from spec_search.agents.exceptions import AgentError
from spec_search.agents.protocols import SpecWriter
from spec_search.feedback import infer_intents, sanitize_one_line
from spec_search.models import CandidateDraft, DiffSnapshot, GenerateSpecRequest, SpecCandidate
from spec_search.scoring import RealismConfig, novelty_score, score_realism_heuristic
from spec_search.search.exceptions import CandidateGenerationError
from spec_search.validation import validate_prompt, violation_feedback

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 5
REALISM_PRE_WEIGHT = 0.8
NOVELTY_PRE_WEIGHT = 0.2
SEED_INDEX = 1000
SEED_STYLE = "commit-message-seed"
SEED_RATIONALE = "Commit-message anchored seed to stabilize search around likely intent."
SEED_MAX_SCOPE = 4
GENERIC_SCOPE_HINTS = ["core behavior", "error handling", "test coverage"]
PARSE_FAILURE_FEEDBACK = (
    "output must be a single submit_spec_candidate call with a non-empty candidate_prompt"
)

CANDIDATE_STYLES = [
    "balanced high-level design request",
    "minimal-scope request focused on core behavior",
    "acceptance-criteria-first request",
    "resilience and error-handling focused request",
    "test-oriented request emphasizing observable behavior",
]
DEFAULT_EXTRA_STYLE = "balanced high-level design request with concise constraints"


def candidate_styles(count: int) -> list[str]:
    """Return ``count`` styles, padding with the default style past the cycle."""
    styles = CANDIDATE_STYLES[:count]
    styles.extend([DEFAULT_EXTRA_STYLE] * max(0, count - len(CANDIDATE_STYLES)))
    return styles


def pre_score(realism: float, novelty: float) -> float:
    return REALISM_PRE_WEIGHT * realism + NOVELTY_PRE_WEIGHT * novelty


def rank_drafts(drafts: list[CandidateDraft]) -> list[CandidateDraft]:
    """Valid drafts by pre-score, highest first; ties keep pool order."""
    return sorted((draft for draft in drafts if draft.valid), key=lambda draft: -draft.pre_score)


def build_seed_prompt(commit_message: str, scope: list[str]) -> str:
    """Deterministic four-section request built from commit metadata."""
    summary = sanitize_one_line(commit_message).rstrip(".").strip()
    focus = ", ".join(scope)
    return (
        "# Context\n"
        f"We want to {summary[:1].lower()}{summary[1:]}. Behavior outside this change should "
        "keep working the way it does today.\n\n"
        "# Desired Outcomes\n"
        f"The project should deliver the behavior this change describes, with attention to "
        f"{focus}.\n\n"
        "# Constraints and Non-Goals\n"
        "Keep the scope focused on this change, avoid unrelated refactors, and preserve the "
        "existing interfaces that callers rely on.\n\n"
        "# Acceptance Criteria\n"
        "The new behavior is observable through the existing entry points, error paths are "
        "explicit, and tests cover both the expected and the failing cases."
    )


class CandidatePool:
    """Builds and ranks the candidate drafts for one iteration.

    Each style slot is regenerated up to five times on validation failure,
    with the violation fed back into the next request. A commit-message seed
    is appended when it validates.
    """

    def __init__(
        self,
        spec_writer: SpecWriter,
        realism_config: RealismConfig,
        check_cancelled: Callable[[], None] | None = None,
    ) -> None:
        self.spec_writer = spec_writer
        self.realism_config = realism_config
        self.check_cancelled = check_cancelled or (lambda: None)

    def build(
        self,
        iteration: int,
        feedback_text: str,
        previous_prompt: str,
        previous_outcome: str,
        prompt_history: list[str],
        commit_message: str,
        target: DiffSnapshot,
        candidates_per_iter: int,
    ) -> list[CandidateDraft]:
        """Generate all drafts for ``iteration``, invalid ones included.

        Args:
            iteration: 1-based iteration number.
            feedback_text: Objective anchor plus rendered feedback packet.
            previous_prompt: Prompt of the previous iteration's best attempt.
            previous_outcome: Score line of the previous iteration's best attempt.
            prompt_history: Valid prompts from earlier iterations, for novelty.
            commit_message: Target commit message, for the seed candidate.
            target: Target snapshot, for the seed's intent signals.
            candidates_per_iter: Number of generated style slots.

        Returns:
            Drafts in slot order, the seed last when present.

        Raises:
            CandidateGenerationError: If no draft is valid.
        """
        drafts: list[CandidateDraft] = []
        for index, style in enumerate(candidate_styles(candidates_per_iter)):
            request = GenerateSpecRequest(
                iteration=iteration,
                feedback_text=feedback_text,
                max_path_refs=self.realism_config.max_path_refs,
                max_length=self.realism_config.max_length,
                style=style,
                previous_prompt=previous_prompt,
                previous_outcome=previous_outcome,
            )
            drafts.append(self._generate_slot(index, style, request, prompt_history))

        seed = self.make_seed_candidate(commit_message, target, prompt_history)
        if seed is not None:
            drafts.append(seed)

        if not any(draft.valid for draft in drafts):
            errors = "; ".join(draft.generation_error or "" for draft in drafts if draft.generation_error)
            raise CandidateGenerationError(
                f"all candidate generations failed in iteration {iteration}: {errors}"
            )
        return drafts

    def _generate_slot(
        self,
        index: int,
        style: str,
        request: GenerateSpecRequest,
        prompt_history: list[str],
    ) -> CandidateDraft:
        last_raw = ""
        last_error = "unknown spec writer failure"
        for attempt in range(MAX_GENERATION_ATTEMPTS):
            self.check_cancelled()
            try:
                candidate = self.spec_writer.generate_draft(request)
            except AgentError as exc:
                last_error = str(exc)
                request = request.model_copy(update={"violation_reason": PARSE_FAILURE_FEEDBACK})
                continue

            last_raw = candidate.raw_response
            violation = validate_prompt(candidate.candidate_prompt, request.max_length)
            if violation is not None:
                last_error = violation.message
                logger.debug("Draft %d (%s) rejected: %s", index, style, violation.message)
                request = request.model_copy(
                    update={"violation_reason": violation_feedback(violation)}
                )
                continue

            return self._score_draft(index, style, candidate, attempt, prompt_history)

        return CandidateDraft(
            index=index,
            style=style,
            validation_retries=MAX_GENERATION_ATTEMPTS,
            raw_response=last_raw,
            generation_error=f"failed after {MAX_GENERATION_ATTEMPTS} attempts: {last_error}",
            valid=False,
        )

    def _score_draft(
        self,
        index: int,
        style: str,
        candidate: SpecCandidate,
        retries: int,
        prompt_history: list[str],
    ) -> CandidateDraft:
        prompt = candidate.candidate_prompt.strip()
        realism = score_realism_heuristic(prompt, self.realism_config)
        novelty = novelty_score(prompt, prompt_history)
        return CandidateDraft(
            index=index,
            style=style,
            candidate_prompt=prompt,
            rationale=candidate.rationale.strip(),
            scope_hints=list(candidate.scope_hints),
            validation_retries=retries,
            raw_response=candidate.raw_response,
            pre_realism=realism.heuristic_score,
            novelty=novelty,
            pre_score=pre_score(realism.heuristic_score, novelty),
            valid=True,
        )

    def make_seed_candidate(
        self,
        commit_message: str,
        target: DiffSnapshot,
        prompt_history: list[str],
    ) -> CandidateDraft | None:
        """Build the commit-message seed, or None when it cannot validate."""
        if not sanitize_one_line(commit_message):
            return None
        scope = infer_intents(target)[:SEED_MAX_SCOPE] or list(GENERIC_SCOPE_HINTS)

        prompt = build_seed_prompt(commit_message, scope)
        max_length = self.realism_config.max_length
        if max_length > 0 and len(prompt) > max_length:
            prompt = prompt[:max_length]
        if validate_prompt(prompt, max_length) is not None:
            return None

        candidate = SpecCandidate(
            candidate_prompt=prompt,
            rationale=SEED_RATIONALE,
            scope_hints=scope,
        )
        return self._score_draft(SEED_INDEX, SEED_STYLE, candidate, 0, prompt_history)
