"""LangGraph search controller.

Wires the candidate pool, coder, scorers and feedback synthesis into a
StateGraph that runs one iteration per pass through its nodes and stops on
threshold, stagnation or the iteration cap.
"""

import logging
import threading
from typing import Callable

from langgraph.graph import END, START, StateGraph

from spec_search.agents.exceptions import (
    AgentError,
    CoderError,
    CoderTimeoutError,
    TestRunnerError,
)
from spec_search.agents.protocols import Coder, SpecWriter, SuiteRunner, Workspace
from spec_search.agents.test_runner import suite_timeout_for
from spec_search.feedback import CODER_ISSUE_GAP, build_iteration_packet, merge_gaps, packet_text
from spec_search.models import (
    BestResult,
    CandidateDraft,
    DiffSnapshot,
    ExecutionAttempt,
    IterationLog,
    StopReason,
    TestCategory,
    TestRunResult,
)
from spec_search.scoring import combine_realism, score_realism_heuristic, score_tech_similarity
from spec_search.search.artifacts import ArtifactStore
from spec_search.search.candidate_pool import CandidatePool, rank_drafts
from spec_search.search.config import (
    GAP_MAX_ITEMS,
    GAP_TIMEOUT_SECONDS,
    JUDGE_TIMEOUT_SECONDS,
    SearchConfig,
)
from spec_search.search.exceptions import GraphBuildError, SearchCancelledError
from spec_search.search.state import SearchState
from spec_search.vcs.exceptions import VCSError

logger = logging.getLogger(__name__)

MAX_STAGNANT_ITERATIONS = 3


def make_cancel_check(cancel_event: threading.Event | None) -> Callable[[], None]:
    """Return a callable that raises once ``cancel_event`` is set."""

    def check_cancelled() -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError("search cancelled")

    return check_cancelled


def select_iteration_best(attempts: list[ExecutionAttempt]) -> int:
    """Index of the highest final score; the first one wins ties.

    Raises:
        ValueError: If ``attempts`` is empty.
    """
    if not attempts:
        raise ValueError("no execution attempts to select from")
    best_index = 0
    for index, attempt in enumerate(attempts):
        if attempt.final_score > attempts[best_index].final_score:
            best_index = index
    return best_index


def update_best(
    best: BestResult | None,
    no_improvement: int,
    candidate: BestResult,
) -> tuple[BestResult, int]:
    """Replace the global best only on strict improvement.

    Returns:
        The (possibly unchanged) best and the updated no-improvement streak.
    """
    if best is None or candidate.final > best.final:
        return candidate, 0
    return best, no_improvement + 1


def evaluate_stop(
    iteration: int,
    iteration_best_final: float,
    no_improvement: int,
    threshold: float,
    max_iters: int,
) -> StopReason | None:
    """Stop rule, checked in order: threshold, stagnation, iteration cap."""
    if iteration_best_final >= threshold:
        return StopReason.THRESHOLD_REACHED
    if no_improvement >= MAX_STAGNANT_ITERATIONS:
        return StopReason.NO_IMPROVEMENT
    if iteration >= max_iters:
        return StopReason.MAX_ITERS
    return None


def format_outcome(attempt: ExecutionAttempt) -> str:
    return (
        f"tech {attempt.tech.score:.2f} realism {attempt.realism.score:.2f} "
        f"final {attempt.final_score:.2f} test={attempt.test_result.category.value}"
    )


def make_generate_node(
    pool: CandidatePool,
    config: SearchConfig,
    check_cancelled: Callable[[], None],
) -> Callable[[SearchState], dict]:
    """Factory: returns a node closure that builds the next candidate pool.

    The closure:
    1. Advances the iteration counter
    2. Builds the pool from anchor + feedback text and the prompt history
    3. Returns {"iteration", "drafts", "prompt_history": [new valid prompts]}

    CandidateGenerationError propagates and ends the run.
    """

    def generate_node(state: SearchState) -> dict:
        check_cancelled()
        iteration = state["iteration"] + 1
        logger.info("[iter %d] generating %d candidate prompts", iteration, config.candidates_per_iter)

        drafts = pool.build(
            iteration=iteration,
            feedback_text=f"{state['objective_anchor']}\n\n{state['feedback_text']}",
            previous_prompt=state["previous_prompt"],
            previous_outcome=state["previous_outcome"],
            prompt_history=state["prompt_history"],
            commit_message=state["commit_info"].commit_message,
            target=state["target"],
            candidates_per_iter=config.candidates_per_iter,
        )
        return {
            "iteration": iteration,
            "drafts": drafts,
            "prompt_history": [draft.candidate_prompt for draft in drafts if draft.valid],
        }

    return generate_node


def make_execute_node(
    spec_writer: SpecWriter,
    coder: Coder,
    test_runner: SuiteRunner,
    workspace: Workspace,
    store: ArtifactStore,
    config: SearchConfig,
    check_cancelled: Callable[[], None],
) -> Callable[[SearchState], dict]:
    """Factory: returns a node closure that executes the top-ranked drafts.

    Each of the top ``coder_runs_per_iter`` drafts runs in its own worktree
    at the parent commit, is snapshotted, scored and tested, then the
    worktree is removed unless ``keep_runs`` is set.

    Worktree and snapshot failures propagate; coder, judge and test failures
    are recorded on the attempt.
    """
    realism_config = config.realism_config()

    def judge(prompt: str, errors: list[str]) -> tuple[float | None, str]:
        check_cancelled()
        try:
            result = spec_writer.judge_realism(prompt, JUDGE_TIMEOUT_SECONDS)
        except AgentError as exc:
            logger.debug("Realism judge unavailable: %s", exc)
            errors.append(f"judge_realism error: {exc}")
            return None, ""
        return result.score, result.justification.strip()

    def run_tests(run_path: str, coder_error: CoderError | None) -> TestRunResult:
        if isinstance(coder_error, CoderTimeoutError):
            return TestRunResult(
                ran=False,
                category=TestCategory.TIMEOUT,
                summary=f"coder timed out before test run: {coder_error}",
            )
        if coder_error is not None:
            return TestRunResult(
                ran=False,
                category=TestCategory.TEST_FAILURE,
                summary=f"coder failed before test run: {coder_error}",
            )
        check_cancelled()
        try:
            return test_runner(run_path, suite_timeout_for(config.timeout_seconds))
        except TestRunnerError as exc:
            return TestRunResult(ran=False, category=TestCategory.NOT_RUN, summary=str(exc))

    def execute_one(
        iteration: int,
        rank: int,
        draft: CandidateDraft,
        parent_sha: str,
        target: DiffSnapshot,
        errors: list[str],
    ) -> tuple[ExecutionAttempt, DiffSnapshot]:
        run_path = store.run_path(iteration, rank + 1)
        workspace.create_worktree(run_path, parent_sha)
        try:
            check_cancelled()
            coder_error: CoderError | None = None
            final_message = ""
            try:
                final_message = coder.execute(
                    str(run_path), draft.candidate_prompt, float(config.timeout_seconds)
                )
            except CoderError as exc:
                coder_error = exc
                logger.info("[iter %d] candidate %d coder error: %s", iteration, rank + 1, exc)

            produced = workspace.snapshot_worktree(run_path)
            tech = score_tech_similarity(target, produced)
            realism = score_realism_heuristic(draft.candidate_prompt, realism_config)
            judge_score, justification = judge(draft.candidate_prompt, errors)
            reasons = list(realism.reasons)
            if justification:
                reasons.append(f"judge: {justification}")
            realism = realism.model_copy(
                update={
                    "judge_score": judge_score,
                    "score": combine_realism(realism.heuristic_score, judge_score),
                    "reasons": reasons,
                }
            )
            final_score = config.alpha * tech.score + (1 - config.alpha) * realism.score
            test_result = run_tests(str(run_path), coder_error)
            patch_path = store.write_attempt_patch(iteration, rank + 1, produced.patch)
        finally:
            if not config.keep_runs:
                try:
                    workspace.remove_worktree(run_path)
                except VCSError as exc:
                    logger.warning("failed to cleanup worktree %s: %s", run_path, exc)

        attempt = ExecutionAttempt(
            candidate_index=draft.index,
            candidate_style=draft.style,
            candidate_prompt=draft.candidate_prompt,
            rank=rank,
            coder_error=str(coder_error) if coder_error is not None else None,
            coder_final_message=final_message,
            tech=tech,
            realism=realism,
            final_score=final_score,
            test_result=test_result,
            produced_patch_path=str(patch_path),
            produced_files=list(produced.changed_files),
        )
        return attempt, produced

    def execute_node(state: SearchState) -> dict:
        iteration = state["iteration"]
        ranked = rank_drafts(state["drafts"])
        budget = min(config.coder_runs_per_iter, len(ranked))

        attempts: list[ExecutionAttempt] = []
        snapshots: list[DiffSnapshot] = []
        errors: list[str] = []
        for rank in range(budget):
            attempt, produced = execute_one(
                iteration,
                rank,
                ranked[rank],
                state["commit_info"].parent_sha,
                state["target"],
                errors,
            )
            attempts.append(attempt)
            snapshots.append(produced)
        return {"attempts": attempts, "attempt_snapshots": snapshots, "errors": errors}

    return execute_node


def make_select_node() -> Callable[[SearchState], dict]:
    """Factory: returns a node closure that picks the iteration best.

    The closure:
    1. Selects the attempt with the highest final score
    2. Updates the global best and the no-improvement streak
    3. Records the prompt and outcome line for the next generation round
    """

    def select_node(state: SearchState) -> dict:
        iteration = state["iteration"]
        attempts = state["attempts"]
        index = select_iteration_best(attempts)
        chosen = attempts[index]
        candidate = BestResult(
            iteration=iteration,
            prompt=chosen.candidate_prompt,
            patch=state["attempt_snapshots"][index].patch,
            tech=chosen.tech.score,
            realism=chosen.realism.score,
            final=chosen.final_score,
        )
        best, no_improvement = update_best(state["best"], state["no_improvement"], candidate)
        logger.info(
            "[iter %d] best attempt final=%.4f tech=%.4f realism=%.4f",
            iteration,
            chosen.final_score,
            chosen.tech.score,
            chosen.realism.score,
        )
        return {
            "selected_attempt": index,
            "best": best,
            "no_improvement": no_improvement,
            "previous_prompt": chosen.candidate_prompt,
            "previous_outcome": format_outcome(chosen),
        }

    return select_node


def make_feedback_node(
    spec_writer: SpecWriter,
    config: SearchConfig,
    check_cancelled: Callable[[], None],
) -> Callable[[SearchState], dict]:
    """Factory: returns a node closure that synthesizes the next feedback text.

    The closure builds the iteration packet from the selected attempt, adds
    the coder-issue gap and best-effort model gap items, logs the iteration
    and evaluates the stop rule.
    """

    def feedback_node(state: SearchState) -> dict:
        iteration = state["iteration"]
        index = state["selected_attempt"]
        chosen = state["attempts"][index]
        produced = state["attempt_snapshots"][index]

        packet = build_iteration_packet(
            iteration,
            state["target"],
            produced,
            chosen.tech,
            chosen.test_result.category.value,
            config.max_path_refs,
        )
        if chosen.coder_error:
            packet = merge_gaps(packet, [CODER_ISSUE_GAP])

        errors: list[str] = []
        check_cancelled()
        try:
            gaps = spec_writer.summarize_intent_gap(
                state["target"].patch, produced.patch, GAP_MAX_ITEMS, GAP_TIMEOUT_SECONDS
            )
        except AgentError as exc:
            logger.debug("Intent gap summary unavailable: %s", exc)
            errors.append(f"summarize_intent_gap error: {exc}")
            gaps = []
        if gaps:
            packet = merge_gaps(packet, gaps)

        iteration_log = IterationLog(
            iteration=iteration,
            drafts=state["drafts"],
            coder_attempts=state["attempts"],
            selected_attempt=index,
            feedback_packet=packet,
            iteration_best_score=chosen.final_score,
        )
        stop = evaluate_stop(
            iteration,
            chosen.final_score,
            state["no_improvement"],
            config.threshold,
            config.max_iters,
        )
        return {
            "feedback_text": packet_text(packet),
            "iteration_logs": [iteration_log],
            "stopped_reason": stop.value if stop is not None else "",
            "errors": errors,
        }

    return feedback_node


def decide_fn(state: SearchState) -> str:
    """Router after feedback: "stop" once a stop reason is set, else "continue"."""
    return "stop" if state["stopped_reason"] else "continue"


def stop_node(state: SearchState) -> dict:
    best = state["best"]
    logger.info(
        "Search stopped after %d iteration(s): %s (best final=%.4f at iteration %d)",
        state["iteration"],
        state["stopped_reason"],
        best.final if best is not None else 0.0,
        best.iteration if best is not None else 0,
    )
    return {}


def build_search_graph(
    spec_writer: SpecWriter,
    coder: Coder,
    test_runner: SuiteRunner,
    workspace: Workspace,
    store: ArtifactStore,
    config: SearchConfig,
    cancel_event: threading.Event | None = None,
):
    """Build and compile the search StateGraph.

    Edge topology:
      START -> generate_node -> execute_node -> select_node -> feedback_node
      feedback_node -> conditional(decide_fn) -> {generate_node, stop_node}
      stop_node -> END

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        check_cancelled = make_cancel_check(cancel_event)
        pool = CandidatePool(spec_writer, config.realism_config(), check_cancelled)

        graph = StateGraph(SearchState)
        graph.add_node("generate_node", make_generate_node(pool, config, check_cancelled))
        graph.add_node(
            "execute_node",
            make_execute_node(
                spec_writer, coder, test_runner, workspace, store, config, check_cancelled
            ),
        )
        graph.add_node("select_node", make_select_node())
        graph.add_node("feedback_node", make_feedback_node(spec_writer, config, check_cancelled))
        graph.add_node("stop_node", stop_node)

        graph.add_edge(START, "generate_node")
        graph.add_edge("generate_node", "execute_node")
        graph.add_edge("execute_node", "select_node")
        graph.add_edge("select_node", "feedback_node")
        graph.add_conditional_edges(
            "feedback_node",
            decide_fn,
            {
                "continue": "generate_node",
                "stop": "stop_node",
            },
        )
        graph.add_edge("stop_node", END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build search graph: {exc}") from exc


def recursion_limit_for(max_iters: int) -> int:
    """Graph step budget: four nodes per iteration plus slack."""
    return max_iters * 4 + 10
