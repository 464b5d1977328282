"""Tests for the search controller nodes and stop rules."""

import threading

import pytest

from conftest import FakeCoder, FakeRepository, FakeSpecWriter, passing_test_runner
from spec_search.agents.exceptions import CoderError, CoderTimeoutError, TestRunnerError
from spec_search.feedback import CODER_ISSUE_GAP
from spec_search.models import (
    BestResult,
    DiffSnapshot,
    ExecutionAttempt,
    RealismResult,
    StopReason,
    TechScore,
    TestCategory,
    TestRunResult,
)
from spec_search.search.artifacts import ArtifactStore
from spec_search.search.candidate_pool import CandidatePool
from spec_search.search.config import load_config
from spec_search.search.controller import (
    decide_fn,
    evaluate_stop,
    format_outcome,
    make_cancel_check,
    make_execute_node,
    make_feedback_node,
    make_generate_node,
    make_select_node,
    recursion_limit_for,
    select_iteration_best,
    update_best,
)
from spec_search.search.exceptions import SearchCancelledError
from spec_search.search.state import make_initial_state


def no_cancel():
    return None


def make_attempt(final: float, prompt: str = "p") -> ExecutionAttempt:
    return ExecutionAttempt(
        candidate_index=0,
        candidate_style="balanced",
        candidate_prompt=prompt,
        rank=0,
        tech=TechScore(
            file_jaccard=final,
            diff_similarity=final,
            line_precision=final,
            line_recall=final,
            line_f1=final,
            score=final,
        ),
        realism=RealismResult(heuristic_score=0.5, score=0.5),
        final_score=final,
        test_result=TestRunResult(ran=True, passed=True, category=TestCategory.PASS),
    )


def make_best(iteration: int, final: float) -> BestResult:
    return BestResult(iteration=iteration, prompt="p", patch="", tech=final, realism=0.5, final=final)


@pytest.fixture
def config(tmp_path):
    return load_config(repo="owner/repo", commit="HEAD", workdir=str(tmp_path))


@pytest.fixture
def store(tmp_path):
    artifact_store = ArtifactStore(tmp_path)
    artifact_store.ensure_layout()
    return artifact_store


@pytest.fixture
def state(target_snapshot):
    repository = FakeRepository(target_snapshot, [target_snapshot])
    return make_initial_state(
        commit_info=repository.commit_info,
        target=target_snapshot,
        feedback_text="Iteration: 0",
        objective_anchor="Objective anchor: keep it high-level.",
    )


class TestPureHelpers:
    def test_cancel_check(self):
        make_cancel_check(None)()
        event = threading.Event()
        check = make_cancel_check(event)
        check()
        event.set()
        with pytest.raises(SearchCancelledError):
            check()

    def test_select_iteration_best_first_wins_ties(self):
        attempts = [make_attempt(0.4), make_attempt(0.7), make_attempt(0.7)]
        assert select_iteration_best(attempts) == 1

    def test_select_iteration_best_empty(self):
        with pytest.raises(ValueError):
            select_iteration_best([])

    def test_update_best_only_on_strict_improvement(self):
        best, streak = None, 0
        for iteration, final in enumerate([0.3, 0.3, 0.6, 0.5, 0.6], start=1):
            best, streak = update_best(best, streak, make_best(iteration, final))
        assert best.iteration == 3
        assert best.final == 0.6
        assert streak == 2

    @pytest.mark.parametrize(
        "iteration, final, streak, expected",
        [
            (3, 0.6, 0, StopReason.THRESHOLD_REACHED),
            (3, 0.6, 3, StopReason.THRESHOLD_REACHED),
            (4, 0.2, 3, StopReason.NO_IMPROVEMENT),
            (8, 0.2, 0, StopReason.MAX_ITERS),
            (2, 0.2, 1, None),
        ],
    )
    def test_evaluate_stop_order(self, iteration, final, streak, expected):
        assert evaluate_stop(iteration, final, streak, 0.6, 8) == expected

    def test_format_outcome(self):
        assert format_outcome(make_attempt(0.5)) == "tech 0.50 realism 0.50 final 0.50 test=pass"

    def test_decide_fn(self):
        assert decide_fn({"stopped_reason": ""}) == "continue"
        assert decide_fn({"stopped_reason": "max-iters reached"}) == "stop"

    def test_recursion_limit(self):
        assert recursion_limit_for(8) == 42


class TestGenerateNode:
    def test_advances_iteration_and_records_history(self, config, state):
        writer = FakeSpecWriter()
        pool = CandidatePool(writer, config.realism_config())
        update = make_generate_node(pool, config, no_cancel)(state)

        assert update["iteration"] == 1
        assert len(update["drafts"]) == config.candidates_per_iter + 1
        assert len(update["prompt_history"]) == len(update["drafts"])
        feedback = writer.requests[0].feedback_text
        assert feedback.startswith("Objective anchor: keep it high-level.")
        assert feedback.endswith("Iteration: 0")


class TestExecuteNode:
    def run_node(self, config, store, state, coder=None, writer=None, runner=None, produced=None):
        repository = FakeRepository(state["target"], [produced or state["target"]])
        writer = writer or FakeSpecWriter()
        pool = CandidatePool(writer, config.realism_config())
        state = {**state, **make_generate_node(pool, config, no_cancel)(state)}
        node = make_execute_node(
            writer,
            coder or FakeCoder(),
            runner or passing_test_runner,
            repository,
            store,
            config,
            no_cancel,
        )
        return node(state), repository

    def test_runs_top_ranked_drafts(self, config, store, state):
        update, repository = self.run_node(config, store, state)

        attempts = update["attempts"]
        assert len(attempts) == config.coder_runs_per_iter
        assert [attempt.rank for attempt in attempts] == [0, 1]
        assert all(commit == "a" * 40 for _, commit in repository.created)
        assert len(repository.removed) == 2
        first = attempts[0]
        assert first.tech.score == pytest.approx(1.0)
        assert first.realism.judge_score == 0.5
        assert first.realism.score == pytest.approx(0.6 * 0.88 + 0.4 * 0.5)
        assert first.final_score == pytest.approx(0.75 + 0.25 * first.realism.score)
        assert first.test_result.category == TestCategory.PASS
        assert (store.artifacts_dir / "iter-001-cand-01.patch").exists()
        assert update["errors"] == []

    def test_keep_runs_leaves_worktrees(self, tmp_path, store, state):
        config = load_config(repo="r", commit="c", workdir=str(tmp_path), keep_runs=True)
        _, repository = self.run_node(config, store, state)
        assert repository.removed == []
        assert (store.runs_dir / "iter-001-cand-01").is_dir()

    def test_coder_error_recorded_as_test_failure(self, config, store, state):
        coder = FakeCoder(error=CoderError("model refused"))
        update, repository = self.run_node(config, store, state, coder=coder)

        attempt = update["attempts"][0]
        assert attempt.coder_error == "model refused"
        assert attempt.test_result.category == TestCategory.TEST_FAILURE
        assert not attempt.test_result.ran
        assert len(repository.removed) == 2

    def test_coder_timeout_recorded_as_timeout(self, config, store, state):
        coder = FakeCoder(error=CoderTimeoutError("took too long"))
        update, _ = self.run_node(config, store, state, coder=coder)
        assert update["attempts"][0].test_result.category == TestCategory.TIMEOUT

    def test_judge_failure_falls_back_to_heuristic(self, config, store, state):
        writer = FakeSpecWriter(fail_judge=True)
        update, _ = self.run_node(config, store, state, writer=writer)

        realism = update["attempts"][0].realism
        assert realism.judge_score is None
        assert realism.score == pytest.approx(realism.heuristic_score)
        assert update["errors"][0].startswith("judge_realism error")

    def test_runner_error_is_not_run(self, config, store, state):
        def broken_runner(repo_path, timeout):
            raise TestRunnerError("runner missing")

        update, _ = self.run_node(config, store, state, runner=broken_runner)
        result = update["attempts"][0].test_result
        assert result.category == TestCategory.NOT_RUN
        assert result.summary == "runner missing"


class TestSelectAndFeedback:
    def test_select_updates_best(self, state):
        state = {
            **state,
            "iteration": 2,
            "attempts": [make_attempt(0.4, "first"), make_attempt(0.6, "second")],
            "attempt_snapshots": [DiffSnapshot(patch="one"), DiffSnapshot(patch="two")],
            "best": make_best(1, 0.5),
            "no_improvement": 1,
        }
        update = make_select_node()(state)

        assert update["selected_attempt"] == 1
        assert update["best"].iteration == 2
        assert update["best"].patch == "two"
        assert update["no_improvement"] == 0
        assert update["previous_prompt"] == "second"
        assert update["previous_outcome"].startswith("tech 0.60")

    def feedback_state(self, state, attempt, produced):
        return {
            **state,
            "iteration": 1,
            "attempts": [attempt],
            "attempt_snapshots": [produced],
            "selected_attempt": 0,
            "no_improvement": 0,
        }

    def test_feedback_merges_coder_issue_and_gaps(self, config, state):
        attempt = make_attempt(0.2).model_copy(update={"coder_error": "boom"})
        writer = FakeSpecWriter(gaps=["resume path never persists state"])
        node = make_feedback_node(writer, config, no_cancel)
        update = node(self.feedback_state(state, attempt, DiffSnapshot()))

        packet = update["iteration_logs"][0].feedback_packet
        assert CODER_ISSUE_GAP in packet.intent_gaps
        assert "resume path never persists state" in packet.intent_gaps
        assert update["stopped_reason"] == ""
        assert update["feedback_text"].startswith("Iteration: 1")
        assert writer.gap_calls == 1

    def test_feedback_gap_failure_recorded(self, config, state):
        writer = FakeSpecWriter(fail_gaps=True)
        node = make_feedback_node(writer, config, no_cancel)
        update = node(self.feedback_state(state, make_attempt(0.95), state["target"]))

        assert update["errors"] == ["summarize_intent_gap error: gap summary unavailable"]
        assert update["stopped_reason"] == StopReason.THRESHOLD_REACHED.value
        assert update["iteration_logs"][0].iteration_best_score == 0.95
