"""End-to-end tests of run_search with in-memory collaborators."""

import json
import threading

import pytest

from conftest import FakeCoder, FakeRepository, FakeSpecWriter, passing_test_runner
from spec_search.models import DiffSnapshot, StopReason
from spec_search.search.config import load_config
from spec_search.search.exceptions import CandidateGenerationError, SearchCancelledError
from spec_search.search.runner import run_search


def run(tmp_path, repository, writer=None, cancel_event=None, **overrides):
    config = load_config(repo="owner/repo", commit="HEAD", workdir=str(tmp_path), **overrides)
    return run_search(
        config,
        spec_writer=writer or FakeSpecWriter(),
        coder=FakeCoder(),
        test_runner=passing_test_runner,
        cancel_event=cancel_event,
        repository=repository,
    )


def test_stops_when_threshold_reached(tmp_path, target_snapshot):
    repository = FakeRepository(target_snapshot, [target_snapshot])
    result = run(tmp_path, repository, threshold=0.9)

    assert result.stopped_reason == StopReason.THRESHOLD_REACHED.value
    assert result.iterations_run == 1
    assert result.best_iteration == 1
    assert result.best_tech_similarity == pytest.approx(1.0)
    assert result.best_final_score == pytest.approx(0.75 + 0.25 * 0.728)

    artifacts = tmp_path / "artifacts"
    assert (artifacts / "target.patch").read_text() == target_snapshot.patch
    assert (artifacts / "best.patch").read_text() == target_snapshot.patch
    assert (artifacts / "best_prompt.md").read_text().startswith("# Context")
    metrics = json.loads((artifacts / "metrics.json").read_text())
    assert metrics["bestIteration"] == 1
    assert metrics["techSimilarity"] == pytest.approx(1.0)
    assert metrics["realismScore"] == pytest.approx(0.728)
    assert metrics["finalScore"] == pytest.approx(0.75 + 0.25 * 0.728)
    assert metrics["alpha"] == 0.75
    run_log = json.loads((artifacts / "run_log.json").read_text())
    assert run_log["targetCommit"] == "b" * 40
    assert run_log["parentCommit"] == "a" * 40
    assert len(run_log["iterations"]) == 1
    assert run_log["iterations"][0]["coderAttempts"][0]["testResult"]["category"] == "pass"


def test_stops_after_three_stagnant_iterations(tmp_path, target_snapshot):
    repository = FakeRepository(target_snapshot, [DiffSnapshot()], commit_message="")
    result = run(tmp_path, repository, threshold=1.0)

    assert result.stopped_reason == StopReason.NO_IMPROVEMENT.value
    assert result.iterations_run == 4
    assert result.best_iteration == 1
    assert result.best_tech_similarity == 0.0


def test_stops_at_max_iters(tmp_path, target_snapshot):
    repository = FakeRepository(target_snapshot, [DiffSnapshot()], commit_message="")
    result = run(tmp_path, repository, threshold=1.0, max_iters=2)

    assert result.stopped_reason == StopReason.MAX_ITERS.value
    assert result.iterations_run == 2


def test_later_improvement_becomes_best(tmp_path, target_snapshot):
    produced = [DiffSnapshot(), DiffSnapshot(), target_snapshot]
    repository = FakeRepository(target_snapshot, produced, commit_message="")
    result = run(
        tmp_path,
        repository,
        threshold=0.9,
        candidates_per_iter=1,
        coder_runs_per_iter=1,
    )

    assert result.best_iteration == 3
    assert result.stopped_reason == StopReason.THRESHOLD_REACHED.value


def test_generation_failure_aborts(tmp_path, target_snapshot):
    repository = FakeRepository(target_snapshot, [target_snapshot], commit_message="")
    with pytest.raises(CandidateGenerationError):
        run(tmp_path, repository, writer=FakeSpecWriter(prompts=[None]))
    assert not (tmp_path / "artifacts" / "best.patch").exists()


def test_cancellation(tmp_path, target_snapshot):
    repository = FakeRepository(target_snapshot, [target_snapshot])
    event = threading.Event()
    event.set()
    with pytest.raises(SearchCancelledError):
        run(tmp_path, repository, cancel_event=event)
    assert repository.created == []
