"""Tests for spec_search.models."""

import pytest
from pydantic import ValidationError

from spec_search.models import (
    CandidateDraft,
    DiffSnapshot,
    FileStat,
    Metrics,
    RunLog,
    StopReason,
    TestCategory,
)


def test_changed_files_sorted_and_deduplicated():
    snapshot = DiffSnapshot(changed_files=["b.go", " a.go ", "b.go", ""])
    assert snapshot.changed_files == ["a.go", "b.go"]


def test_empty_snapshot():
    assert DiffSnapshot().is_empty
    assert not DiffSnapshot(patch="diff --git a/x b/x\n").is_empty


def test_snapshot_is_frozen():
    snapshot = DiffSnapshot(patch="p")
    with pytest.raises(ValidationError):
        snapshot.patch = "changed"


def test_candidate_draft_defaults_invalid():
    draft = CandidateDraft(index=0, style="balanced")
    assert draft.valid is False
    assert draft.generation_error is None
    assert draft.scope_hints == []


def test_enum_values_serialize_as_strings():
    assert TestCategory.UNIT_TEST.value == "unit-test"
    assert StopReason.NO_IMPROVEMENT.value == "no improvement for 3 iterations"


def test_run_log_json_round_trips_stats():
    log = RunLog(
        repo="owner/repo",
        target_commit="b" * 40,
        parent_commit="a" * 40,
        alpha=0.75,
        threshold=0.9,
        max_iters=8,
    )
    payload = log.model_dump_json()
    assert '"stopped_reason":""' in payload
    assert FileStat(path="x").added == 0


def test_persisted_records_dump_camel_case_aliases():
    log = RunLog(
        repo="owner/repo",
        target_commit="b" * 40,
        parent_commit="a" * 40,
        alpha=0.75,
        threshold=0.9,
        max_iters=8,
        best_iteration=2,
    )
    payload = log.model_dump(by_alias=True)
    assert payload["targetCommit"] == "b" * 40
    assert payload["maxIters"] == 8
    assert payload["bestIteration"] == 2
    assert "stoppedReason" in payload

    metrics = Metrics.model_validate(
        {"techSimilarity": 0.5, "realismScore": 0.6, "finalScore": 0.525, "alpha": 0.75, "bestIteration": 1}
    )
    assert metrics.best_iteration == 1

    draft = CandidateDraft(index=1, style="concise", pre_score=0.4, validation_retries=1)
    assert draft.model_dump(by_alias=True)["preScore"] == 0.4
    assert draft.model_dump(by_alias=True)["validationRetries"] == 1
