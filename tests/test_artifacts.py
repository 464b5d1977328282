"""Tests for the artifact store layout."""

import json

import pytest

from spec_search.models import Metrics
from spec_search.search.artifacts import ArtifactStore
from spec_search.search.exceptions import SearchError


def test_layout_and_names(tmp_path):
    store = ArtifactStore(tmp_path / "work")
    store.ensure_layout()
    assert store.runs_dir.is_dir()
    assert store.artifacts_dir.is_dir()
    assert store.run_path(3, 2) == tmp_path / "work" / "runs" / "iter-003-cand-02"


def test_writes(tmp_path):
    store = ArtifactStore(tmp_path)
    store.ensure_layout()
    store.write_best("# Context\nx", "diff --git a/x b/x\n")
    path = store.write_attempt_patch(1, 1, "")
    metrics = Metrics(
        tech_similarity=0.5, realism_score=0.6, final_score=0.525, alpha=0.75, best_iteration=1
    )
    json_path = store.write_json("metrics.json", metrics)

    assert (store.artifacts_dir / "best_prompt.md").read_text() == "# Context\nx\n"
    assert path.name == "iter-001-cand-01.patch"
    text = json_path.read_text()
    assert text.endswith("}\n")
    assert text.startswith('{\n  "techSimilarity"')
    payload = json.loads(text)
    assert payload["finalScore"] == 0.525
    assert set(payload) == {"techSimilarity", "realismScore", "finalScore", "alpha", "bestIteration"}


def test_write_failure_raises(tmp_path):
    store = ArtifactStore(tmp_path)
    with pytest.raises(SearchError, match="write target.patch"):
        store.write_target_patch("patch")
