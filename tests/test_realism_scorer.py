"""Tests for heuristic realism scoring."""

import pytest

from spec_search.scoring import RealismConfig, combine_realism, score_realism_heuristic
from spec_search.scoring.realism import count_identifiers, count_path_refs


@pytest.fixture
def config():
    return RealismConfig(max_path_refs=3, max_identifiers=25, max_length=0)


def test_empty_prompt_scores_zero(config):
    result = score_realism_heuristic("   ", config)
    assert result.score == 0.0
    assert result.reasons == []


def test_well_formed_prompt(config, valid_prompt):
    result = score_realism_heuristic(valid_prompt, config)
    assert result.heuristic_score == pytest.approx(0.88)
    assert result.reasons == []


def test_missing_sections_are_reported(config):
    result = score_realism_heuristic("Make it faster.", config)
    assert "missing clear problem statement/motivation" in result.reasons
    assert "acceptance criteria or test expectations are missing" in result.reasons
    assert result.score == pytest.approx(0.55 + 0.03 + 0.04)


def test_path_heavy_prompt_penalized(config, valid_prompt):
    paths = " ".join(f"src/pkg{i}/mod.go" for i in range(6))
    result = score_realism_heuristic(f"{valid_prompt}\nTouch {paths}.", config)
    assert result.score < 0.88
    assert "too many file path references make it look diff-driven" in result.reasons


def test_max_length_overrun_penalized(valid_prompt):
    tight = RealismConfig(max_length=100)
    result = score_realism_heuristic(valid_prompt, tight)
    assert "prompt is overly long and likely too prescriptive" in result.reasons


def test_score_is_clamped(config):
    noisy = "\n".join(f"- then step {i} of_item_{i} 1{i}" for i in range(40))
    result = score_realism_heuristic(noisy, config)
    assert 0.0 <= result.score <= 1.0


def test_counters():
    assert count_path_refs("edit src/a.go and src/a.go and lib/b.py") == 2
    assert count_identifiers("call parse_line then HTTPServer and fooBar") == 3


def test_combine_realism():
    assert combine_realism(0.8, None) == pytest.approx(0.8)
    assert combine_realism(0.8, 0.3) == pytest.approx(0.6 * 0.8 + 0.4 * 0.3)
    assert combine_realism(1.5, None) == 1.0
