"""Heuristic realism scoring for candidate spec text."""

import re

from pydantic import BaseModel, ConfigDict

from spec_search.models import RealismResult
from spec_search.scoring.technical import clamp01

BASE_SCORE = 0.55
SOFT_LENGTH_LIMIT = 2600
MAX_NUMERIC_LITERALS = 12
MAX_BULLETS = 10
MAX_STEP_WORDS = 5
JUDGE_WEIGHT = 0.4

PATH_RE = re.compile(r"(?:^|\s)(?:[A-Za-z0-9._-]+/)+[A-Za-z0-9._-]+", re.MULTILINE)
IDENTIFIER_RE = re.compile(r"\b[A-Za-z_][A-Za-z0-9_]{2,}\b", re.ASCII)
NUMERIC_RE = re.compile(r"\b\d+(?:\.\d+)?\b", re.ASCII)
BULLET_RE = re.compile(r"^\s*(?:[-*]|\d+\.)\s+", re.MULTILINE)

STEP_WORDS = ("then", "after that", "step", "next,")
PROBLEM_WORDS = ("problem", "motivation", "currently", "pain point", "context")
BEHAVIOR_WORDS = ("should", "must", "expected", "behavior", "outcome")
CONSTRAINT_WORDS = ("non-goal", "out of scope", "do not", "avoid")
ACCEPTANCE_WORDS = ("acceptance", "test", "verify", "pass")


class RealismConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_path_refs: int = 3
    max_identifiers: int = 25
    max_length: int = 0   # 0 = no cap, soft limit applies


def count_path_refs(text: str) -> int:
    return len({match.strip() for match in PATH_RE.findall(text)})


def looks_like_identifier(token: str) -> bool:
    if "_" in token:
        return True
    if len(token) >= 3 and token.upper() == token:
        return True
    return any("A" <= ch <= "Z" for ch in token[1:])


def count_identifiers(text: str) -> int:
    return sum(1 for token in IDENTIFIER_RE.findall(text) if looks_like_identifier(token))


def _has_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _keyword_count(text: str, keywords: tuple[str, ...]) -> int:
    return sum(text.count(keyword) for keyword in keywords)


def _length_adjustment(length: int, max_length: int) -> tuple[float, str | None]:
    if max_length > 0:
        if length <= max_length:
            return 0.08, None
        over = (length - max_length) / max(1, max_length)
        return -min(0.25, over * 0.35), "prompt is overly long and likely too prescriptive"
    if length <= SOFT_LENGTH_LIMIT:
        return 0.03, None
    over = (length - SOFT_LENGTH_LIMIT) / SOFT_LENGTH_LIMIT
    return -min(0.20, over * 0.25), "prompt is very long and may become too prescriptive"


def score_realism_heuristic(prompt: str, config: RealismConfig) -> RealismResult:
    """Estimate how plausibly ``prompt`` reads as an organic human request.

    Starts at 0.55, sums independent adjustments, then clamps to [0, 1].
    Reasons explain penalties and missing sections; they do not feed the
    score.
    """
    text = prompt.strip()
    if not text:
        return RealismResult(heuristic_score=0.0, score=0.0)

    lowered = text.lower()
    adjustments: list[float] = []
    reasons: list[str] = []

    delta, reason = _length_adjustment(len(text), config.max_length)
    adjustments.append(delta)
    if reason:
        reasons.append(reason)

    path_refs = count_path_refs(text)
    if path_refs > config.max_path_refs:
        adjustments.append(-min(0.25, (path_refs - config.max_path_refs) * 0.07))
        reasons.append("too many file path references make it look diff-driven")
    elif path_refs > 0:
        adjustments.append(0.02)

    identifiers = count_identifiers(text)
    if identifiers > config.max_identifiers:
        adjustments.append(-min(0.25, (identifiers - config.max_identifiers) * 0.02))
        reasons.append("identifier density is high for a high-level specification")
    else:
        adjustments.append(0.04)

    if len(NUMERIC_RE.findall(text)) > MAX_NUMERIC_LITERALS:
        adjustments.append(-0.12)
        reasons.append("too many exact constants can indicate overfitting")

    bullets = len(BULLET_RE.findall(text))
    if bullets > MAX_BULLETS:
        adjustments.append(-min(0.20, (bullets - MAX_BULLETS) * 0.02))
        reasons.append("excessive checklists can encode micro-diffs")

    step_words = _keyword_count(lowered, STEP_WORDS)
    if step_words > MAX_STEP_WORDS:
        adjustments.append(-min(0.15, (step_words - MAX_STEP_WORDS) * 0.03))
        reasons.append("instruction sequence is too low-level")

    section_signals = [
        (PROBLEM_WORDS, 0.06, "missing clear problem statement/motivation"),
        (BEHAVIOR_WORDS, 0.06, "desired behavior is not explicit enough"),
        (CONSTRAINT_WORDS, 0.07, "constraints or non-goals are missing"),
        (ACCEPTANCE_WORDS, 0.07, "acceptance criteria or test expectations are missing"),
    ]
    for keywords, bonus, missing_reason in section_signals:
        if _has_any(lowered, keywords):
            adjustments.append(bonus)
        else:
            reasons.append(missing_reason)

    heuristic = clamp01(BASE_SCORE + sum(adjustments))
    return RealismResult(heuristic_score=heuristic, score=heuristic, reasons=reasons)


def combine_realism(heuristic: float, judge: float | None) -> float:
    """Blend in the judge opinion (0.6/0.4) when one is available."""
    if judge is None:
        return clamp01(heuristic)
    return clamp01((1 - JUDGE_WEIGHT) * heuristic + JUDGE_WEIGHT * judge)
