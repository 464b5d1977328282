"""Token-overlap novelty of a candidate against earlier candidates."""

from spec_search.scoring.technical import clamp01

_STRIP_CHARS = " \t\n\r.,;:!?()[]{}\"'`"
MIN_TOKEN_LENGTH = 4


def token_set(text: str) -> set[str]:
    tokens = set()
    for raw in text.lower().split():
        token = raw.strip(_STRIP_CHARS)
        if len(token) >= MIN_TOKEN_LENGTH:
            tokens.add(token)
    return tokens


def jaccard_tokens(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 1.0
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def novelty_score(candidate: str, history: list[str]) -> float:
    """Return 1 minus the highest Jaccard similarity to any prior prompt."""
    if not history:
        return 1.0
    candidate_tokens = token_set(candidate)
    best_similarity = max(jaccard_tokens(candidate_tokens, token_set(prior)) for prior in history)
    return clamp01(1.0 - best_similarity)
