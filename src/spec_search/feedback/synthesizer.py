"""Feedback packets comparing the target change with a produced change."""

from spec_search.models import DiffSnapshot, FeedbackPacket, PerFileScore, TechScore
from spec_search.validation import strip_tracker_refs

MAX_NOTE_LENGTH = 220
MAX_ANCHOR_INTENTS = 5
ALIGNED_MARKER = "intent categories largely align"
CODER_ISSUE_GAP = "coder execution had issues; refine acceptance criteria and constraints"

INTENT_TESTS = "tests/expectations updated"
INTENT_DOCS = "documentation behavior or guidance changed"
INTENT_CONFIG = "configuration behavior changed"
INTENT_NEW_COMPONENT = "new component introduced"
INTENT_REMOVAL = "component removal or consolidation"
INTENT_DEPENDENCIES = "dependency usage changed"
INTENT_ERRORS = "error handling logic differs"
INTENT_LOGGING = "logging behavior differs"
INTENT_REQUESTS = "request/response behavior changed"
INTENT_CACHING = "caching behavior changed"

_PATCH_TOKEN_INTENTS: list[tuple[tuple[str, ...], str]] = [
    (("import ", " require(", " from ", " use "), INTENT_DEPENDENCIES),
    (("error", "err", "exception", "retry", "fallback", "panic"), INTENT_ERRORS),
    (("log", "logger", "debug", "warn", "trace", "info"), INTENT_LOGGING),
    (("http", "request", "response", "handler", "route", "endpoint"), INTENT_REQUESTS),
    (("cache", "ttl", "evict", "memo"), INTENT_CACHING),
]


def infer_intents(snapshot: DiffSnapshot) -> list[str]:
    """Derive sorted intent signals from changed paths and patch keywords."""
    if snapshot.is_empty:
        return []

    intents: set[str] = set()
    for path in snapshot.changed_files:
        lowered = path.lower()
        if "_test." in lowered or "/test" in lowered or lowered.startswith("test"):
            intents.add(INTENT_TESTS)
        if lowered.endswith(".md") or lowered.startswith("docs/"):
            intents.add(INTENT_DOCS)
        if "config" in lowered or "settings" in lowered:
            intents.add(INTENT_CONFIG)

    patch = snapshot.patch.lower()
    if "new file mode" in patch or "--- /dev/null" in patch:
        intents.add(INTENT_NEW_COMPONENT)
    if "deleted file mode" in patch or "+++ /dev/null" in patch:
        intents.add(INTENT_REMOVAL)
    for tokens, intent in _PATCH_TOKEN_INTENTS:
        if any(token in patch for token in tokens):
            intents.add(intent)

    return sorted(intents)


def summarize_intent_gap(target_intents: list[str], produced_intents: list[str]) -> list[str]:
    produced_set = set(produced_intents)
    target_set = set(target_intents)
    gaps = [
        f"target indicates {intent} but produced change may not"
        for intent in sorted(target_set - produced_set)
    ]
    gaps.extend(
        f"produced change may over-focus on {intent}"
        for intent in sorted(produced_set - target_set)
    )
    return gaps or [ALIGNED_MARKER]


def sanitize_one_line(text: str) -> str:
    line = strip_tracker_refs(text.replace("\n", " "))
    return " ".join(line.split())[:MAX_NOTE_LENGTH]


def limit_sorted(items: list[str], limit: int) -> list[str]:
    if limit <= 0:
        return []
    return sorted(items)[:limit]


def build_line_count_summaries(per_file: list[PerFileScore], limit: int) -> list[str]:
    return [
        f"{score.path} target(+{score.target_lines_added}/-{score.target_lines_removed}) "
        f"produced(+{score.produced_lines_added}/-{score.produced_lines_removed})"
        for score in per_file[: max(0, limit)]
    ]


def build_initial_packet(
    iteration: int,
    target: DiffSnapshot,
    commit_message: str,
    max_path_refs: int,
) -> FeedbackPacket:
    """Packet describing the target alone, used before any attempt exists."""
    notes = [sanitize_one_line(commit_message)] if commit_message.strip() else []
    return FeedbackPacket(
        iteration=iteration,
        target_files_changed=len(target.changed_files),
        representative_paths=limit_sorted(target.changed_files, max_path_refs),
        target_intent_signals=infer_intents(target),
        extra_notes=notes,
    )


def build_iteration_packet(
    iteration: int,
    target: DiffSnapshot,
    produced: DiffSnapshot,
    tech: TechScore,
    test_category: str,
    max_paths: int,
) -> FeedbackPacket:
    """Compare target and produced snapshots for the next generation round.

    Args:
        iteration: Iteration that produced ``produced``.
        target: Target snapshot.
        produced: Snapshot of the iteration's best attempt.
        tech: Technical score of that attempt (per-file diagnostics used).
        test_category: Test outcome category of that attempt.
        max_paths: Path budget; lists of files are capped at twice this.

    Returns:
        FeedbackPacket with sorted, capped file lists and intent gaps.
    """
    target_files = set(target.changed_files)
    produced_files = set(produced.changed_files)
    target_intents = infer_intents(target)
    produced_intents = infer_intents(produced)

    return FeedbackPacket(
        iteration=iteration,
        target_files_changed=len(target_files),
        produced_files_changed=len(produced_files),
        representative_paths=limit_sorted(target.changed_files, max_paths),
        line_count_summaries=build_line_count_summaries(tech.per_file, max_paths * 2),
        missing_files=limit_sorted(list(target_files - produced_files), max_paths * 2),
        unexpected_files=limit_sorted(list(produced_files - target_files), max_paths * 2),
        intent_gaps=summarize_intent_gap(target_intents, produced_intents),
        target_intent_signals=target_intents,
        produced_intent_signals=produced_intents,
        test_category=test_category,
        tech_summary=(
            f"file overlap {tech.file_jaccard:.2f}, diff similarity {tech.diff_similarity:.2f}, "
            f"line F1 {tech.line_f1:.2f}"
        ),
    )


def merge_gaps(packet: FeedbackPacket, extra_gaps: list[str]) -> FeedbackPacket:
    """Add gap items, dropping blanks and duplicates, sorted."""
    merged = {gap.strip() for gap in [*packet.intent_gaps, *extra_gaps] if gap.strip()}
    return packet.model_copy(update={"intent_gaps": sorted(merged)})


def packet_text(packet: FeedbackPacket) -> str:
    """Render a packet as the line-oriented block consumed by the spec writer."""
    lines = [
        f"Iteration: {packet.iteration}",
        f"Target changed files: {packet.target_files_changed}",
    ]
    if packet.produced_files_changed > 0:
        lines.append(f"Produced changed files: {packet.produced_files_changed}")
    if packet.representative_paths:
        lines.append(f"Representative paths: {', '.join(packet.representative_paths)}")
    if packet.tech_summary:
        lines.append(f"Similarity summary: {packet.tech_summary}")
    if packet.line_count_summaries:
        lines.append(f"Line count summary by path: {' | '.join(packet.line_count_summaries)}")
    if packet.missing_files:
        lines.append(f"Missing paths in produced change: {', '.join(packet.missing_files)}")
    if packet.unexpected_files:
        lines.append(f"Unexpected produced paths: {', '.join(packet.unexpected_files)}")
    if packet.target_intent_signals:
        lines.append(f"Target intent signals: {'; '.join(packet.target_intent_signals)}")
    if packet.produced_intent_signals:
        lines.append(f"Produced intent signals: {'; '.join(packet.produced_intent_signals)}")
    if packet.intent_gaps:
        lines.append(f"Intent gaps: {'; '.join(packet.intent_gaps)}")
    if packet.test_category:
        lines.append(f"Tests status category: {packet.test_category}")
    lines.extend(f"Note: {note}" for note in packet.extra_notes)
    return "\n".join(lines).strip()


def build_objective_anchor(commit_message: str, target: DiffSnapshot) -> str:
    message = strip_tracker_refs(commit_message).strip() or "target commit objective unavailable"
    intents = infer_intents(target)[:MAX_ANCHOR_INTENTS]
    if not intents:
        return (
            "Objective anchor: infer the likely behavioral objective behind the target "
            "change and keep the prompt high-level."
        )
    return f"Objective anchor from target metadata: {message}. Intent signals: {'; '.join(intents)}."
