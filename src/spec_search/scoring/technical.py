"""Technical similarity between a target and a produced diff snapshot."""

from collections import Counter

from spec_search.models import DiffSnapshot, FileStat, PerFileScore, TechScore

FILE_WEIGHT = 0.40
DIFF_WEIGHT = 0.45
F1_WEIGHT = 0.15


class ParsedPatch:
    """Normalized ``+``/``-`` line tokens of a patch, globally and per file."""

    def __init__(self) -> None:
        self.global_lines: Counter[str] = Counter()
        self.file_lines: dict[str, Counter[str]] = {}

    def add(self, file_path: str, prefix: str, raw: str) -> None:
        normalized = normalize_line(raw)
        if not normalized:
            return
        key = prefix + normalized
        self.global_lines[key] += 1
        if file_path:
            self.file_lines.setdefault(file_path, Counter())[key] += 1


def normalize_line(line: str) -> str:
    return " ".join(line.split())


def parse_unified_diff(patch: str) -> ParsedPatch:
    """Split a unified diff into line-token multisets.

    File boundaries come from ``diff --git`` headers. The file path is the
    ``+++ b/`` name when present, otherwise the header path of an unrenamed
    file. Hunk headers are skipped, as are lines that are empty after
    whitespace normalization.
    """
    parsed = ParsedPatch()
    current = ""
    for raw in patch.split("\n"):
        line = raw.rstrip("\r")
        if line.startswith("diff --git "):
            current = _header_path(line[len("diff --git "):])
            if current:
                parsed.file_lines.setdefault(current, Counter())
            continue
        if line.startswith("+++ "):
            # git appends a tab to names containing spaces
            name = line[4:].rstrip("\t")
            if name.startswith("b/"):
                current = name[2:]
                parsed.file_lines.setdefault(current, Counter())
            continue
        if line.startswith(("--- ", "@@")):
            continue
        if line.startswith("+") and not line.startswith("+++"):
            parsed.add(current, "+", line[1:])
        elif line.startswith("-") and not line.startswith("---"):
            parsed.add(current, "-", line[1:])
    return parsed


def _header_path(header: str) -> str:
    """Path ``P`` from ``a/P b/P``; empty for renames and malformed headers."""
    half = (len(header) - 1) // 2
    old, new = header[:half], header[half + 1:]
    if old.startswith("a/") and new.startswith("b/") and old[2:] == new[2:]:
        return new[2:]
    return ""


def safe_div(numerator: float, denominator: float) -> float:
    """Divide, resolving 0/0 to 1 (both empty) and x/0 to 0."""
    if denominator == 0:
        return 1.0 if numerator == 0 else 0.0
    return numerator / denominator


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def jaccard_set(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 1.0
    return safe_div(len(a & b), len(a | b))


def weighted_jaccard(a: Counter[str], b: Counter[str]) -> float:
    """Sum of per-token min counts over sum of per-token max counts."""
    if not a and not b:
        return 1.0
    intersection = 0
    union = 0
    for key in sorted(set(a) | set(b)):
        intersection += min(a[key], b[key])
        union += max(a[key], b[key])
    return safe_div(intersection, union)


def multiset_intersection(a: Counter[str], b: Counter[str]) -> int:
    return sum(min(count, b[key]) for key, count in a.items())


def line_f1(target: Counter[str], produced: Counter[str]) -> tuple[float, float, float]:
    """Precision, recall and F1 of produced line tokens against the target."""
    true_positives = multiset_intersection(target, produced)
    target_total = sum(target.values())
    produced_total = sum(produced.values())
    precision = safe_div(true_positives, produced_total)
    recall = safe_div(true_positives, target_total)
    if target_total == 0 and produced_total == 0:
        return precision, recall, 1.0
    if precision + recall == 0:
        return precision, recall, 0.0
    return precision, recall, 2 * precision * recall / (precision + recall)


def _totals(stats: dict[str, FileStat]) -> tuple[int, int]:
    return (
        sum(stat.added for stat in stats.values()),
        sum(stat.removed for stat in stats.values()),
    )


def build_per_file_scores(
    target: DiffSnapshot,
    produced: DiffSnapshot,
    target_parsed: ParsedPatch,
    produced_parsed: ParsedPatch,
) -> list[PerFileScore]:
    paths = sorted(set(target.changed_files) | set(produced.changed_files))
    scores = []
    for path in paths:
        target_stat = target.file_stats.get(path, FileStat(path=path))
        produced_stat = produced.file_stats.get(path, FileStat(path=path))
        scores.append(
            PerFileScore(
                path=path,
                similarity=weighted_jaccard(
                    target_parsed.file_lines.get(path, Counter()),
                    produced_parsed.file_lines.get(path, Counter()),
                ),
                target_lines_added=target_stat.added,
                target_lines_removed=target_stat.removed,
                produced_lines_added=produced_stat.added,
                produced_lines_removed=produced_stat.removed,
            )
        )
    return scores


def score_tech_similarity(target: DiffSnapshot, produced: DiffSnapshot) -> TechScore:
    """Score how closely ``produced`` reproduces ``target``.

    Args:
        target: Snapshot of the target commit against its parent.
        produced: Snapshot of an execution attempt's working copy.

    Returns:
        TechScore with the combined score and per-file diagnostics.
    """
    target_files = set(target.changed_files)
    produced_files = set(produced.changed_files)
    file_jaccard = jaccard_set(target_files, produced_files)

    target_parsed = parse_unified_diff(target.patch)
    produced_parsed = parse_unified_diff(produced.patch)
    diff_similarity = weighted_jaccard(target_parsed.global_lines, produced_parsed.global_lines)
    precision, recall, f1 = line_f1(target_parsed.global_lines, produced_parsed.global_lines)

    target_adds, target_dels = _totals(target.file_stats)
    produced_adds, produced_dels = _totals(produced.file_stats)

    return TechScore(
        file_jaccard=file_jaccard,
        diff_similarity=diff_similarity,
        line_precision=precision,
        line_recall=recall,
        line_f1=f1,
        score=clamp01(FILE_WEIGHT * file_jaccard + DIFF_WEIGHT * diff_similarity + F1_WEIGHT * f1),
        per_file=build_per_file_scores(target, produced, target_parsed, produced_parsed),
        target_files=len(target_files),
        produced_files=len(produced_files),
        target_total_adds=target_adds,
        target_total_dels=target_dels,
        produced_total_adds=produced_adds,
        produced_total_dels=produced_dels,
    )
