import shutil
from pathlib import Path

import pytest

from spec_search.agents.exceptions import AgentError, CoderError
from spec_search.models import (
    CommitInfo,
    DiffSnapshot,
    FileStat,
    GenerateSpecRequest,
    JudgeResult,
    SpecCandidate,
    TestCategory,
    TestRunResult,
)


def build_snapshot(changes: dict[str, tuple[list[str], list[str]]]) -> DiffSnapshot:
    """Build a DiffSnapshot from {path: (added_lines, removed_lines)}."""
    lines: list[str] = []
    stats: dict[str, FileStat] = {}
    for path, (added, removed) in sorted(changes.items()):
        lines.append(f"diff --git a/{path} b/{path}")
        lines.append(f"--- a/{path}")
        lines.append(f"+++ b/{path}")
        lines.append(f"@@ -1,{len(removed)} +1,{len(added)} @@")
        lines.extend(f"-{line}" for line in removed)
        lines.extend(f"+{line}" for line in added)
        stats[path] = FileStat(path=path, added=len(added), removed=len(removed))
    return DiffSnapshot(
        patch="\n".join(lines) + "\n" if lines else "",
        changed_files=list(changes),
        file_stats=stats,
    )


def well_formed_prompt(topic: str = "session resume") -> str:
    return (
        "# Context\n"
        f"Users currently struggle with {topic} and the current behavior is confusing.\n\n"
        "# Desired Outcomes\n"
        f"The system should handle {topic} predictably and report failures clearly.\n\n"
        "# Constraints and Non-Goals\n"
        "Do not change unrelated modules and avoid new dependencies.\n\n"
        "# Acceptance Criteria\n"
        "Tests verify the new behavior and existing tests still pass."
    )


class FakeSpecWriter:
    """Deterministic spec writer returning canned drafts in order."""

    def __init__(
        self,
        prompts: list[str] | None = None,
        judge_score: float = 0.5,
        gaps: list[str] | None = None,
        fail_judge: bool = False,
        fail_gaps: bool = False,
    ) -> None:
        self.prompts = prompts if prompts is not None else [well_formed_prompt()]
        self.judge_score = judge_score
        self.gaps = gaps or []
        self.fail_judge = fail_judge
        self.fail_gaps = fail_gaps
        self.requests: list[GenerateSpecRequest] = []
        self.gap_calls = 0

    def generate_draft(self, request: GenerateSpecRequest) -> SpecCandidate:
        index = len(self.requests)
        self.requests.append(request)
        prompt = self.prompts[min(index, len(self.prompts) - 1)]
        if prompt is None:
            raise AgentError("canned generation failure")
        return SpecCandidate(candidate_prompt=prompt, rationale="canned", raw_response=prompt)

    def judge_realism(self, candidate_prompt: str, timeout: float) -> JudgeResult:
        if self.fail_judge:
            raise AgentError("judge unavailable")
        return JudgeResult(score=self.judge_score, justification="reads like a human request")

    def summarize_intent_gap(
        self,
        target_patch: str,
        produced_patch: str,
        max_items: int,
        timeout: float,
    ) -> list[str]:
        self.gap_calls += 1
        if self.fail_gaps:
            raise AgentError("gap summary unavailable")
        return list(self.gaps)


class FakeCoder:
    def __init__(self, error: CoderError | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str, float]] = []

    def execute(self, working_dir: str, candidate_prompt: str, timeout: float) -> str:
        self.calls.append((working_dir, candidate_prompt, timeout))
        if self.error is not None:
            raise self.error
        return "implemented the request"


class FakeRepository:
    """Repository double serving a fixed target and a queue of produced snapshots."""

    def __init__(
        self,
        target: DiffSnapshot,
        produced: list[DiffSnapshot],
        commit_message: str = "Add session resume support",
    ) -> None:
        self.target = target
        self.produced = list(produced)
        self.commit_info = CommitInfo(
            target_sha="b" * 40,
            parent_sha="a" * 40,
            commit_message=commit_message,
        )
        self.created: list[tuple[Path, str]] = []
        self.removed: list[Path] = []
        self.snapshots_taken = 0

    def resolve_commit_info(self, commit: str) -> CommitInfo:
        return self.commit_info

    def snapshot_between(self, from_rev: str, to_rev: str) -> DiffSnapshot:
        return self.target

    def create_worktree(self, run_path: Path, commit: str) -> None:
        run_path.mkdir(parents=True, exist_ok=True)
        self.created.append((run_path, commit))

    def remove_worktree(self, run_path: Path) -> None:
        shutil.rmtree(run_path, ignore_errors=True)
        self.removed.append(run_path)

    def snapshot_worktree(self, run_path: Path) -> DiffSnapshot:
        index = min(self.snapshots_taken, len(self.produced) - 1)
        self.snapshots_taken += 1
        return self.produced[index]


def passing_test_runner(repo_path: str, timeout: float) -> TestRunResult:
    return TestRunResult(ran=True, passed=True, category=TestCategory.PASS, runner="go")


@pytest.fixture
def target_snapshot() -> DiffSnapshot:
    return build_snapshot({
        "a.go": (
            ["func Resume() {", "state := load()", "if state == nil {", "return", "}"],
            ["func Start() {"],
        ),
        "b.go": (["const resumeTimeout = 5", "var errResume = errors.New(\"resume\")"], []),
    })


@pytest.fixture
def valid_prompt() -> str:
    return well_formed_prompt()
