"""Collaborator contracts the search controller depends on."""

from pathlib import Path
from typing import Protocol

from spec_search.models import (
    DiffSnapshot,
    GenerateSpecRequest,
    JudgeResult,
    SpecCandidate,
    TestRunResult,
)


class SpecWriter(Protocol):
    def generate_draft(self, request: GenerateSpecRequest) -> SpecCandidate: ...

    def judge_realism(self, candidate_prompt: str, timeout: float) -> JudgeResult: ...

    def summarize_intent_gap(
        self,
        target_patch: str,
        produced_patch: str,
        max_items: int,
        timeout: float,
    ) -> list[str]: ...


class Coder(Protocol):
    def execute(self, working_dir: str, candidate_prompt: str, timeout: float) -> str: ...


class SuiteRunner(Protocol):
    def __call__(self, repo_path: str, timeout: float) -> TestRunResult: ...


class Workspace(Protocol):
    """Isolated working copies derived from the shared base clone."""

    def create_worktree(self, run_path: Path, commit: str) -> None: ...

    def remove_worktree(self, run_path: Path) -> None: ...

    def snapshot_worktree(self, run_path: Path) -> DiffSnapshot: ...
