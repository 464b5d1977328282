"""On-disk layout for worktrees and run artifacts."""

from pathlib import Path

from pydantic import BaseModel

from spec_search.search.exceptions import SearchError


class ArtifactStore:
    """Owns ``<workdir>/runs`` (worktrees) and ``<workdir>/artifacts``."""

    def __init__(self, workdir: str | Path) -> None:
        self.workdir = Path(workdir)
        self.runs_dir = self.workdir / "runs"
        self.artifacts_dir = self.workdir / "artifacts"

    def ensure_layout(self) -> None:
        try:
            self.runs_dir.mkdir(parents=True, exist_ok=True)
            self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SearchError(f"create workdir layout under {self.workdir}: {exc}") from exc

    @staticmethod
    def attempt_name(iteration: int, rank: int) -> str:
        return f"iter-{iteration:03d}-cand-{rank:02d}"

    def run_path(self, iteration: int, rank: int) -> Path:
        return self.runs_dir / self.attempt_name(iteration, rank)

    def write_target_patch(self, patch: str) -> Path:
        return self._write_text("target.patch", patch)

    def write_attempt_patch(self, iteration: int, rank: int, patch: str) -> Path:
        return self._write_text(f"{self.attempt_name(iteration, rank)}.patch", patch)

    def write_best(self, prompt: str, patch: str) -> None:
        self._write_text("best_prompt.md", prompt + "\n")
        self._write_text("best.patch", patch)

    def write_json(self, name: str, model: BaseModel) -> Path:
        """Write ``model`` as 2-space indented camelCase JSON with a trailing newline."""
        return self._write_text(name, model.model_dump_json(indent=2, by_alias=True) + "\n")

    def _write_text(self, name: str, content: str) -> Path:
        path = self.artifacts_dir / name
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise SearchError(f"write {name}: {exc}") from exc
        return path
