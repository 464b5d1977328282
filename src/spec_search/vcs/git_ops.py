"""Git operations: base clone, commit resolution, snapshots and worktrees."""

import logging
import re
import shutil
import subprocess
from pathlib import Path

from spec_search.models import CommitInfo, DiffSnapshot, FileStat
from spec_search.vcs.exceptions import (
    CommitResolutionError,
    RepositoryError,
    SnapshotError,
    VCSError,
    WorktreeError,
)

logger = logging.getLogger(__name__)

HOST_PATH_REPO_RE = re.compile(
    r"^[A-Za-z0-9.-]+/[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_.-]+)?(?:\.git)?$"
)
OWNER_REPO_SHORT_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+(?:\.git)?$")
KNOWN_HOST_PREFIXES = ("github.com/", "gitlab.com/", "bitbucket.org/")
GIT_TIMEOUT = 600


def run_git(
    args: list[str],
    cwd: str | Path | None = None,
    error_cls: type[VCSError] = VCSError,
) -> str:
    """Run ``git <args>`` and return stdout.

    Raises:
        error_cls: If git exits nonzero, times out or cannot be started.
    """
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=str(cwd) if cwd is not None else None,
            timeout=GIT_TIMEOUT,
        )
    except subprocess.TimeoutExpired as exc:
        raise error_cls(f"{' '.join(cmd)} timed out") from exc
    except OSError as exc:
        raise error_cls(f"{' '.join(cmd)}: {exc}") from exc
    if result.returncode != 0:
        raise error_cls(
            f"{' '.join(cmd)}: exit status {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout


def _try_git(args: list[str], cwd: str | Path | None = None) -> bool:
    """Run a best-effort git command, reporting only whether it succeeded."""
    try:
        run_git(args, cwd)
    except VCSError as exc:
        logger.debug("best-effort git command failed: %s", exc)
        return False
    return True


def _existing_local_path(path: str) -> str | None:
    candidate = Path(path).expanduser() if path.startswith("~/") else Path(path)
    if candidate.exists():
        return str(candidate.resolve())
    return None


def detect_local_source_path(repo_arg: str) -> str | None:
    """Absolute path of ``repo_arg`` when it names an existing local path."""
    repo_arg = repo_arg.strip()
    if not repo_arg:
        return None
    return _existing_local_path(repo_arg)


def is_likely_url(value: str) -> bool:
    return "://" in value or value.startswith("git@")


def resolve_clone_source(repo_arg: str) -> str:
    """Turn a repository argument into something ``git clone`` accepts.

    Order: existing local path, full URL, known-host prefix, ``owner/repo``
    (GitHub), then ``host/path[/sub]``.

    Raises:
        RepositoryError: If the argument matches none of the forms.
    """
    repo_arg = repo_arg.strip()
    if not repo_arg:
        raise RepositoryError("empty repository argument")

    local = detect_local_source_path(repo_arg)
    if local is not None:
        return local
    if is_likely_url(repo_arg):
        return repo_arg
    if repo_arg.startswith(KNOWN_HOST_PREFIXES):
        return f"https://{repo_arg}"
    if OWNER_REPO_SHORT_RE.match(repo_arg):
        return f"https://github.com/{repo_arg}"
    if HOST_PATH_REPO_RE.match(repo_arg):
        return f"https://{repo_arg}"
    raise RepositoryError(
        f"repository path not found locally and not recognized as URL: {repo_arg}"
    )


def parse_paths(output: str) -> list[str]:
    """Sorted paths from NUL-separated (``-z``) git output."""
    return sorted(path for path in output.split("\0") if path.strip())


def parse_numstat(output: str) -> dict[str, FileStat]:
    """Parse ``git diff --numstat -z``; binary entries (``-``) count as zero.

    Renamed files are keyed by their new path.
    """
    stats: dict[str, FileStat] = {}
    fields = iter(output.split("\0"))
    for field in fields:
        parts = field.split("\t", 2)
        if len(parts) < 3:
            continue
        path = parts[2]
        if not path:
            # rename: old and new path follow as separate fields
            next(fields, "")
            path = next(fields, "")
            if not path:
                continue
        stats[path] = FileStat(path=path, added=_parse_num(parts[0]), removed=_parse_num(parts[1]))
    return stats


def _parse_num(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class GitRepository:
    """A local clone used as the source of target diffs and worktrees."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def is_shallow(self) -> bool:
        try:
            output = run_git(["rev-parse", "--is-shallow-repository"], self.path)
        except VCSError:
            return False
        return output.strip() == "true"

    def _has_commit(self, commit: str) -> bool:
        return _try_git(["rev-parse", "--verify", f"{commit}^{{commit}}"], self.path)

    def ensure_commit_available(self, commit: str) -> None:
        """Make ``commit`` resolvable locally, fetching progressively more history.

        Raises:
            CommitResolutionError: If every fetch strategy fails.
        """
        commit = commit.strip()
        if not commit:
            raise CommitResolutionError("empty commit")
        if self._has_commit(commit):
            return

        if _try_git(["fetch", "--no-tags", "origin", commit], self.path) and self._has_commit(commit):
            return

        # Some remotes refuse fetches by SHA.
        _try_git(["fetch", "--tags", "origin"], self.path)
        _try_git(["fetch", "--no-tags", "origin", "+refs/heads/*:refs/remotes/origin/*"], self.path)
        if self._has_commit(commit):
            return

        if self.is_shallow():
            _try_git(["fetch", "--unshallow", "origin"], self.path)
            if self._has_commit(commit):
                return

        raise CommitResolutionError(f"target commit not available after fetch: {commit}")

    def resolve_commit_info(self, commit: str) -> CommitInfo:
        """Resolve target SHA, parent SHA and full message of ``commit``.

        Raises:
            CommitResolutionError: If the commit is unavailable or has no parent.
        """
        commit = commit.strip()
        self.ensure_commit_available(commit)
        target = run_git(["rev-parse", commit], self.path, CommitResolutionError)
        try:
            parent = run_git(["rev-parse", f"{commit}^"], self.path, CommitResolutionError)
        except CommitResolutionError as exc:
            raise CommitResolutionError(
                f"resolve parent commit (target must have a parent): {exc}"
            ) from exc
        message = run_git(["show", "-s", "--format=%s%n%b", commit], self.path, CommitResolutionError)
        return CommitInfo(
            target_sha=target.strip(),
            parent_sha=parent.strip(),
            commit_message=message.strip(),
        )

    def snapshot_between(self, from_rev: str, to_rev: str) -> DiffSnapshot:
        """Snapshot of the change from ``from_rev`` to ``to_rev``.

        Raises:
            SnapshotError: If any git diff call fails.
        """
        return _snapshot(self.path, [from_rev, to_rev])

    def snapshot_worktree(self, run_path: Path) -> DiffSnapshot:
        """Snapshot of a working copy against its index, new files included.

        Raises:
            SnapshotError: If untracked files cannot be registered or diffed.
        """
        untracked = run_git(
            ["ls-files", "-z", "--others", "--exclude-standard"], run_path, SnapshotError
        )
        new_files = parse_paths(untracked)
        if new_files:
            run_git(["add", "--intent-to-add", "--", *new_files], run_path, SnapshotError)
        return _snapshot(run_path, [])

    def create_worktree(self, run_path: Path, commit: str) -> None:
        """Create a detached worktree at ``commit``, clearing stale registrations.

        Raises:
            WorktreeError: If the worktree cannot be created.
        """
        _try_git(["worktree", "remove", "--force", str(run_path)], self.path)
        _try_git(["worktree", "prune"], self.path)
        try:
            if run_path.exists():
                shutil.rmtree(run_path)
            run_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorktreeError(f"clean worktree path {run_path}: {exc}") from exc
        run_git(["worktree", "add", "--detach", str(run_path), commit], self.path, WorktreeError)

    def remove_worktree(self, run_path: Path) -> None:
        """Force-remove a worktree and prune its registration.

        Raises:
            WorktreeError: If git refuses to remove it.
        """
        run_git(["worktree", "remove", "--force", str(run_path)], self.path, WorktreeError)
        _try_git(["worktree", "prune"], self.path)


def _snapshot(cwd: Path, revs: list[str]) -> DiffSnapshot:
    patch = run_git(
        ["-c", "core.quotePath=false", "diff", "--no-color", "--find-renames", *revs],
        cwd,
        SnapshotError,
    )
    files = run_git(["diff", "--name-only", "-z", "--find-renames", *revs], cwd, SnapshotError)
    numstat = run_git(["diff", "--numstat", "-z", "--find-renames", *revs], cwd, SnapshotError)
    return DiffSnapshot(
        patch=patch,
        changed_files=parse_paths(files),
        file_stats=parse_numstat(numstat),
    )


def prepare_base_repo(repo_arg: str, workdir: str | Path) -> GitRepository:
    """Clone ``repo_arg`` into ``<workdir>/base``, replacing any previous clone.

    Local sources are cloned without hardlinks, then origin is pointed at
    the source's own origin so later fetches reach the real remote.

    Raises:
        RepositoryError: If the workdir cannot be prepared or the clone fails.
    """
    workdir = Path(workdir)
    base = workdir / "base"
    try:
        workdir.mkdir(parents=True, exist_ok=True)
        if base.exists():
            shutil.rmtree(base)
    except OSError as exc:
        raise RepositoryError(f"prepare workdir {workdir}: {exc}") from exc

    local_source = detect_local_source_path(repo_arg)
    clone_source = resolve_clone_source(repo_arg)
    logger.info("Cloning %s into %s", clone_source, base)
    run_git(["clone", "--no-hardlinks", clone_source, str(base)], error_cls=RepositoryError)

    if local_source is not None:
        try:
            upstream = run_git(["remote", "get-url", "origin"], local_source).strip()
        except VCSError:
            upstream = ""
        if upstream:
            _try_git(["remote", "set-url", "origin", upstream], base)

    return GitRepository(base)
