"""Tests for git operations."""

import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from spec_search.vcs import (
    CommitResolutionError,
    GitRepository,
    RepositoryError,
    VCSError,
    prepare_base_repo,
    resolve_clone_source,
)
from spec_search.vcs.git_ops import parse_numstat, parse_paths, run_git

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class TestResolveCloneSource:
    def test_local_path(self, tmp_path):
        assert resolve_clone_source(str(tmp_path)) == str(tmp_path.resolve())

    @pytest.mark.parametrize(
        "arg, expected",
        [
            ("https://example.com/a/b.git", "https://example.com/a/b.git"),
            ("git@github.com:owner/repo.git", "git@github.com:owner/repo.git"),
            ("github.com/owner/repo", "https://github.com/owner/repo"),
            ("owner/repo", "https://github.com/owner/repo"),
            ("git.example.org/group/project", "https://git.example.org/group/project"),
        ],
    )
    def test_remote_forms(self, arg, expected):
        assert resolve_clone_source(arg) == expected

    @pytest.mark.parametrize("arg", ["", "   ", "not a repo!"])
    def test_unrecognized(self, arg):
        with pytest.raises(RepositoryError):
            resolve_clone_source(arg)


def test_parse_numstat_binary_counts_zero():
    stats = parse_numstat("3\t1\ta.go\0-\t-\tlogo.png\0bogus\0")
    assert stats["a.go"].added == 3
    assert stats["a.go"].removed == 1
    assert stats["logo.png"].added == 0
    assert set(stats) == {"a.go", "logo.png"}


def test_parse_numstat_spaces_and_renames():
    stats = parse_numstat("2\t0\tdocs/release notes.md\0" "4\t1\t\0old name.go\0pkg/new name.go\0")
    assert stats["docs/release notes.md"].added == 2
    assert stats["pkg/new name.go"].added == 4
    assert stats["pkg/new name.go"].removed == 1
    assert "old name.go" not in stats


def test_parse_paths_sorted():
    assert parse_paths("b.go\0my file.go\0\0a.go\0") == ["a.go", "b.go", "my file.go"]


@patch("spec_search.vcs.git_ops.subprocess.run")
def test_run_git_nonzero_raises_given_class(mock_run):
    mock_run.return_value = MagicMock(returncode=128, stdout="", stderr="fatal: bad revision\n")
    with pytest.raises(CommitResolutionError, match="exit status 128: fatal: bad revision"):
        run_git(["rev-parse", "nope"], error_cls=CommitResolutionError)


@patch("spec_search.vcs.git_ops.subprocess.run", side_effect=FileNotFoundError("git"))
def test_run_git_missing_binary(mock_run):
    with pytest.raises(VCSError):
        run_git(["status"])


def git(repo: Path, *args: str) -> str:
    return run_git(["-c", "user.name=Test", "-c", "user.email=test@example.com", *args], repo)


@pytest.fixture
def source_repo(tmp_path):
    repo = tmp_path / "source"
    repo.mkdir()
    git(repo, "init", "-q")
    (repo / "a.go").write_text("package a\n\nfunc Start() {}\n")
    git(repo, "add", "a.go")
    git(repo, "commit", "-q", "-m", "Initial import")
    (repo / "a.go").write_text("package a\n\nfunc Resume() {}\n")
    (repo / "b.go").write_text("package a\n\nconst resumeTimeout = 5\n")
    git(repo, "add", "a.go", "b.go")
    git(repo, "commit", "-q", "-m", "Add session resume", "-m", "Keeps state across restarts.")
    return repo


@requires_git
class TestGitRepository:
    def test_resolve_commit_info(self, source_repo):
        repository = GitRepository(source_repo)
        info = repository.resolve_commit_info("HEAD")
        assert len(info.target_sha) == 40
        assert info.parent_sha != info.target_sha
        assert info.commit_message == "Add session resume\nKeeps state across restarts."

    def test_root_commit_has_no_parent(self, source_repo):
        repository = GitRepository(source_repo)
        with pytest.raises(CommitResolutionError, match="target must have a parent"):
            repository.resolve_commit_info("HEAD~1")

    def test_unknown_commit(self, source_repo):
        with pytest.raises(CommitResolutionError):
            GitRepository(source_repo).resolve_commit_info("0" * 40)

    def test_snapshot_between(self, source_repo):
        repository = GitRepository(source_repo)
        info = repository.resolve_commit_info("HEAD")
        snapshot = repository.snapshot_between(info.parent_sha, info.target_sha)
        assert snapshot.changed_files == ["a.go", "b.go"]
        assert snapshot.file_stats["a.go"].added == 1
        assert snapshot.file_stats["a.go"].removed == 1
        assert "+const resumeTimeout = 5" in snapshot.patch

    def test_snapshot_handles_spaces_and_renames(self, source_repo):
        git(source_repo, "mv", "b.go", "resume config.go")
        (source_repo / "a.go").write_text("package a\n\nfunc Resume() {}\nfunc Pause() {}\n")
        git(source_repo, "add", "a.go")
        git(source_repo, "commit", "-q", "-m", "Rename resume settings")

        snapshot = GitRepository(source_repo).snapshot_between("HEAD~1", "HEAD")
        assert snapshot.changed_files == ["a.go", "resume config.go"]
        assert snapshot.file_stats["resume config.go"].added == 0
        assert snapshot.file_stats["a.go"].added == 1

    def test_worktree_lifecycle(self, source_repo, tmp_path):
        repository = GitRepository(source_repo)
        info = repository.resolve_commit_info("HEAD")
        run_path = tmp_path / "runs" / "iter-001-cand-01"

        repository.create_worktree(run_path, info.parent_sha)
        assert (run_path / "a.go").read_text() == "package a\n\nfunc Start() {}\n"
        assert repository.snapshot_worktree(run_path).is_empty

        (run_path / "a.go").write_text("package a\n\nfunc Resume() {}\n")
        (run_path / "c.go").write_text("package a\n")
        snapshot = repository.snapshot_worktree(run_path)
        assert snapshot.changed_files == ["a.go", "c.go"]
        assert "+func Resume() {}" in snapshot.patch

        repository.remove_worktree(run_path)
        assert not run_path.exists()

    def test_create_worktree_replaces_stale_directory(self, source_repo, tmp_path):
        repository = GitRepository(source_repo)
        run_path = tmp_path / "runs" / "stale"
        run_path.mkdir(parents=True)
        (run_path / "leftover.txt").write_text("old")

        repository.create_worktree(run_path, "HEAD")
        assert not (run_path / "leftover.txt").exists()
        repository.remove_worktree(run_path)


@requires_git
def test_prepare_base_repo_from_local_path(source_repo, tmp_path):
    workdir = tmp_path / "work"
    (workdir / "base").mkdir(parents=True)
    (workdir / "base" / "old.txt").write_text("stale")

    repository = prepare_base_repo(str(source_repo), workdir)
    assert repository.path == workdir / "base"
    assert (repository.path / "b.go").exists()
    assert not (repository.path / "old.txt").exists()
