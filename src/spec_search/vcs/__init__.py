"""Git access for target diffs and isolated working copies."""

from spec_search.vcs.exceptions import (
    CommitResolutionError,
    RepositoryError,
    SnapshotError,
    VCSError,
    WorktreeError,
)
from spec_search.vcs.git_ops import (
    GitRepository,
    parse_numstat,
    parse_paths,
    prepare_base_repo,
    resolve_clone_source,
)

__all__ = [
    "CommitResolutionError",
    "GitRepository",
    "RepositoryError",
    "SnapshotError",
    "VCSError",
    "WorktreeError",
    "parse_numstat",
    "parse_paths",
    "prepare_base_repo",
    "resolve_clone_source",
]
