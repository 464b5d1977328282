"""Exceptions for git operations."""


class VCSError(Exception):
    """Base exception for all version-control operations."""


class RepositoryError(VCSError):
    """Raised when the repository cannot be resolved or cloned."""


class CommitResolutionError(VCSError):
    """Raised when the target commit or its parent cannot be resolved."""


class SnapshotError(VCSError):
    """Raised when a diff snapshot cannot be computed."""


class WorktreeError(VCSError):
    """Raised when an isolated working copy cannot be created or removed."""
