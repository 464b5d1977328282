"""Models for representing diff snapshots and commit metadata."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileStat(BaseModel):
    """Added/removed line counts for one changed file."""

    model_config = ConfigDict(frozen=True)

    path: str
    added: int = 0
    removed: int = 0


class DiffSnapshot(BaseModel):
    """A patch plus its changed-file set and per-file line statistics."""

    model_config = ConfigDict(frozen=True)

    patch: str = ""
    changed_files: list[str] = Field(default_factory=list)  # sorted, de-duplicated
    file_stats: dict[str, FileStat] = Field(default_factory=dict)

    @field_validator("changed_files")
    @classmethod
    def _normalize_files(cls, value: list[str]) -> list[str]:
        return sorted({path.strip() for path in value if path.strip()})

    @property
    def is_empty(self) -> bool:
        return not self.patch.strip() and not self.changed_files


class CommitInfo(BaseModel):
    """Resolved target commit, its parent and its message."""

    model_config = ConfigDict(frozen=True)

    target_sha: str
    parent_sha: str
    commit_message: str = ""
