from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

DATE_FORMAT = "%d/%m/%Y %H:%M:%S"


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class RepositoryInfo(BaseModel):
    """Snapshot of the repository metadata, replaced wholesale on refresh"""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    default_branch: str
    last_updated: datetime


class FileChange(BaseModel):
    """A file touched by a commit"""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: FileStatus
    additions: int
    deletions: int
    changes: int
    patch: Optional[str] = None  # Absent for binary or very large files


class CommitRecord(BaseModel):
    """A commit and the files it changed"""

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    author: str
    date: datetime
    files: Tuple[FileChange, ...] = ()

    @property
    def title(self) -> str:
        return self.message.splitlines()[0] if self.message else ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def formatted_date(self) -> str:
        return self.date.strftime(DATE_FORMAT)
