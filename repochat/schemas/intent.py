from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class LatestCommitIntent(BaseModel):
    """The user asks about the last commit of a branch"""

    model_config = ConfigDict(frozen=True)

    branch: Optional[str] = None


class SpecificCommitIntent(BaseModel):
    """The user asks about a commit designated by part of its message"""

    model_config = ConfigDict(frozen=True)

    query: str
    branch: Optional[str] = None


class UnresolvedCommitIntent(BaseModel):
    """A commit was asked about but no commit token could be extracted"""

    model_config = ConfigDict(frozen=True)


class ShaLookupIntent(BaseModel):
    """A bare commit hash appears in the message"""

    model_config = ConfigDict(frozen=True)

    sha: str


Intent = Union[
    LatestCommitIntent, SpecificCommitIntent, UnresolvedCommitIntent, ShaLookupIntent
]
