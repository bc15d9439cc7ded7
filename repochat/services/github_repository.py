import logging
from datetime import datetime, timezone
from itertools import islice
from typing import Optional

from github import Auth, Github
from github.GithubException import GithubException

from repochat.core.config import settings
from repochat.schemas.repository import (
    CommitRecord,
    FileChange,
    FileStatus,
    RepositoryInfo,
)

# Statuses GitHub uses for an unknown ref or an empty repository
NOT_FOUND_STATUSES = (404, 409)


class FileContentError(ValueError):
    """The path exists but cannot be shown as text"""


class RepositoryService:
    """Read-only access to the configured GitHub repository.

    Every call is a live request: nothing fetched here is cached.
    """

    def __init__(
        self,
        full_name: Optional[str] = None,
        github_token: Optional[str] = None,
        github: Optional[Github] = None,
        search_window: Optional[int] = None,
    ):
        self.full_name = full_name or settings.repository_full_name
        token = github_token or settings.GITHUB_TOKEN
        self.github = github or Github(auth=Auth.Token(token) if token else None)
        self.search_window = search_window or settings.COMMIT_SEARCH_WINDOW
        self.logger = logging.getLogger(__name__)

    def _repo(self, lazy: bool = True):
        return self.github.get_repo(self.full_name, lazy=lazy)

    def resolve_branch(
        self, branch: Optional[str] = None, default_branch: Optional[str] = None
    ) -> str:
        """Return the explicit branch, else the known default branch.

        When the repository info never loaded, the default branch is read
        from GitHub directly.
        """
        if branch:
            return branch
        if default_branch:
            return default_branch
        self.logger.warning(
            "Repository info not loaded, reading default branch from GitHub"
        )
        return self._repo(lazy=False).default_branch

    def fetch_repository_info(self) -> RepositoryInfo:
        try:
            repo = self._repo(lazy=False)
            return RepositoryInfo(
                name=repo.name,
                description=repo.description,
                default_branch=repo.default_branch,
                last_updated=datetime.now(timezone.utc),
            )
        except GithubException as e:
            self.logger.error(f"Error fetching repository info: {e}")
            raise

    def get_latest_commit(
        self, branch: Optional[str] = None, default_branch: Optional[str] = None
    ) -> Optional[CommitRecord]:
        ref = self.resolve_branch(branch, default_branch)
        try:
            latest = next(iter(self._repo().get_commits(sha=ref)), None)
        except GithubException as e:
            if e.status in NOT_FOUND_STATUSES:
                self.logger.info(f"No commit history for ref {ref}")
                return None
            self.logger.error(f"Error listing commits on {ref}: {e}")
            raise

        if latest is None:
            return None
        return self.get_commit_details(latest.sha)

    def find_commit_by_substring(
        self,
        query: str,
        branch: Optional[str] = None,
        default_branch: Optional[str] = None,
    ) -> Optional[CommitRecord]:
        """Find the most recent commit whose message contains ``query``.

        Only the last ``search_window`` commits of the branch are searched;
        older commits are out of reach.
        """
        ref = self.resolve_branch(branch, default_branch)
        needle = query.lower()
        try:
            commits = islice(self._repo().get_commits(sha=ref), self.search_window)
            found = next(
                (c for c in commits if needle in c.commit.message.lower()), None
            )
        except GithubException as e:
            if e.status in NOT_FOUND_STATUSES:
                self.logger.info(f"No commit history for ref {ref}")
                return None
            self.logger.error(f"Error searching commits on {ref}: {e}")
            raise

        if found is None:
            return None
        return self.get_commit_details(found.sha)

    def get_commit_details(self, sha: str) -> CommitRecord:
        try:
            commit = self._repo().get_commit(sha)
            author = commit.commit.author
            return CommitRecord(
                sha=commit.sha,
                message=commit.commit.message,
                author=author.name or "inconnu",
                date=author.date,
                files=tuple(
                    FileChange(
                        filename=f.filename,
                        status=FileStatus(f.status),
                        additions=f.additions,
                        deletions=f.deletions,
                        changes=f.changes,
                        patch=f.patch,
                    )
                    for f in commit.files
                ),
            )
        except GithubException as e:
            self.logger.error(f"Error fetching commit {sha}: {e}")
            raise

    def get_file_content(
        self,
        path: str,
        branch: Optional[str] = None,
        default_branch: Optional[str] = None,
    ) -> str:
        ref = self.resolve_branch(branch, default_branch)
        try:
            content = self._repo().get_contents(path, ref=ref)
        except GithubException as e:
            self.logger.error(f"Error fetching file {path} at {ref}: {e}")
            raise

        if isinstance(content, list):
            raise FileContentError(f"{path} est un dossier, pas un fichier")
        if content.encoding != "base64":
            # GitHub leaves files over 1 MB undecoded (encoding "none")
            raise FileContentError(f"{path} est trop volumineux pour être lu")
        try:
            return content.decoded_content.decode("utf-8")
        except UnicodeDecodeError:
            raise FileContentError(f"{path} n'est pas un fichier texte")
