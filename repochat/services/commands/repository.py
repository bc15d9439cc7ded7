import asyncio
from typing import TYPE_CHECKING, Optional

from github.GithubException import GithubException

from repochat.schemas.command import CommandArgs, CommandMetadata, CommandOption
from repochat.services.commands.base import Command
from repochat.services.delivery import render_file_content
from repochat.services.intent import SHA_PATTERN

if TYPE_CHECKING:
    from repochat.core.context import BotContext

BRANCH_OPTION = CommandOption(
    name="branch",
    description="Nom de la branche (laissez vide pour la branche par défaut)",
)


def on_branch(branch: Optional[str]) -> str:
    return f" sur la branche {branch}" if branch else ""


class ResumeLastCommitArgs(CommandArgs):
    branch: Optional[str] = None


class ResumeLastCommitCommand(Command[ResumeLastCommitArgs]):
    """Summarize the latest commit of a branch"""

    @property
    def metadata(self) -> CommandMetadata:
        return CommandMetadata(
            name="resume_last_commit",
            description="Résume le dernier commit d'une branche",
            documentation="""
            Summarizes the most recent commit of a branch.

            Optional arguments:
            - branch: Branch name (default branch when omitted)
            """,
            options=[BRANCH_OPTION],
        )

    async def execute(self, args: ResumeLastCommitArgs, context: "BotContext") -> str:
        commit = await asyncio.to_thread(
            context.repositories.get_latest_commit, args.branch, context.default_branch
        )
        if not commit:
            return "Aucun commit trouvé sur cette branche."

        summary = await context.llm.summarize_commit(commit)
        return (
            f"*Résumé du dernier commit{on_branch(args.branch)}:*\n\n"
            f"*Auteur:* {commit.author}\n"
            f"*Nom du commit:* {commit.title}\n"
            f"*Date:* {commit.formatted_date}\n\n"
            f"{summary}"
        )


class ResumeCommitArgs(CommandArgs):
    commit: str
    branch: Optional[str] = None


class ResumeCommitCommand(Command[ResumeCommitArgs]):
    """Summarize a commit found by hash or by part of its message"""

    @property
    def metadata(self) -> CommandMetadata:
        return CommandMetadata(
            name="resume_commit",
            description="Résume un commit spécifique d'une branche",
            documentation="""
            Summarizes one commit. The commit is looked up by hash first when
            the argument looks like one, then by a case-insensitive search in
            the messages of the last 50 commits of the branch.

            Required arguments:
            - commit: Hash, title or part of the commit message

            Optional arguments:
            - branch: Branch name, given as branch=<name> (default branch when omitted)

            Examples:
            /resume_commit corrige l'authentification
            /resume_commit "fix login" branch=develop
            """,
            options=[
                CommandOption(
                    name="commit",
                    description="Titre ou partie du message du commit à rechercher",
                    required=True,
                    rest=True,
                ),
                BRANCH_OPTION,
            ],
        )

    async def execute(self, args: ResumeCommitArgs, context: "BotContext") -> str:
        repositories = context.repositories
        commit = None
        if SHA_PATTERN.fullmatch(args.commit):
            try:
                commit = await asyncio.to_thread(
                    repositories.get_commit_details, args.commit
                )
            except GithubException as e:
                # Not a known hash, search the messages instead
                if e.status not in (404, 422):
                    raise

        if commit is None:
            commit = await asyncio.to_thread(
                repositories.find_commit_by_substring,
                args.commit,
                args.branch,
                context.default_branch,
            )
        if not commit:
            return (
                f'Aucun commit contenant "{args.commit}" n\'a été trouvé'
                f"{on_branch(args.branch)}."
            )

        summary = await context.llm.summarize_commit(commit)
        return (
            f'*Résumé du commit "{commit.title}"{on_branch(args.branch)}:*\n\n'
            f"*Auteur:* {commit.author}\n"
            f"*SHA:* {commit.short_sha}\n"
            f"*Date:* {commit.formatted_date}\n\n"
            f"{summary}"
        )


class InfoRepoArgs(CommandArgs):
    pass


class InfoRepoCommand(Command[InfoRepoArgs]):
    """Refresh and display the repository information"""

    @property
    def metadata(self) -> CommandMetadata:
        return CommandMetadata(
            name="info_repo",
            description="Affiche les informations sur le dépôt GitHub",
            documentation="""
            Reloads the repository information from GitHub and displays it.
            Takes no arguments.
            """,
        )

    async def execute(self, args: InfoRepoArgs, context: "BotContext") -> str:
        info = await context.refresh_repository_info()
        return (
            f"*Informations sur le dépôt {info.name}:*\n\n"
            f"📝 Description: {info.description or 'Aucune description'}\n"
            f"🌿 Branche par défaut: {info.default_branch}\n"
            f"🔄 Dernière mise à jour des informations: "
            f"{info.last_updated.strftime('%d/%m/%Y %H:%M:%S')}"
        )


class FileContentArgs(CommandArgs):
    chemin: str
    branch: Optional[str] = None


class FileContentCommand(Command[FileContentArgs]):
    """Display the content of a repository file"""

    @property
    def metadata(self) -> CommandMetadata:
        return CommandMetadata(
            name="contenu_fichier",
            description="Affiche le contenu d'un fichier du dépôt",
            documentation="""
            Shows a text file of the repository. Files too large for a
            single message are truncated.

            Required arguments:
            - chemin: Path of the file

            Optional arguments:
            - branch: Branch name (default branch when omitted)
            """,
            options=[
                CommandOption(name="chemin", description="Chemin du fichier", required=True),
                BRANCH_OPTION,
            ],
        )

    async def execute(self, args: FileContentArgs, context: "BotContext") -> str:
        content = await asyncio.to_thread(
            context.repositories.get_file_content,
            args.chemin,
            args.branch,
            context.default_branch,
        )
        return render_file_content(
            args.chemin,
            content,
            args.branch,
            size_limit=context.settings.FILE_SIZE_LIMIT,
            preview_size=context.settings.FILE_PREVIEW_SIZE,
        )
