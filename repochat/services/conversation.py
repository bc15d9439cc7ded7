import json
import re
from typing import Iterable, List, Optional

from repochat.schemas.conversation import ConversationMessage, Role
from repochat.schemas.repository import CommitRecord, RepositoryInfo
from repochat.schemas.service_handler import BotIdentity, HistoryMessage

UNAVAILABLE = "Non disponible"


def sanitize_name(name: str) -> str:
    """Make a display name acceptable as a completion API message name"""
    return re.sub(r"[^\w-]", "", re.sub(r"\s+", "_", name), flags=re.ASCII)


def describe_commit(commit: CommitRecord, heading: str) -> str:
    files = [f.model_dump(mode="json") for f in commit.files]
    return (
        f"{heading}:\n"
        f"SHA: {commit.sha}\n"
        f"Message: {commit.message}\n"
        f"Auteur: {commit.author}\n"
        f"Date: {commit.formatted_date}\n"
        f"Fichiers modifiés: {len(commit.files)}\n\n"
        f"Détails des modifications:\n{json.dumps(files, indent=2, ensure_ascii=False)}"
    )


class ConversationBuilder:
    """Builds the ordered prompt sent to the completion API.

    Order: persona, git context, channel history (oldest first), then the
    message being answered.
    """

    def __init__(self, repository_full_name: str, ignore_prefix: str = "!"):
        self.repository_full_name = repository_full_name
        self.ignore_prefix = ignore_prefix

    def persona(
        self, identity: BotIdentity, repo_info: Optional[RepositoryInfo]
    ) -> ConversationMessage:
        default_branch = repo_info.default_branch if repo_info else UNAVAILABLE
        description = (repo_info.description if repo_info else None) or UNAVAILABLE
        content = f"""Tu es un assistant IA intégré à Slack nommé {identity.name}.

RÈGLES DE BASE:
- Réponds toujours en français par défaut, sauf si la question est posée en anglais
- Sois clair, précis et utile dans tes réponses
- Tu es spécialisé dans l'aide au développement et peux aider avec du code

CONTEXTE GITHUB:
- Tu as accès au dépôt GitHub: {self.repository_full_name}
- Branche par défaut: {default_branch}
- Description: {description}

FONCTIONNALITÉS:
- Tu peux résumer le dernier commit d'une branche avec la commande /resume_last_commit [branch]
- Tu peux résumer un commit spécifique avec la commande /resume_commit [commit] [branch=...]
- Tu peux afficher les informations du dépôt avec /info_repo
- Tu peux afficher le contenu d'un fichier avec /contenu_fichier [chemin] [branch]

Si l'utilisateur demande des informations sur le dépôt GitHub, rappelle-lui qu'il peut utiliser ces commandes ou pose-lui des questions sur GitHub directement."""
        return ConversationMessage(role=Role.SYSTEM, content=content)

    def latest_commit_context(
        self, commit: CommitRecord, branch: Optional[str] = None
    ) -> ConversationMessage:
        heading = "Informations sur le dernier commit"
        if branch:
            heading += f" de la branche {branch}"
        return ConversationMessage(
            role=Role.SYSTEM, content=describe_commit(commit, heading)
        )

    def specific_commit_context(
        self, commit: CommitRecord, branch: Optional[str] = None
    ) -> ConversationMessage:
        heading = f'Informations sur le commit "{commit.title}"'
        if branch:
            heading += f" de la branche {branch}"
        return ConversationMessage(
            role=Role.SYSTEM, content=describe_commit(commit, heading)
        )

    def commit_not_found_context(
        self, query: str, branch: Optional[str] = None
    ) -> ConversationMessage:
        content = f'Aucun commit contenant "{query}" n\'a été trouvé'
        if branch:
            content += f" dans la branche {branch}"
        return ConversationMessage(role=Role.SYSTEM, content=content + ".")

    def history(
        self,
        messages: Iterable[HistoryMessage],
        identity: BotIdentity,
        exclude_ts: Optional[str] = None,
    ) -> List[ConversationMessage]:
        """Map channel messages, newest first as the platform returns them"""
        conversation = []
        for message in reversed(list(messages)):
            if exclude_ts and message.ts == exclude_ts:
                continue
            own = self._is_own(message, identity)
            if message.bot_id and not own:
                continue
            if message.text.startswith(self.ignore_prefix):
                continue
            if not message.text.strip():
                continue

            if own:
                conversation.append(
                    ConversationMessage(
                        role=Role.ASSISTANT,
                        name=sanitize_name(identity.name) or None,
                        content=message.text,
                    )
                )
            else:
                name = message.username or message.user or ""
                conversation.append(
                    ConversationMessage(
                        role=Role.USER,
                        name=sanitize_name(name) or None,
                        content=message.text,
                    )
                )
        return conversation

    def build(
        self,
        persona: ConversationMessage,
        git_context: List[ConversationMessage],
        history: List[ConversationMessage],
        user_message: ConversationMessage,
    ) -> List[ConversationMessage]:
        return [persona, *git_context, *history, user_message]

    @staticmethod
    def _is_own(message: HistoryMessage, identity: BotIdentity) -> bool:
        if identity.bot_id and message.bot_id == identity.bot_id:
            return True
        return message.user == identity.user_id
