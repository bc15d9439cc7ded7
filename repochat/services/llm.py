import json
import logging
from typing import List

from litellm import acompletion

from repochat.core.config import settings
from repochat.schemas.conversation import ConversationMessage, Role
from repochat.schemas.repository import CommitRecord

COMMIT_ANALYST_PROMPT = (
    "Tu es un assistant spécialisé dans l'analyse de code. Analyse les "
    "modifications suivantes et résume-les de manière concise et claire. "
    "Explique les changements principaux et leur impact potentiel. Ne mentionne "
    "pas l'auteur, le nom du commit ou la date car ces informations seront "
    "ajoutées séparément. Réponds en français."
)


class CompletionError(RuntimeError):
    """The completion API answered without usable content"""


class LLMService:
    def __init__(self):
        self.model = f"{settings.LLM_PROVIDER}/{settings.LLM_MODEL}"
        self.api_key = settings.LLM_API_KEY
        self.logger = logging.getLogger(__name__)

    async def complete(self, messages: List[ConversationMessage]) -> str:
        """
        Send the whole conversation in a single, non-streaming request and
        return the text of the first choice.
        """
        response = await acompletion(
            model=self.model,
            api_key=self.api_key or None,
            messages=[message.to_api() for message in messages],
            # One upstream request per call, failures surface immediately
            max_retries=0,
            num_retries=0,
        )
        if not response.choices:
            raise CompletionError("La réponse de l'API ne contient aucun choix")
        content = response.choices[0].message.content
        if not content:
            raise CompletionError("La réponse de l'API est vide")
        return content

    async def summarize_commit(self, commit: CommitRecord) -> str:
        """
        Summarize the changes of a commit for the commit slash commands.
        """
        messages = [
            ConversationMessage(role=Role.SYSTEM, content=COMMIT_ANALYST_PROMPT),
            ConversationMessage(
                role=Role.USER,
                content=self._build_commit_summary_prompt(commit),
            ),
        ]
        self.logger.info(f"Summarizing commit {commit.short_sha}")
        return await self.complete(messages)

    def _build_commit_summary_prompt(self, commit: CommitRecord) -> str:
        files = [f.model_dump(mode="json") for f in commit.files]
        return f"""Résume le commit suivant:
Message: {commit.message}
Auteur: {commit.author}
Date: {commit.formatted_date}
Fichiers modifiés: {len(commit.files)}

Détails des modifications:
{json.dumps(files, indent=2, ensure_ascii=False)}
"""
