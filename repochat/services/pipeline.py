import asyncio
import logging
from typing import List

from repochat.core.context import BotContext
from repochat.schemas.conversation import ConversationMessage, Role
from repochat.schemas.intent import (
    Intent,
    LatestCommitIntent,
    ShaLookupIntent,
    SpecificCommitIntent,
)
from repochat.schemas.service_handler import StandardizedEvent
from repochat.services.commands import CommandFactory
from repochat.services.conversation import sanitize_name
from repochat.services.delivery import (
    COMMAND_CHAIN,
    TypingIndicator,
    chunk_text,
    deliver_with_fallback,
    send_chunks,
)
from repochat.services.service_handlers.base import ResponseType

# Message subtypes that still carry a user's own text
USER_SUBTYPES = (None, "file_share", "thread_broadcast")


class MessagePipeline:
    """Answers chat messages with the completion API"""

    def __init__(self, context: BotContext):
        self.context = context
        self.logger = logging.getLogger(__name__)

    def should_answer(self, event: StandardizedEvent) -> bool:
        settings = self.context.settings
        if event.event_type != "message" or event.subtype not in USER_SUBTYPES:
            return False
        if event.bot_id:
            return False
        if not event.text or event.text.startswith(settings.IGNORE_PREFIX):
            return False
        if event.channel in settings.CHANNELS:
            return True
        user_id = self.context.identity.user_id
        return bool(user_id) and f"<@{user_id}>" in event.text

    async def handle(self, event: StandardizedEvent) -> None:
        handler = self.context.handler
        try:
            async with TypingIndicator(
                handler, event, interval=self.context.settings.TYPING_INTERVAL
            ):
                answer = await self.answer(event)
        except Exception as e:
            self.logger.exception("Error while processing message")
            try:
                await handler.send_response(
                    event,
                    f"Désolé, une erreur s'est produite: {e}",
                    ResponseType.CHANNEL,
                    thread_id=event.thread_ts,
                )
            except Exception:
                self.logger.exception("Could not send the error message")
            return

        try:
            await send_chunks(handler, event, answer, self.context.settings.CHUNK_SIZE)
        except Exception:
            self.logger.exception("Error while sending the answer")

    async def answer(self, event: StandardizedEvent) -> str:
        conversation = await self.build_conversation(event)
        return await self.context.llm.complete(conversation)

    async def build_conversation(
        self, event: StandardizedEvent
    ) -> List[ConversationMessage]:
        context = self.context
        builder = context.conversation

        persona = builder.persona(context.identity, context.repo_info)
        git_context = await self.git_context(event.text)
        recent = await context.handler.fetch_history(
            event.channel, context.settings.HISTORY_LIMIT
        )
        history = builder.history(recent, context.identity, exclude_ts=event.ts)
        user_message = ConversationMessage(
            role=Role.USER,
            name=sanitize_name(event.user or "") or None,
            content=event.text,
        )
        return builder.build(persona, git_context, history, user_message)

    async def git_context(self, text: str) -> List[ConversationMessage]:
        """Resolve the repository lookups asked for in ``text``.

        A failed lookup is logged and contributes nothing.
        """
        messages = []
        for intent in self.context.intents.extract(text):
            try:
                message = await self._lookup(intent)
            except Exception:
                self.logger.exception(f"Repository lookup failed for {intent!r}")
                continue
            if message is not None:
                messages.append(message)
        return messages

    async def _lookup(self, intent: Intent):
        context = self.context
        repositories = context.repositories
        builder = context.conversation

        if isinstance(intent, LatestCommitIntent):
            commit = await asyncio.to_thread(
                repositories.get_latest_commit, intent.branch, context.default_branch
            )
            if commit:
                return builder.latest_commit_context(commit, intent.branch)
            return None

        if isinstance(intent, SpecificCommitIntent):
            commit = await asyncio.to_thread(
                repositories.find_commit_by_substring,
                intent.query,
                intent.branch,
                context.default_branch,
            )
            if commit:
                return builder.specific_commit_context(commit, intent.branch)
            return builder.commit_not_found_context(intent.query, intent.branch)

        if isinstance(intent, ShaLookupIntent):
            commit = await asyncio.to_thread(
                repositories.get_commit_details, intent.sha
            )
            return builder.specific_commit_context(commit)

        self.logger.debug("No commit token found in message, skipping lookup")
        return None


class CommandPipeline:
    """Runs slash commands and delivers their result"""

    def __init__(self, context: BotContext):
        self.context = context
        self.logger = logging.getLogger(__name__)

    async def handle(self, event: StandardizedEvent) -> None:
        try:
            command = CommandFactory.get_command(event.command)
            args = command.parse_args(event.text)
            self.logger.info(f"Running command {event.command} with {args!r}")
            response = await command.execute(args, self.context)
        except Exception as e:
            self.logger.exception(f"Error executing command {event.command}")
            response = (
                "Désolé, une erreur s'est produite lors de l'exécution de "
                f"cette commande: {e}"
            )

        chunks = chunk_text(response, self.context.settings.CHUNK_SIZE)
        handler = self.context.handler
        for index, chunk in enumerate(chunks):
            chain = COMMAND_CHAIN if index == 0 else COMMAND_CHAIN[1:]
            delivered = await deliver_with_fallback(handler, event, chunk, chain)
            if delivered is None:
                self.logger.error(f"Could not deliver response to {event.command}")
                return
