import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from slack_sdk.errors import SlackApiError

from repochat.api.slack_routes import router as slack_router
from repochat.core.config import settings
from repochat.core.context import BotContext
from repochat.services.commands import CommandFactory

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    context = BotContext.from_settings(settings)
    app.state.bot = context

    try:
        identity = await context.handler.resolve_identity()
        logger.info(f"{identity.name} est en ligne !")
    except SlackApiError as e:
        logger.error(f"Could not resolve the bot identity: {e}")

    try:
        await context.refresh_repository_info()
    except Exception:
        logger.exception("Could not load the GitHub context")

    for metadata in CommandFactory.list_commands():
        logger.info(f"Slash command available: {metadata.usage}")

    yield


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(slack_router)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "Le bot Slack est actif!"


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("repochat.main:app", host="0.0.0.0", port=settings.PORT)
