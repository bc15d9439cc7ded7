import json
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from repochat.core.context import BotContext
from repochat.services.pipeline import CommandPipeline, MessagePipeline

router = APIRouter(prefix="/slack", tags=["slack"])

WORKING_MESSAGE = "⏳ Je m'en occupe..."


def get_bot_context(request: Request) -> BotContext:
    return request.app.state.bot


async def verified_body(request: Request, context: BotContext) -> bytes:
    body = await request.body()
    if not context.handler.validate_webhook(request.headers, body):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    return body


@router.post("/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    context: BotContext = Depends(get_bot_context),
):
    body = await verified_body(request, context)
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event = context.handler.process_webhook(payload)
    if event.event_type == "url_verification":
        return {"challenge": event.text}

    # Slack redelivers events it considers unanswered; the first delivery is enough
    if request.headers.get("x-slack-retry-num"):
        return {"ok": True}

    pipeline = MessagePipeline(context)
    if pipeline.should_answer(event):
        background_tasks.add_task(pipeline.handle, event)
    return {"ok": True}


@router.post("/commands")
async def slack_commands(
    request: Request,
    background_tasks: BackgroundTasks,
    context: BotContext = Depends(get_bot_context),
):
    body = await verified_body(request, context)
    form = parse_qs(body.decode(), keep_blank_values=True)
    payload = {key: values[0] for key, values in form.items()}

    event = context.handler.process_webhook(payload)
    if event.event_type != "slash_command":
        raise HTTPException(status_code=400, detail="Not a slash command")

    # Acknowledge now, the response_url is used to replace this message
    background_tasks.add_task(CommandPipeline(context).handle, event)
    return {"response_type": "in_channel", "text": WORKING_MESSAGE}
