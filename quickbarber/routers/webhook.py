from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.requests import ClientDisconnect

from quickbarber.config import Settings, get_settings
from quickbarber.logging_config import get_logger
from quickbarber.schemas.webhook import WebhookAck
from quickbarber.services.webhook_service import verify_signature, verify_subscription

logger = get_logger("webhook")

router = APIRouter()

SIGNATURE_HEADER = "X-Hub-Signature-256"


def _forbidden() -> JSONResponse:
    return JSONResponse(status_code=403, content={"success": False, "error": "Forbidden"})


def _param(request: Request, name: str):
    params = request.query_params
    return params.get(f"hub.{name}", params.get(name))


@router.get("/webhook")
def verify_webhook(request: Request, settings: Settings = Depends(get_settings)):
    """WhatsApp subscription handshake: echo the challenge when the token matches."""
    challenge = verify_subscription(
        _param(request, "mode"),
        _param(request, "verify_token"),
        _param(request, "challenge"),
        settings.whatsapp_verify_token,
    )
    if challenge is None:
        logger.warning("Webhook verification failed", extra={"context": {"mode": _param(request, "mode")}})
        return _forbidden()
    logger.info("Webhook verified")
    return PlainTextResponse(challenge)


@router.post("/webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
):
    """Acknowledge immediately; processing starts after the response is sent."""
    try:
        raw_body = await request.body()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during body read")
        return WebhookAck(success=True, message="Client disconnected")

    if not verify_signature(settings.whatsapp_app_secret, raw_body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Webhook signature mismatch", extra={"context": {"bytes": len(raw_body)}})
        return _forbidden()

    background_tasks.add_task(request.app.state.dispatcher.submit, raw_body)
    return WebhookAck(success=True, message="Webhook received successfully")
