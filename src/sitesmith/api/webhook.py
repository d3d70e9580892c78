"""WhatsApp Cloud API webhook: builds a site from an inbound text message.

GET /webhook answers Meta's subscription handshake. POST /webhook
acknowledges every delivery at once and builds in a background task,
replying to the sender when the run finishes.
"""

import logging
from typing import Any

import httpx
from fastapi import APIRouter, BackgroundTasks, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict

from sitesmith.models import RunStatus
from sitesmith.service.runs import RunService

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com/v21.0"
DEFAULT_TIMEOUT_SECONDS = 20.0

BUILDING_REPLY = "Building your website... This may take a minute!"
FAILURE_REPLY = "Sorry, something went wrong building your website. Please try again."


class InboundMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender: str
    text: str
    phone_number_id: str


class WhatsAppClient:
    """Sends text replies through the WhatsApp Cloud API."""

    def __init__(
        self,
        access_token: str,
        api_url: str = GRAPH_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def send_text(self, phone_number_id: str, to: str, text: str) -> bool:
        """Send ``text`` to ``to``; failures are logged, never raised."""
        try:
            response = self._client.post(
                f"/{phone_number_id}/messages",
                json={
                    "messaging_product": "whatsapp",
                    "to": to,
                    "type": "text",
                    "text": {"body": text},
                },
            )
        except httpx.HTTPError as exc:
            logger.error("WhatsApp: request failed: %s", exc)
            return False
        if response.is_error:
            logger.error("WhatsApp: failed to send message (%d): %s", response.status_code, response.text)
            return False
        return True


def _first(items: Any) -> dict:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def parse_text_message(payload: Any) -> InboundMessage | None:
    """Pull the first inbound text message out of a webhook delivery.

    Status callbacks, media messages, blank texts and deliveries without a
    phone number id all yield None.
    """
    if not isinstance(payload, dict):
        return None
    value = _first(_first(payload.get("entry")).get("changes")).get("value")
    if not isinstance(value, dict):
        return None
    message = _first(value.get("messages"))
    if message.get("type") != "text":
        return None

    text = (message.get("text") or {}).get("body") or ""
    phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
    sender = message.get("from")
    if not text.strip() or not phone_number_id or not sender:
        return None
    return InboundMessage(sender=sender, text=text.strip(), phone_number_id=phone_number_id)


def build_and_reply(
    service: RunService,
    messenger: WhatsAppClient | None,
    message: InboundMessage,
) -> None:
    """Run the prompt to completion and tell the sender where the site is."""

    def reply(text: str) -> None:
        if messenger is None:
            logger.warning("WHATSAPP_ACCESS_TOKEN not set, skipping reply to %s", message.sender)
            return
        messenger.send_text(message.phone_number_id, message.sender, text)

    reply(BUILDING_REPLY)
    logger.info("[webhook] building site for %s: %r", message.sender, message.text[:80])
    try:
        run_id = service.start_run(message.text)
        run = service.wait_for_run(run_id)
    except Exception:
        logger.exception("[webhook] error processing message from %s", message.sender)
        reply(FAILURE_REPLY)
        return

    if run is None or run.status != RunStatus.READY:
        logger.warning("[webhook] run %s did not finish ready", run_id)
        reply(FAILURE_REPLY)
        return

    logger.info("[webhook] run %s done -> deploy_url=%s", run_id, run.deploy_url)
    if run.deploy_url:
        reply(f"Your website is ready!\n\n{run.deploy_url}")
    elif run.repo_url:
        reply(f"Your site was generated! GitHub repo: {run.repo_url}")
    else:
        reply(f"Your site was generated! Preview: /preview-builds/{run_id}/")


def create_webhook_router(
    service: RunService,
    verify_token: str | None,
    messenger: WhatsAppClient | None = None,
) -> APIRouter:
    router = APIRouter()

    @router.get("/webhook")
    def verify(
        mode: str | None = Query(None, alias="hub.mode"),
        token: str | None = Query(None, alias="hub.verify_token"),
        challenge: str = Query("", alias="hub.challenge"),
    ):
        if mode == "subscribe" and verify_token and token == verify_token:
            return PlainTextResponse(challenge)
        logger.warning("Rejected webhook verification (mode=%s)", mode)
        return PlainTextResponse("Forbidden", status_code=403)

    @router.post("/webhook")
    async def receive(request: Request, background_tasks: BackgroundTasks):
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        message = parse_text_message(payload)
        if message is not None:
            background_tasks.add_task(build_and_reply, service, messenger, message)
        # Meta retries any delivery that is not acknowledged quickly.
        return PlainTextResponse("OK")

    return router
