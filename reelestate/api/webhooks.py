"""Avatar provider webhook endpoint.

The provider only needs to know the callback arrived. The response is always
``200 {"ok": true}`` and the job update runs after it has been sent, so slow
database work or business-level rejections never trigger provider retries.
"""

import json
import logging
from functools import lru_cache
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from reelestate.config import get_settings
from reelestate.schemas.webhook import WebhookAck
from reelestate.services.job_store import JobStore
from reelestate.services.webhook_bridge import WebhookBridge

router = APIRouter()
logger = logging.getLogger(__name__)


@lru_cache
def get_webhook_bridge() -> WebhookBridge:
    settings = get_settings()
    return WebhookBridge(JobStore(error_max_length=settings.error_max_length), settings)


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON; treating as empty payload")
        return {}


def _apply_callback(bridge: WebhookBridge, job_id: str | None, token: str | None, payload: Any) -> None:
    try:
        outcome = bridge.handle(job_id, token, payload)
        logger.info("Webhook processed (job_id=%s, outcome=%s)", job_id, outcome.value)
    except Exception:
        # Already acknowledged; the job stays in heygen_requested
        logger.exception("Webhook processing failed (job_id=%s)", job_id)


@router.post(get_settings().webhook_path, response_model=WebhookAck)
async def heygen_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    bridge: Annotated[WebhookBridge, Depends(get_webhook_bridge)],
    token: str | None = None,
    job_id: str | None = None,
) -> WebhookAck:
    """Receive an avatar provider completion push."""
    payload = await _read_payload(request)
    background_tasks.add_task(_apply_callback, bridge, job_id, token, payload)
    return WebhookAck(ok=True)
