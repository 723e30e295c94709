"""
POST /webhook/push
Receives push events and starts a PipelineRun when the branch qualifies.
Non-qualifying branches are acknowledged with triggered=false.

Every request must carry ``X-Hub-Signature-256: sha256=<hex>``, the
HMAC-SHA256 of the raw body keyed with WEBHOOK_SECRET. The repository under
test always comes from the pipeline definition, never from the payload.
"""
import hmac
import hashlib
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ValidationError

from ci_pipeline.api.deps import get_registry, get_webhook_secret
from ci_pipeline.state.run_registry import RunRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

_NULL_SHA = "0" * 40
SIGNATURE_HEADER = "X-Hub-Signature-256"
_SIGNATURE_PREFIX = "sha256="


class PushEvent(BaseModel):
    ref: str
    after: Optional[str] = None
    deleted: bool = False


class TriggerResponse(BaseModel):
    triggered: bool
    run_id: Optional[str] = None
    reason: str = ""


def sign_payload(secret: str, body: bytes) -> str:
    """Header value a sender computes for ``body``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return _SIGNATURE_PREFIX + digest


def signature_matches(secret: str, body: bytes, header: Optional[str]) -> bool:
    if not header or not header.startswith(_SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(sign_payload(secret, body), header)


@router.post("/webhook/push", response_model=TriggerResponse)
async def push_webhook(
    request: Request,
    response: Response,
    registry: RunRegistry = Depends(get_registry),
    secret: str = Depends(get_webhook_secret),
):
    if not secret:
        logger.error("Push webhook rejected: WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    body = await request.body()
    if not signature_matches(secret, body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Push webhook rejected: bad or missing signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = PushEvent.model_validate_json(body)
    except ValidationError as e:
        detail = e.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=422, detail=detail)

    if event.deleted:
        return TriggerResponse(triggered=False, reason="branch deleted")

    commit_sha = event.after if event.after and event.after != _NULL_SHA else None
    run = registry.trigger(event.ref, commit_sha=commit_sha)
    if run is None:
        return TriggerResponse(triggered=False, reason=f"{event.ref} does not match trigger branches")

    logger.info("Push to %s triggered run %s", event.ref, run.run_id)
    response.status_code = 202
    return TriggerResponse(triggered=True, run_id=run.run_id)
