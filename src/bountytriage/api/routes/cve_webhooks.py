"""CVE feed webhook endpoint. Accepts several third-party payload shapes."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from bountytriage.config import settings
from bountytriage.dependencies import CVESvc
from bountytriage.errors.exceptions import BountyTriageError, ValidationError
from bountytriage.models.cve import NormalizedCVE
from bountytriage.webhooks.normalizer import CVE_EVENT, Discard, normalize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/cve", tags=["CVE Webhooks"])


@router.post("", response_class=PlainTextResponse)
async def handle_cve_webhook(request: Request, cve_service: CVESvc):
    logger.info("Received CVE webhook notification")
    body = await request.body()

    result = normalize(CVE_EVENT, body)
    if isinstance(result, Discard):
        raise ValidationError(result.reason)
    if not isinstance(result, NormalizedCVE):
        raise ValidationError("Invalid payload")

    try:
        created = await asyncio.wait_for(cve_service.handle(result), timeout=settings.webhook_deadline_seconds)
    except asyncio.TimeoutError:
        logger.error("CVE hand-off for %s exceeded deadline", result.cve_id)
        raise BountyTriageError(
            "DEADLINE_EXCEEDED", "Webhook processing deadline exceeded", status_code=500
        ) from None

    if not created:
        return PlainTextResponse("CVE already known")
    return PlainTextResponse("CVE webhook processed successfully")


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return PlainTextResponse("CVE webhook endpoint is active")
