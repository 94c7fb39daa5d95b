"""GitHub webhook endpoints: issue and push events, ping, and a unified router."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from bountytriage.config import settings
from bountytriage.dependencies import Dispatcher, RepositorySvc, TriageSvc
from bountytriage.errors.exceptions import AuthenticationError, BountyTriageError, ValidationError
from bountytriage.models.bounty import Bounty
from bountytriage.webhooks.normalizer import (
    ISSUE_EVENT,
    PUSH_EVENT,
    Discard,
    RepositoryTouched,
    normalize,
)
from bountytriage.webhooks.signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/github", tags=["GitHub Webhooks"])

GITHUB_EVENT_HEADER = "X-GitHub-Event"
GITHUB_SIGNATURE_HEADER = "X-Hub-Signature-256"
GITHUB_DELIVERY_HEADER = "X-GitHub-Delivery"

PING_EVENT = "ping"


async def _verified_body(request: Request) -> bytes:
    """Return the raw body after checking its signature, or raise AuthenticationError."""
    body = await request.body()
    delivery_id = request.headers.get(GITHUB_DELIVERY_HEADER)

    if not settings.webhook_secret and not settings.allow_unsigned_webhooks:
        logger.error(
            "Webhook secret not configured and unsigned webhooks are not allowed; "
            "set BOUNTY_WEBHOOK_SECRET (delivery=%s)", delivery_id,
        )
        raise AuthenticationError("Webhook secret not configured")

    if not verify_signature(body, request.headers.get(GITHUB_SIGNATURE_HEADER), settings.webhook_secret):
        raise AuthenticationError("Invalid signature")
    return body


async def _within_deadline(coro):
    try:
        return await asyncio.wait_for(coro, timeout=settings.webhook_deadline_seconds)
    except asyncio.TimeoutError:
        logger.error("Webhook processing exceeded %.1fs deadline", settings.webhook_deadline_seconds)
        raise BountyTriageError(
            "DEADLINE_EXCEEDED", "Webhook processing deadline exceeded", status_code=500
        ) from None


def _discard_response(result: Discard) -> PlainTextResponse:
    if result.malformed:
        raise ValidationError(result.reason)
    logger.debug("Event not processed: %s", result.reason)
    return PlainTextResponse(f"Event received but not processed: {result.reason}")


async def _handle_issues(body: bytes, triage_service, dispatcher) -> PlainTextResponse:
    result = normalize(ISSUE_EVENT, body)
    if isinstance(result, Discard):
        return _discard_response(result)
    if not isinstance(result, Bounty):
        raise ValidationError("Unexpected payload for issues event")

    if await _within_deadline(triage_service.is_tracked(result)):
        logger.info("Issue %s already tracked", result.issue_id)
        return PlainTextResponse("Bounty already tracked")

    dispatcher.submit(result)
    logger.info("Issue %s accepted for triage (amount=%s)", result.issue_id, result.amount)
    return PlainTextResponse("Webhook processed successfully")


async def _handle_push(body: bytes, repository_service) -> PlainTextResponse:
    result = normalize(PUSH_EVENT, body)
    if isinstance(result, Discard):
        return _discard_response(result)
    if not isinstance(result, RepositoryTouched):
        raise ValidationError("Unexpected payload for push event")

    await _within_deadline(repository_service.handle(result))
    return PlainTextResponse("Webhook processed successfully")


def _require_event(request: Request, expected: str) -> None:
    event_type = request.headers.get(GITHUB_EVENT_HEADER)
    if event_type != expected:
        logger.warning("Received non-%s event: %s", expected, event_type)
        raise ValidationError(f"Expected '{expected}' event, received: {event_type}")


@router.post("", response_class=PlainTextResponse)
async def handle_webhook(
    request: Request,
    triage_service: TriageSvc,
    dispatcher: Dispatcher,
    repository_service: RepositorySvc,
):
    """Unified endpoint routing on the X-GitHub-Event header."""
    body = await _verified_body(request)
    event_type = request.headers.get(GITHUB_EVENT_HEADER)

    if not event_type:
        raise ValidationError(f"Missing {GITHUB_EVENT_HEADER} header")
    if event_type == ISSUE_EVENT:
        return await _handle_issues(body, triage_service, dispatcher)
    if event_type == PUSH_EVENT:
        return await _handle_push(body, repository_service)
    if event_type == PING_EVENT:
        logger.info("Received ping event")
        return PlainTextResponse("Pong")

    logger.debug("Unhandled event type: %s", event_type)
    return PlainTextResponse("Event received but not processed")


@router.post("/issues", response_class=PlainTextResponse)
async def handle_issue_event(request: Request, triage_service: TriageSvc, dispatcher: Dispatcher):
    body = await _verified_body(request)
    _require_event(request, ISSUE_EVENT)
    return await _handle_issues(body, triage_service, dispatcher)


@router.post("/push", response_class=PlainTextResponse)
async def handle_push_event(request: Request, repository_service: RepositorySvc):
    body = await _verified_body(request)
    _require_event(request, PUSH_EVENT)
    return await _handle_push(body, repository_service)


@router.post("/ping", response_class=PlainTextResponse)
async def handle_ping(request: Request):
    await _verified_body(request)
    logger.info("Received ping event")
    return PlainTextResponse("Pong")


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return PlainTextResponse("GitHub webhook endpoint is active")
