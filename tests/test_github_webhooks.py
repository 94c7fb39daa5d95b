"""Tests for the GitHub webhook endpoints."""

import json

import pytest

from bountytriage.config import settings
from bountytriage.models.enums import BountyStatus
from bountytriage.repositories.bounty_repo import BountyRepository
from bountytriage.repositories.tracked_repository_repo import TrackedRepositoryRepository
from bountytriage.services.repository_service import RepositoryIntakeService
from bountytriage.webhooks.normalizer import RepositoryTouched

from factories import accept_answer, issue_payload, push_payload, signed_headers


def _body(payload: dict) -> bytes:
    return json.dumps(payload).encode("utf-8")


async def _post(client, path, payload, event, **header_overrides):
    body = _body(payload)
    headers = signed_headers(body, event)
    headers.update(header_overrides)
    return await client.post(path, content=body, headers=headers)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_signature_rejected(client):
    body = _body(issue_payload())
    response = await client.post(
        "/api/webhooks/github",
        content=body,
        headers={"X-GitHub-Event": "issues", "Content-Type": "application/json"},
    )
    assert response.status_code == 401
    assert response.text == "Invalid signature"


@pytest.mark.asyncio
async def test_bad_signature_rejected(client, app):
    response = await _post(client, "/api/webhooks/github", issue_payload(), "issues",
                           **{"X-Hub-Signature-256": "sha256=" + "0" * 64})
    assert response.status_code == 401
    assert await app.state.triage_queue.is_empty()


@pytest.mark.asyncio
async def test_signature_checked_before_event_type(client):
    response = await client.post(
        "/api/webhooks/github/issues",
        content=b"{}",
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": "sha256=bad"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unconfigured_secret_fails_closed(client, monkeypatch):
    monkeypatch.setattr(settings, "webhook_secret", "")
    response = await client.post(
        "/api/webhooks/github", content=_body(issue_payload()), headers={"X-GitHub-Event": "ping"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unsigned_allowed_when_opted_in(client, monkeypatch):
    monkeypatch.setattr(settings, "webhook_secret", "")
    monkeypatch.setattr(settings, "allow_unsigned_webhooks", True)
    response = await client.post(
        "/api/webhooks/github", content=_body({"zen": "hi"}), headers={"X-GitHub-Event": "ping"}
    )
    assert response.status_code == 200
    assert response.text == "Pong"


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_opened_issue_is_triaged_and_queued(client, app, session_factory):
    response = await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    assert response.status_code == 200
    assert response.text == "Webhook processed successfully"
    assert "X-Trace-Id" in response.headers

    await app.state.triage_dispatcher.drain()
    assert await app.state.triage_queue.size() == 1

    async with session_factory() as session:
        bounties = await BountyRepository(session).list_bounties()
    assert len(bounties) == 1
    assert bounties[0].issue_id == "acme/widgets#42"
    assert bounties[0].status == BountyStatus.OPEN


@pytest.mark.asyncio
async def test_issue_endpoint_accepts_issues(client, app):
    response = await _post(client, "/api/webhooks/github/issues", issue_payload(number=7), "issues")
    assert response.status_code == 200
    await app.state.triage_dispatcher.drain()
    assert await app.state.triage_queue.size() == 1


@pytest.mark.asyncio
async def test_redelivered_issue_reported_as_tracked(client, app):
    await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    await app.state.triage_dispatcher.drain()

    response = await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    assert response.status_code == 200
    assert response.text == "Bounty already tracked"
    await app.state.triage_dispatcher.drain()
    assert await app.state.triage_queue.size() == 1


@pytest.mark.asyncio
async def test_rejected_issue_is_not_queued(client, app, fake_oracle):
    fake_oracle.answer = accept_answer(confidence=0.1)
    response = await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    assert response.status_code == 200
    await app.state.triage_dispatcher.drain()
    assert await app.state.triage_queue.is_empty()


@pytest.mark.asyncio
async def test_oracle_outage_rejects_quietly(client, app, fake_oracle):
    fake_oracle.answer = ConnectionError("oracle down")
    response = await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    assert response.status_code == 200
    await app.state.triage_dispatcher.drain()
    assert await app.state.triage_queue.is_empty()


@pytest.mark.asyncio
async def test_unsupported_language_is_rejected_before_assessment(client, app, fake_oracle, session_factory):
    response = await _post(client, "/api/webhooks/github", issue_payload(language="Rust"), "issues")
    assert response.status_code == 200
    await app.state.triage_dispatcher.drain()

    assert fake_oracle.prompts == []
    assert await app.state.triage_queue.is_empty()
    async with session_factory() as session:
        assert await BountyRepository(session).list_bounties() == []


@pytest.mark.asyncio
async def test_pushed_repository_language_applies_to_later_issues(client, app, fake_oracle):
    await _post(client, "/api/webhooks/github/push", push_payload(language="Go"), "push")

    await _post(client, "/api/webhooks/github", issue_payload(), "issues")
    await app.state.triage_dispatcher.drain()
    assert fake_oracle.prompts == []
    assert await app.state.triage_queue.is_empty()


@pytest.mark.asyncio
async def test_supported_language_reaches_prompt_and_record(client, app, fake_oracle, session_factory):
    await _post(client, "/api/webhooks/github", issue_payload(language="Python"), "issues")
    await app.state.triage_dispatcher.drain()

    assert "- Language: Python" in fake_oracle.prompts[0]
    async with session_factory() as session:
        bounties = await BountyRepository(session).list_bounties()
    assert bounties[0].language == "Python"



@pytest.mark.asyncio
async def test_closed_issue_not_processed(client, app):
    response = await _post(client, "/api/webhooks/github", issue_payload(action="closed"), "issues")
    assert response.status_code == 200
    assert response.text.startswith("Event received but not processed")
    assert app.state.triage_dispatcher.pending == 0


@pytest.mark.asyncio
async def test_malformed_issue_payload(client):
    body = b"{not json"
    response = await client.post("/api/webhooks/github", content=body, headers=signed_headers(body, "issues"))
    assert response.status_code == 400
    assert response.text == "Invalid JSON payload"


@pytest.mark.asyncio
async def test_issue_endpoint_rejects_other_events(client):
    response = await _post(client, "/api/webhooks/github/issues", push_payload(), "push")
    assert response.status_code == 400
    assert response.text == "Expected 'issues' event, received: push"


# ---------------------------------------------------------------------------
# Push, ping and other events
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_push_marks_repository_for_update(client, app, session_factory):
    response = await _post(client, "/api/webhooks/github", push_payload(ref="refs/heads/dev"), "push")
    assert response.status_code == 200
    assert await app.state.triage_queue.is_empty()

    await _post(client, "/api/webhooks/github/push", push_payload(), "push")
    async with session_factory() as session:
        row = await TrackedRepositoryRepository(session).get_by_url("https://github.com/acme/widgets.git")
    assert row.push_count == 2
    assert row.pending_update is True
    assert row.last_pushed_branch == "main"


@pytest.mark.asyncio
async def test_push_racing_first_insert_counts_against_existing_row(session_factory, monkeypatch):
    service = RepositoryIntakeService(session_factory)
    touched = RepositoryTouched(
        full_name="acme/widgets",
        clone_url="https://github.com/acme/widgets.git",
        default_branch="main",
        branch="main",
        commit_count=1,
        language="Python",
    )
    await service.handle(touched)

    # The first lookup misses, as if another delivery inserted the row just after it.
    real_get_by_url = TrackedRepositoryRepository.get_by_url
    lookups: list[str] = []

    async def late_get_by_url(self, url):
        lookups.append(url)
        if len(lookups) == 1:
            return None
        return await real_get_by_url(self, url)

    monkeypatch.setattr(TrackedRepositoryRepository, "get_by_url", late_get_by_url)
    await service.handle(touched)

    assert len(lookups) == 2
    async with session_factory() as session:
        repo = TrackedRepositoryRepository(session)
        row = await real_get_by_url(repo, "https://github.com/acme/widgets.git")
        language = await repo.language_for("https://github.com/acme/widgets")
    assert row.push_count == 2
    assert language == "Python"



@pytest.mark.asyncio
async def test_push_endpoint_rejects_other_events(client):
    response = await _post(client, "/api/webhooks/github/push", issue_payload(), "issues")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_ping(client):
    response = await _post(client, "/api/webhooks/github", {"zen": "Keep it simple."}, "ping")
    assert response.text == "Pong"
    response = await _post(client, "/api/webhooks/github/ping", {"zen": "Keep it simple."}, "ping")
    assert response.status_code == 200
    assert response.text == "Pong"


@pytest.mark.asyncio
async def test_unhandled_event_type(client):
    response = await _post(client, "/api/webhooks/github", {"action": "published"}, "release")
    assert response.status_code == 200
    assert response.text == "Event received but not processed"


@pytest.mark.asyncio
async def test_missing_event_header(client):
    body = _body({})
    headers = signed_headers(body, "issues")
    del headers["X-GitHub-Event"]
    response = await client.post("/api/webhooks/github", content=body, headers=headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_health(client):
    response = await client.get("/api/webhooks/github/health")
    assert response.status_code == 200
    assert response.text == "GitHub webhook endpoint is active"
