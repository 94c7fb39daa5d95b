"""Tests for the bounty read API and manual failure."""

from decimal import Decimal

import pytest

from bountytriage.lifecycle.transitions import StartProcessing
from bountytriage.models.bounty import Bounty
from bountytriage.repositories.bounty_repo import BountyRepository


async def _seed(session_factory, queue=None, number=1) -> Bounty:
    bounty = Bounty(
        issue_id=f"acme/widgets#{number}",
        repository_url="https://github.com/acme/widgets",
        platform="github-issue",
        amount=Decimal("60"),
        currency="USD",
        title="Fix typo",
    )
    async with session_factory() as session:
        await BountyRepository(session).add(bounty)
        await session.commit()
    if queue is not None:
        await queue.enqueue(bounty)
    return bounty


@pytest.mark.asyncio
async def test_list_and_get(client, session_factory):
    bounty = await _seed(session_factory)

    response = await client.get("/api/bounties")
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [bounty.id]

    response = await client.get(f"/api/bounties/{bounty.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["issue_id"] == "acme/widgets#1"
    assert data["status"] == "OPEN"


@pytest.mark.asyncio
async def test_list_filters_by_status(client, session_factory):
    await _seed(session_factory)
    response = await client.get("/api/bounties", params={"status": "FAILED"})
    assert response.json() == []


@pytest.mark.asyncio
async def test_get_missing_returns_404(client):
    response = await client.get("/api/bounties/bty_missing")
    assert response.status_code == 404
    data = response.json()
    assert data["error"]["code"] == "NOT_FOUND"
    assert "trace_id" in data["error"]


@pytest.mark.asyncio
async def test_fail_removes_from_queue(client, app, session_factory):
    queue = app.state.triage_queue
    bounty = await _seed(session_factory, queue)
    assert await queue.size() == 1

    response = await client.post(f"/api/bounties/{bounty.id}/fail", json={"reason": "duplicate of #2"})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "FAILED"
    assert data["failure_reason"] == "duplicate of #2"
    assert await queue.is_empty()

    response = await client.get("/api/queue")
    assert response.json() == {"key": queue.key, "size": 0}


@pytest.mark.asyncio
async def test_fail_terminal_bounty_conflicts(client, session_factory):
    bounty = await _seed(session_factory)
    first = await client.post(f"/api/bounties/{bounty.id}/fail", json={"reason": "no"})
    assert first.status_code == 200

    second = await client.post(f"/api/bounties/{bounty.id}/fail", json={"reason": "again"})
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_fail_in_progress_bounty(client, session_factory):
    bounty = await _seed(session_factory)
    async with session_factory() as session:
        await BountyRepository(session).apply_transition(bounty.id, StartProcessing())
        await session.commit()

    response = await client.post(f"/api/bounties/{bounty.id}/fail", json={"reason": "stuck"})
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"
