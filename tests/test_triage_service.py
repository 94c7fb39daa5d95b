"""Tests for the triage pipeline and its background dispatcher."""

import asyncio
from decimal import Decimal

import pytest

from bountytriage.admission.filter import AdmissionFilter
from bountytriage.errors.exceptions import QueueUnavailableError
from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import BountyStatus
from bountytriage.queue.priority_queue import TriageQueue
from bountytriage.queue.store import InMemorySortedSetStore
from bountytriage.repositories.bounty_repo import BountyRepository
from bountytriage.services.triage_service import TriageDispatcher, TriageService

from factories import FakeOracle, accept_answer


class BrokenStore(InMemorySortedSetStore):
    async def add(self, key, member, score, payload):
        raise QueueUnavailableError("Connection refused")


def _bounty(number=1, amount="50", platform="github-issue", language=None) -> Bounty:
    return Bounty(
        issue_id=f"acme/widgets#{number}",
        repository_url="https://github.com/acme/widgets",
        platform=platform,
        language=language,
        amount=Decimal(amount) if amount is not None else None,
        title="Fix typo",
    )


def _service(session_factory, oracle=None, store=None, **kwargs) -> TriageService:
    queue = TriageQueue(store or InMemorySortedSetStore())
    return TriageService(session_factory, AdmissionFilter(oracle or FakeOracle()), queue, **kwargs)


@pytest.mark.asyncio
async def test_accepted_bounty_is_stored_and_queued(session_factory):
    service = _service(session_factory)
    bounty = _bounty()
    result = await service.triage(bounty)

    assert result.accept is True
    assert await service.queue.size() == 1
    async with session_factory() as session:
        stored = await BountyRepository(session).get(bounty.id)
    assert stored.status == BountyStatus.OPEN


@pytest.mark.asyncio
async def test_rejected_bounty_is_neither_stored_nor_queued(session_factory):
    service = _service(session_factory, oracle=FakeOracle(accept_answer(confidence=0.2)))
    bounty = _bounty()
    result = await service.triage(bounty)

    assert result.accept is False
    assert await service.queue.is_empty()
    assert not await service.is_tracked(bounty)


@pytest.mark.asyncio
async def test_already_tracked_issue_is_skipped(session_factory):
    oracle = FakeOracle()
    service = _service(session_factory, oracle=oracle)
    await service.triage(_bounty())
    assert await service.triage(_bounty()) is None
    assert len(oracle.prompts) == 1
    assert await service.queue.size() == 1


@pytest.mark.asyncio
async def test_amount_window_rejects_without_oracle_call(session_factory):
    oracle = FakeOracle()
    service = _service(
        session_factory, oracle=oracle,
        min_bounty_amount=Decimal("20"), max_bounty_amount=Decimal("500"),
    )

    low = await service.triage(_bounty(1, "15"))
    high = await service.triage(_bounty(2, "900"))
    assert low.accept is False and "below minimum" in low.reason
    assert high.accept is False and "exceeds maximum" in high.reason
    assert oracle.prompts == []


@pytest.mark.asyncio
async def test_missing_amount_fails_minimum(session_factory):
    service = _service(session_factory, min_bounty_amount=Decimal("10"))
    result = await service.triage(_bounty(amount=None))
    assert result.accept is False


@pytest.mark.asyncio
async def test_unsupported_language_rejects_without_oracle_call(session_factory):
    oracle = FakeOracle()
    service = _service(session_factory, oracle=oracle)

    result = await service.triage(_bounty(language="Rust"))
    assert result.accept is False
    assert result.reason == "Language 'Rust' not supported. Supported: Java,TypeScript,JavaScript,Python"
    assert oracle.prompts == []
    assert await service.queue.is_empty()


@pytest.mark.asyncio
async def test_language_shorthand_and_case_are_normalized(session_factory):
    oracle = FakeOracle()
    service = _service(session_factory, oracle=oracle)

    assert (await service.triage(_bounty(1, language="ts"))).accept is True
    assert (await service.triage(_bounty(2, language="PYTHON"))).accept is True
    assert len(oracle.prompts) == 2


@pytest.mark.asyncio
async def test_unknown_language_is_left_to_oracle(session_factory):
    oracle = FakeOracle(accept_answer(shouldProcess=False, reason="needs a C toolchain"))
    service = _service(session_factory, oracle=oracle)

    result = await service.triage(_bounty())
    assert result.reason == "needs a C toolchain"
    assert "- Language: N/A" in oracle.prompts[0]


@pytest.mark.asyncio
async def test_empty_language_list_disables_check(session_factory):
    oracle = FakeOracle()
    service = _service(session_factory, oracle=oracle, supported_languages="")
    assert (await service.triage(_bounty(language="Rust"))).accept is True
    assert len(oracle.prompts) == 1



@pytest.mark.asyncio
async def test_queue_outage_after_admission_marks_failed(session_factory):
    service = _service(session_factory, store=BrokenStore())
    bounty = _bounty()
    with pytest.raises(QueueUnavailableError):
        await service.triage(bounty)

    async with session_factory() as session:
        stored = await BountyRepository(session).get(bounty.id)
    assert stored.status == BountyStatus.FAILED
    assert stored.failure_reason.startswith("Failed to enqueue")


@pytest.mark.asyncio
async def test_dispatcher_runs_triage_in_background(session_factory):
    service = _service(session_factory)
    dispatcher = TriageDispatcher(service, concurrency=1)
    for number in range(1, 6):
        dispatcher.submit(_bounty(number))
    await dispatcher.drain()

    assert dispatcher.pending == 0
    assert await service.queue.size() == 5


@pytest.mark.asyncio
async def test_dispatcher_logs_and_survives_queue_outage(session_factory):
    service = _service(session_factory, store=BrokenStore())
    dispatcher = TriageDispatcher(service)
    task = dispatcher.submit(_bounty())
    assert await task is None


@pytest.mark.asyncio
async def test_dispatcher_close_cancels_pending(session_factory):
    class HangingOracle(FakeOracle):
        async def complete(self, prompt):
            self.prompts.append(prompt)
            await asyncio.sleep(60)

    oracle = HangingOracle()
    service = _service(session_factory, oracle=oracle)
    dispatcher = TriageDispatcher(service)
    task = dispatcher.submit(_bounty())
    while not oracle.prompts:
        await asyncio.sleep(0.01)
    await dispatcher.close()
    assert task.cancelled()


@pytest.mark.asyncio
async def test_drain_waits_only_for_tasks_already_submitted(session_factory):
    class ChainingOracle(FakeOracle):
        """Each assessment submits another bounty; the follow-ups never finish."""

        dispatcher = None

        async def complete(self, prompt):
            if not self.prompts:
                self.dispatcher.submit(_bounty(2))
                return await super().complete(prompt)
            self.prompts.append(prompt)
            await asyncio.sleep(60)

    oracle = ChainingOracle()
    service = _service(session_factory, oracle=oracle)
    dispatcher = TriageDispatcher(service, concurrency=1)
    oracle.dispatcher = dispatcher

    dispatcher.submit(_bounty(1))
    await asyncio.wait_for(dispatcher.drain(), timeout=5)

    assert await service.queue.size() == 1
    assert dispatcher.pending == 1
    await dispatcher.close()
    assert dispatcher.pending == 0
