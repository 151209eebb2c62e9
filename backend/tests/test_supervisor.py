"""
Timeout supervisor.
"""

import asyncio

import pytest

from bulky.orchestration import TimeoutSupervisor
from bulky.schemas import EnrichmentOutcome

from conftest import proposal_for


async def _answer(item_id: str, delay: float) -> EnrichmentOutcome:
    await asyncio.sleep(delay)
    return EnrichmentOutcome.ok(item_id, proposal_for(item_id))


def test_deadline_must_be_positive():
    with pytest.raises(ValueError):
        TimeoutSupervisor(0)


@pytest.mark.asyncio
@pytest.mark.parametrize("abort_inflight", [True, False])
async def test_fast_call_passes_through(abort_inflight):
    supervisor = TimeoutSupervisor(1.0, abort_inflight=abort_inflight)
    outcome = await supervisor.run("A", _answer("A", 0))
    assert outcome.success
    assert supervisor.orphaned_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("abort_inflight", [True, False])
async def test_slow_call_becomes_a_timeout(abort_inflight):
    supervisor = TimeoutSupervisor(0.02, abort_inflight=abort_inflight)
    outcome = await supervisor.run("A", _answer("A", 5))

    assert not outcome.success
    assert outcome.error_kind == "timeout"
    assert outcome.item_id == "A"
    assert supervisor.orphaned_calls == (0 if abort_inflight else 1)
    await supervisor.aclose()
    assert supervisor.orphaned_calls == 0
