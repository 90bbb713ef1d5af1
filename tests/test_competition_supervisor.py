# tests/test_competition_supervisor.py

from __future__ import annotations

import asyncio

import pytest

from scout_sync.core.events import COMPETITION_CHANGED_EVENT
from scout_sync.core.ports import ConfigSnapshot
from scout_sync.supervisor.competition import CompetitionSupervisor, ConfigOrigin

from .fakes import ScriptedConfigReader


@pytest.mark.asyncio
async def test_initial_read_is_broadcast_once(channel, clock, record) -> None:
    changes = record(COMPETITION_CHANGED_EVENT)
    reader = ScriptedConfigReader(ConfigSnapshot("2025cafr", ("2025cafr", "2025casj")))
    sup = CompetitionSupervisor(channel, reader, clock=clock)

    assert sup.subscribe().active_selection is None
    await sup.drain()

    state = sup.state()
    assert state.active_selection == "2025cafr"
    assert state.available_selections == frozenset({"2025cafr", "2025casj"})
    assert state.origin is ConfigOrigin.INITIAL
    assert state.last_updated == 1000.0
    assert len(changes) == 1

    sup.unsubscribe()
    await sup.aclose()


@pytest.mark.asyncio
async def test_same_selection_only_updates_bookkeeping(channel, clock, record) -> None:
    changes = record(COMPETITION_CHANGED_EVENT)
    reader = ScriptedConfigReader(ConfigSnapshot("2025cafr", ("2025cafr", "2025casj")))
    sup = CompetitionSupervisor(channel, reader, clock=clock)
    await sup.check_now("initial")

    # Same set in a different order is not a change.
    reader.result = ConfigSnapshot("2025cafr", ("2025casj", "2025cafr"))
    clock.advance(30)
    state = await sup.refresh()

    assert len(changes) == 1
    assert state.origin is ConfigOrigin.POLLED
    assert state.last_updated == 1030.0


@pytest.mark.asyncio
async def test_new_active_competition_is_broadcast(channel, record) -> None:
    changes = record(COMPETITION_CHANGED_EVENT)
    reader = ScriptedConfigReader(ConfigSnapshot("2025cafr", ("2025cafr", "2025casj")))
    sup = CompetitionSupervisor(channel, reader)
    await sup.refresh()

    reader.result = ConfigSnapshot("2025casj", ("2025cafr", "2025casj"))
    await sup.refresh()

    assert [s.active_selection for s in changes.events] == ["2025cafr", "2025casj"]


@pytest.mark.asyncio
async def test_read_failure_keeps_previous_state(channel, record, caplog) -> None:
    changes = record(COMPETITION_CHANGED_EVENT)
    reader = ScriptedConfigReader()
    sup = CompetitionSupervisor(channel, reader)
    before = await sup.refresh()

    reader.result = ConnectionError("offline")
    after = await sup.refresh()

    assert after == before
    assert len(changes) == 1
    assert "Error fetching competition data" in caplog.text


@pytest.mark.asyncio
async def test_own_timer_yields_to_a_driver(channel) -> None:
    reader = ScriptedConfigReader()
    sup = CompetitionSupervisor(channel, reader, interval_seconds=0.01)

    sup.subscribe()
    await asyncio.sleep(0.05)
    assert reader.calls >= 2

    sup.attach_driver()
    assert sup.driven
    assert not sup.polling
    await sup.drain()
    calls = reader.calls
    await asyncio.sleep(0.05)
    assert reader.calls == calls

    sup.detach_driver()
    assert sup.polling

    sup.unsubscribe()
    await sup.aclose()
