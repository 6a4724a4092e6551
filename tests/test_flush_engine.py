# tests/test_flush_engine.py

from __future__ import annotations

import asyncio

import pytest

from mission_control.api.auth import StaticCredentials
from mission_control.api.outcome import ApplicationFailure, Success, TransportFailure
from mission_control.core.errors import StorageFailure
from mission_control.sync.connectivity import ConnectivityMonitor
from mission_control.sync.events import FlushEventKind
from mission_control.sync.flush import FlushEngine, backoff_delay
from mission_control.sync.mutation_models import Mutation, MutationMethod

from .fakes import FakeTransport, RecordingSleep


def _mutation(key: str, *, path: str = "/tasks", enqueued_at: float | None = None, retries: int = 0) -> Mutation:
    return Mutation(
        idempotency_key=key,
        method=MutationMethod.POST,
        path=path,
        body={"title": "x"},
        enqueued_at=enqueued_at,
        retries=retries,
    )


def test_backoff_schedule_doubles_from_base() -> None:
    assert [backoff_delay(r, 1000.0) for r in range(5)] == [0.0, 1000.0, 2000.0, 4000.0, 8000.0]
    assert backoff_delay(-1, 1000.0) == 0.0


@pytest.mark.asyncio
async def test_queued_write_is_flushed_on_reconnect(ledger, transport, engine, recorded, credentials) -> None:
    await ledger.enqueue(_mutation("k1"))
    assert await ledger.count() == 1

    monitor = ConnectivityMonitor(engine, credentials, online=False)
    transport.default = Success(status=201)

    summary = await monitor.set_online(True)

    assert summary is not None
    assert await ledger.count() == 0
    assert [e.mutation.idempotency_key for e in recorded[FlushEventKind.FLUSHED]] == ["k1"]
    assert transport.sent[0].method == "POST"
    assert transport.sent[0].path == "/tasks"
    assert transport.sent[0].body == {"title": "x"}


@pytest.mark.asyncio
async def test_rejected_write_is_retried_each_pass_until_success(ledger, transport, engine, recorded, sleep) -> None:
    await ledger.enqueue(_mutation("k2"))
    transport.script("/tasks", *[ApplicationFailure(status=500)] * 4, Success(status=200))

    for _ in range(4):
        summary = await engine.flush()
        assert len(summary.requeued) == 1

    pending = await ledger.get("k2")
    assert pending is not None
    assert pending.retries == 4

    summary = await engine.flush()

    assert [m.idempotency_key for m in summary.flushed] == ["k2"]
    assert await ledger.count() == 0
    assert [e.mutation.idempotency_key for e in recorded[FlushEventKind.FLUSHED]] == ["k2"]
    # No wait before the first attempt, then 1s, 2s, 4s, 8s.
    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_conflict_removes_mutation_and_notifies(ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k3"))
    transport.default = ApplicationFailure(status=409, data={"error": "version mismatch"})

    summary = await engine.flush()

    assert [m.idempotency_key for m in summary.conflicts] == ["k3"]
    assert await ledger.count() == 0
    conflict = recorded[FlushEventKind.CONFLICT]
    assert len(conflict) == 1
    assert conflict[0].mutation.body == {"title": "x"}
    assert conflict[0].data == {"error": "version mismatch"}

    await engine.flush()
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_conflict_short_circuits_regardless_of_retry_count(ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k4", retries=3))
    transport.default = ApplicationFailure(status=409)

    await engine.flush()

    assert len(transport.sent) == 1
    assert await ledger.get("k4") is None
    assert len(recorded[FlushEventKind.CONFLICT]) == 1


@pytest.mark.asyncio
async def test_always_rejected_write_is_discarded_after_budget(ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k5"))
    transport.default = ApplicationFailure(status=503)

    for _ in range(6):
        await engine.flush()

    assert len(transport.sent) == 5
    assert await ledger.count() == 0
    discarded = recorded[FlushEventKind.DISCARDED]
    assert len(discarded) == 1
    assert discarded[0].mutation.idempotency_key == "k5"
    assert discarded[0].reason == "retry_budget_exhausted"

    await engine.flush()
    assert len(transport.sent) == 5


@pytest.mark.asyncio
async def test_idempotency_key_is_stable_across_attempts(ledger, transport, engine) -> None:
    await ledger.enqueue(_mutation("stable-key"))
    transport.script("/tasks", ApplicationFailure(status=500), ApplicationFailure(status=502), Success(status=201))

    for _ in range(3):
        await engine.flush()

    assert transport.keys == ["stable-key"] * 3
    assert await ledger.count() == 0


@pytest.mark.asyncio
async def test_replay_is_oldest_first_and_stops_when_unreachable(ledger, transport, engine) -> None:
    await ledger.enqueue(_mutation("b", path="/b", enqueued_at=200.0))
    await ledger.enqueue(_mutation("a", path="/a", enqueued_at=100.0))
    await ledger.enqueue(_mutation("c", path="/c", enqueued_at=300.0))

    transport.script("/a", TransportFailure(reason="ConnectError"))
    summary = await engine.flush()

    assert [r.path for r in transport.sent] == ["/a"]
    assert summary.stopped_offline is True
    assert await ledger.count() == 3

    await engine.flush()
    assert [r.path for r in transport.sent] == ["/a", "/a", "/b", "/c"]
    assert await ledger.count() == 0


@pytest.mark.asyncio
async def test_unreachable_does_not_consume_retry_budget(ledger, transport, engine) -> None:
    await ledger.enqueue(_mutation("k6", retries=2))
    transport.default = TransportFailure(reason="timeout")

    await engine.flush()

    pending = await ledger.get("k6")
    assert pending is not None
    assert pending.retries == 2


@pytest.mark.asyncio
async def test_concurrent_flush_is_a_no_op(ledger, events, sleep) -> None:
    release = asyncio.Event()
    transport = FakeTransport(default=Success(status=200))

    async def _block(_req) -> None:
        await release.wait()

    transport.on_send = _block
    engine = FlushEngine(ledger, transport, events=events, sleep=sleep)
    await ledger.enqueue(_mutation("k7"))

    first = asyncio.create_task(engine.flush())
    while not transport.sent:
        await asyncio.sleep(0)

    assert engine.in_progress is True
    second = await engine.flush()
    assert second.skipped is True

    release.set()
    summary = await first

    assert len(summary.flushed) == 1
    assert len(transport.sent) == 1
    assert engine.in_progress is False


@pytest.mark.asyncio
async def test_writes_enqueued_mid_drain_wait_for_next_pass(ledger, transport, engine) -> None:
    await ledger.enqueue(_mutation("first", path="/first"))

    async def _enqueue_another(req) -> None:
        if req.path == "/first":
            await ledger.enqueue(_mutation("late", path="/late"))

    transport.on_send = _enqueue_another

    await engine.flush()
    assert [r.path for r in transport.sent] == ["/first"]
    assert await ledger.count() == 1

    await engine.flush()
    assert [r.path for r in transport.sent] == ["/first", "/late"]


@pytest.mark.asyncio
async def test_fail_fast_status_is_discarded_without_retry(ledger, events, recorded, sleep) -> None:
    transport = FakeTransport()
    transport.script("/bad", ApplicationFailure(status=400))
    transport.script("/flaky", ApplicationFailure(status=500))
    engine = FlushEngine(ledger, transport, events=events, sleep=sleep, fail_fast_statuses={400, 422})

    await ledger.enqueue(_mutation("bad", path="/bad", enqueued_at=1.0))
    await ledger.enqueue(_mutation("flaky", path="/flaky", enqueued_at=2.0))

    summary = await engine.flush()

    assert [m.idempotency_key for m in summary.discarded] == ["bad"]
    assert recorded[FlushEventKind.DISCARDED][0].reason == "application_rejected"
    assert [m.idempotency_key for m in summary.requeued] == ["flaky"]
    assert (await ledger.get("flaky")).retries == 1


@pytest.mark.asyncio
async def test_storage_failure_propagates_and_releases_guard(kv, ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k8"))
    kv.fail_on.add("delete")

    with pytest.raises(StorageFailure):
        await engine.flush()

    assert engine.in_progress is False
    assert len(recorded[FlushEventKind.STORAGE_FAILURE]) == 1

    kv.fail_on.clear()
    summary = await engine.flush()
    assert len(summary.flushed) == 1


@pytest.mark.asyncio
async def test_flush_is_suppressed_offline_and_in_local_only_mode(ledger, transport, engine) -> None:
    await ledger.enqueue(_mutation("k9"))

    offline = ConnectivityMonitor(engine, StaticCredentials(base_url="https://mc.test"), online=False)
    assert await offline.request_flush() is None

    local_only = ConnectivityMonitor(engine, StaticCredentials(base_url=""), online=True)
    assert await local_only.request_flush() is None

    assert transport.sent == []
    assert await ledger.count() == 1


@pytest.mark.asyncio
async def test_retry_is_reported_as_requeued_not_as_a_new_write(ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k10"))
    transport.default = ApplicationFailure(status=500)

    await engine.flush()
    await engine.flush()

    assert len(recorded[FlushEventKind.ENQUEUED]) == 1
    assert [e.mutation.retries for e in recorded[FlushEventKind.REQUEUED]] == [1, 2]


@pytest.mark.asyncio
async def test_corrupt_ledger_record_stops_the_flush(kv, ledger, transport, engine, recorded) -> None:
    await ledger.enqueue(_mutation("k11"))
    kv.rows["broken"] = {"idempotencyKey": "broken", "method": "GET", "path": "/t", "enqueuedAt": 0.0}

    with pytest.raises(StorageFailure):
        await engine.flush()

    assert transport.sent == []
    assert engine.in_progress is False
    assert [e.reason for e in recorded[FlushEventKind.STORAGE_FAILURE]] == ["list"]
    assert await ledger.count() == 2
