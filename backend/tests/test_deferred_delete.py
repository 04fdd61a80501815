import asyncio
import logging
import threading
import time
from datetime import timedelta

from conftest import FakeClock, RecordingStore
from sessionguard.services.deferred_delete import DeferredDeleter


def _store():
    return RecordingStore("login_sessions", FakeClock())


def _run_to_completion(store, session_id, delay):
    async def scenario():
        deleter = DeferredDeleter()
        await deleter.schedule_delete(store, session_id, delay)
        return deleter.pending

    return asyncio.run(scenario())


def test_deletes_after_delay():
    store = _store()
    session = store.create("u1", timedelta(minutes=5))

    pending = _run_to_completion(store, session.id, 0.05)

    assert store.find(session.id) is None
    assert store.ops("delete") == [session.id]
    assert pending == 0


def test_schedule_does_not_block_or_delete_early():
    store = _store()
    session = store.create("u1", timedelta(minutes=5))

    async def scenario():
        deleter = DeferredDeleter()
        started = time.monotonic()
        task = deleter.schedule_delete(store, session.id, 30)
        elapsed = time.monotonic() - started
        await asyncio.sleep(0.05)
        still_present = store.find(session.id) is not None
        pending = deleter.pending
        task.cancel()
        return elapsed, still_present, pending

    elapsed, still_present, pending = asyncio.run(scenario())

    assert elapsed < 1
    assert still_present
    assert pending == 1
    assert store.ops("delete") == []


def test_pending_deletions_do_not_hold_threads():
    stores = [_store() for _ in range(50)]
    sessions = [store.create("u1", timedelta(minutes=5)) for store in stores]

    async def scenario():
        deleter = DeferredDeleter()
        before = threading.active_count()
        tasks = [deleter.schedule_delete(store, s.id, 30) for store, s in zip(stores, sessions)]
        await asyncio.sleep(0.05)
        during = threading.active_count()
        pending = deleter.pending
        for task in tasks:
            task.cancel()
        return before, during, pending

    before, during, pending = asyncio.run(scenario())

    assert pending == 50
    assert during <= before


def test_deleting_already_deleted_session_is_a_no_op(caplog):
    store = _store()
    session = store.create("u1", timedelta(minutes=5))
    store.delete(session.id)

    with caplog.at_level(logging.DEBUG, logger="sessionguard.services.deferred_delete"):
        _run_to_completion(store, session.id, 0)

    assert store.ops("delete") == [session.id, session.id]
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert any("found no login_sessions" in r.getMessage() for r in caplog.records)


def test_store_error_is_logged_and_dropped(caplog):
    store = _store()
    session = store.create("u1", timedelta(minutes=5))
    store.failing.add("delete")

    with caplog.at_level(logging.WARNING, logger="sessionguard.services.deferred_delete"):
        _run_to_completion(store, session.id, 0)

    assert store.find(session.id) is not None
    assert store.ops("delete") == [session.id]
    assert any("Deferred deletion" in r.getMessage() for r in caplog.records)


def test_unexpected_error_is_logged_and_dropped(caplog, monkeypatch):
    store = _store()
    session = store.create("u1", timedelta(minutes=5))

    def broken_delete(session_id):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(store, "delete", broken_delete)

    with caplog.at_level(logging.ERROR, logger="sessionguard.services.deferred_delete"):
        _run_to_completion(store, session.id, 0)

    assert store.find(session.id) is not None
    assert any("Unexpected error" in r.getMessage() for r in caplog.records)


def test_deletion_is_attempted_once():
    store = _store()
    session = store.create("u1", timedelta(minutes=5))
    store.failing.add("delete")

    async def scenario():
        await DeferredDeleter().schedule_delete(store, session.id, 0)
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    assert store.ops("delete") == [session.id]
