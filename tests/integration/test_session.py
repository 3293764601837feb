import json

import pytest

from chronos import config
from chronos.core.errors import PersistenceError, StateError
from chronos.session import open_session, reset, session
from chronos.store import AGGREGATE_KEY, MemoryStore, SqliteStore
from chronos.tasks import new_task


def test_empty_store_starts_fresh(make_session, clock):
    store = make_session()
    assert store.tasks == []
    assert store.ledger.state.current == 0
    assert store.tracker.state.last_completion is None
    assert not any(a.is_unlocked for a in store.engine.achievements)


def test_state_survives_reopen(make_session, memory_store, clock):
    first = make_session()
    for day in (1, 2, 3):
        clock.on_day(day)
        first.toggle_completion(first.add_task(new_task(f"day {day}")))
    first.add_task(new_task("still open"))
    first.saver.close()

    second = make_session()
    assert [t.title for t in second.tasks] == [t.title for t in first.tasks]
    assert second.ledger.state == first.ledger.state
    assert second.tracker.state == first.tracker.state
    assert second.engine.get("streak-3").is_unlocked
    assert second.engine.get("streak-3").unlocked_at == first.engine.get("streak-3").unlocked_at
    assert second.completed_count == 3


def test_reopened_session_continues_streak(make_session, clock):
    first = make_session()
    clock.on_day(1)
    first.toggle_completion(first.add_task(new_task("a")))
    first.saver.close()

    second = make_session()
    clock.on_day(2)
    second.toggle_completion(second.add_task(new_task("b")))
    assert second.tracker.state.current == 2


def test_blob_is_versioned_json(make_session, memory_store, clock):
    store = make_session()
    store.add_task(new_task("a"))
    store.saver.flush()
    record = json.loads(memory_store.retrieve(AGGREGATE_KEY))
    assert record["version"] == 1
    assert record["catalog_version"] == 1
    assert set(record) == {
        "version", "catalog_version", "tasks", "points", "streak", "achievements"
    }


def test_points_per_level_from_config(tmp_chronos_dir, clock):
    config.Config().set("points_per_level", 20)
    store = open_session(MemoryStore(), catalog=[])
    store.toggle_completion(store.add_task(new_task("a")))
    store.toggle_completion(store.add_task(new_task("b")))
    assert store.ledger.state.level == 1
    store.saver.close()


def test_completion_points_from_config(tmp_chronos_dir, clock):
    config.Config().set("completion_points", 25)
    store = open_session(MemoryStore(), catalog=[])
    task_id = store.add_task(new_task("a"))
    store.toggle_completion(task_id)
    assert store.ledger.state.current == 25
    store.toggle_completion(task_id)
    assert store.ledger.state.current == 0
    store.saver.close()


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        "[1, 2]",
        '{"tasks": [{"title": "no id"}]}',
        '{"tasks": [{"id": "x", "title": "t", "due": 1e20}]}',
        '{"points": {"current": Infinity}}',
    ],
)
def test_corrupt_blob_raises(tmp_chronos_dir, blob):
    memory = MemoryStore()
    memory.store(AGGREGATE_KEY, blob)
    with pytest.raises(PersistenceError):
        open_session(memory)


def test_sqlite_backed_session(tmp_chronos_dir, clock):
    with session() as store:
        store.toggle_completion(store.add_task(new_task("persist me")))
    with session(SqliteStore()) as store:
        assert store.tasks[0].title == "persist me"
        assert store.tasks[0].is_completed
        assert store.ledger.state.current == 20


def test_reset_clears_store(tmp_chronos_dir, clock):
    with session() as store:
        store.add_task(new_task("gone soon"))
    reset()
    with session() as store:
        assert store.tasks == []


def test_closed_session_rejects_mutations(tmp_chronos_dir, clock):
    memory = MemoryStore()
    with session(memory) as store:
        task_id = store.add_task(new_task("last one"))
    with pytest.raises(StateError):
        store.toggle_completion(task_id)
    with pytest.raises(StateError):
        store.add_task(new_task("too late"))
    with pytest.raises(StateError):
        store.delete_task(task_id)
    assert [t.title for t in store.tasks] == ["last one"]
    assert not store.tasks[0].is_completed
    assert store.ledger.state.current == 0
