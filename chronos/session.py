import json
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from . import config
from .achievements import AchievementEngine
from .core.errors import PersistenceError
from .core.models import Achievement, PointsState, StreakState, Task
from .lib.converters import record_to_aggregate
from .points import PointsLedger
from .store import AGGREGATE_KEY, KeyValueStore, SaveWorker, open_store
from .streaks import StreakTracker
from .tasks import TaskStore

__all__ = ["decode_aggregate", "open_session", "reset", "session"]


def decode_aggregate(
    blob: str | None,
) -> tuple[list[Task], PointsState, StreakState, list[Achievement]]:
    if blob is None:
        return [], PointsState(), StreakState(), []
    try:
        record = json.loads(blob)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"stored aggregate is not valid JSON: {e}") from e
    if not isinstance(record, dict):
        raise PersistenceError("stored aggregate is not an object")
    return record_to_aggregate(record)


def open_session(
    store: KeyValueStore | None = None,
    catalog: Iterable[Achievement] | None = None,
) -> TaskStore:
    """Wire ledger, tracker, engine and saver around the persisted aggregate."""
    store = store if store is not None else open_store()
    tasks, points, streak, achievements = decode_aggregate(store.retrieve(AGGREGATE_KEY))

    ledger = PointsLedger(points, points_per_level=config.get_points_per_level())
    tracker = StreakTracker(streak)
    engine = AchievementEngine(ledger, catalog)
    engine.restore(achievements)
    return TaskStore(
        tracker,
        ledger,
        engine,
        saver=SaveWorker(store),
        tasks=tasks,
        completion_points=config.get_completion_points(),
    )


@contextmanager
def session(store: KeyValueStore | None = None) -> Iterator[TaskStore]:
    task_store = open_session(store)
    try:
        yield task_store
    finally:
        if task_store.saver is not None:
            task_store.saver.close()


def reset(store: KeyValueStore | None = None) -> None:
    store = store if store is not None else open_store()
    store.delete(AGGREGATE_KEY)
