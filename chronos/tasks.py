import dataclasses
import json
import logging
import threading
import uuid
from datetime import date, datetime, time

from fncli import UsageError, cli

from .achievements import CATALOG_VERSION, AchievementEngine
from .config import DEFAULT_COMPLETION_POINTS
from .core.errors import StateError
from .core.models import Priority, ProcessedTaskDraft, Progress, Task
from .lib import clock
from .lib.converters import aggregate_to_record
from .points import PointsLedger, PointSource
from .store import SaveWorker
from .streaks import StreakTracker

__all__ = [
    "TaskStore",
    "end_of_day",
    "new_task",
]

logger = logging.getLogger(__name__)


# ── domain ───────────────────────────────────────────────────────────────────


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59))


def new_task(
    title: str,
    description: str = "",
    priority: Priority = Priority.MEDIUM,
    due: datetime | None = None,
) -> Task:
    return Task(
        id=str(uuid.uuid4()),
        title=title,
        description=description,
        priority=priority,
        due=due or end_of_day(clock.today()),
    )


class TaskStore:
    """Single writer for tasks and everything derived from completing them.

    Every public mutator runs under one lock, then hands a serialized snapshot
    to the save worker. Unknown task ids are ignored. Once the save worker is
    closed every mutator raises StateError before touching any state.
    """

    def __init__(
        self,
        tracker: StreakTracker,
        ledger: PointsLedger,
        engine: AchievementEngine,
        saver: SaveWorker | None = None,
        tasks: list[Task] | None = None,
        completion_points: int = DEFAULT_COMPLETION_POINTS,
    ):
        self.tracker = tracker
        self.ledger = ledger
        self.engine = engine
        self.saver = saver
        self.completion_points = completion_points
        self._tasks: list[Task] = list(tasks or [])
        self._lock = threading.RLock()
        self._version = 0

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks)

    @property
    def completed_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if t.is_completed)

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            return next((t for t in self._tasks if t.id == task_id), None)

    def snapshot(self) -> Progress:
        with self._lock:
            return Progress(
                completed_count=self.completed_count,
                current_streak=self.tracker.state.current,
                level=self.ledger.state.level,
                total_earned=self.ledger.state.total_earned,
            )

    def add_task(self, task: Task) -> str:
        with self._lock:
            self._ensure_open()
            self._tasks.append(task)
            self._save()
        return task.id

    def add_draft(self, draft: ProcessedTaskDraft) -> Task:
        task = new_task(draft.title, draft.description, draft.priority, draft.due)
        self.add_task(task)
        logger.debug("task from draft (confidence %.2f): %s", draft.confidence, task.title)
        return task

    def delete_task(self, task_id: str) -> Task | None:
        with self._lock:
            self._ensure_open()
            task = self.get_task(task_id)
            if task is None:
                return None
            self._tasks.remove(task)
            self.tracker.recompute(self._completion_times())
            self._save()
        return task

    def toggle_completion(self, task_id: str) -> Task | None:
        with self._lock:
            self._ensure_open()
            index = next((i for i, t in enumerate(self._tasks) if t.id == task_id), None)
            if index is None:
                return None
            task = self._tasks[index]
            if task.is_completed:
                updated = dataclasses.replace(task, is_completed=False, completed_at=None)
                self._tasks[index] = updated
                self.ledger.deduct(self.completion_points)
                self.tracker.recompute(self._completion_times())
            else:
                now = clock.now()
                updated = dataclasses.replace(task, is_completed=True, completed_at=now)
                self._tasks[index] = updated
                self.ledger.award(self.completion_points, PointSource.TASK)
                streak = self.tracker.record_completion(now)
                self.engine.reach_milestone(streak)
            self.engine.evaluate(self.snapshot())
            self._save()
        return updated

    def to_blob(self) -> str:
        with self._lock:
            record = aggregate_to_record(
                self._tasks,
                self.ledger.state,
                self.tracker.state,
                self.engine.achievements,
                CATALOG_VERSION,
            )
        return json.dumps(record)

    def _completion_times(self) -> list[datetime]:
        return [t.completed_at for t in self._tasks if t.completed_at is not None]

    def _ensure_open(self) -> None:
        if self.saver is not None and self.saver.closed:
            raise StateError("session is closed")

    def _save(self) -> None:
        self._version += 1
        if self.saver is not None:
            self.saver.submit(self._version, self.to_blob())


# ── cli ──────────────────────────────────────────────────────────────────────


def _parse_due(val: str | None) -> datetime | None:
    if not val:
        return None
    if val == "today":
        return end_of_day(clock.today())
    try:
        parsed = datetime.fromisoformat(val)
    except ValueError as e:
        raise UsageError(f"invalid due date '{val}' (use YYYY-MM-DD or 'today')") from e
    return end_of_day(parsed.date()) if len(val) <= 10 else parsed


def _parse_priority(val: str) -> Priority:
    try:
        return Priority(val.lower())
    except ValueError as e:
        raise UsageError(f"invalid priority '{val}' (low, medium, high)") from e


@cli("chronos", name="add", flags={"title": [], "description": ["-d"], "priority": ["-p"]})
def add(
    title: list[str],
    description: str = "",
    priority: str = "medium",
    due: str | None = None,
) -> None:
    """Add a task: `chronos add "file taxes" -p high --due 2026-04-15`"""
    from .session import session

    text = " ".join(title).strip()
    if not text:
        raise UsageError("task title cannot be empty")
    task = new_task(text, description, _parse_priority(priority), _parse_due(due))
    with session() as store:
        store.add_task(task)
    print(f"+ {task.title}  [{task.id[:8]}]")


@cli("chronos", name="done", flags={"ref": []})
def done(ref: list[str]) -> None:
    """Toggle completion of a task by id prefix or title"""
    from .lib.format import format_completion
    from .lib.fuzzy import resolve_task
    from .session import session

    with session() as store:
        task = resolve_task(" ".join(ref), store.tasks)
        before = store.snapshot()
        unlocked_before = {a.id for a in store.engine.achievements if a.is_unlocked}
        updated = store.toggle_completion(task.id)
        newly = [
            a for a in store.engine.achievements if a.is_unlocked and a.id not in unlocked_before
        ]
        if updated is not None:
            print(format_completion(updated, before, store.snapshot(), store.ledger.state, newly))


@cli("chronos", name="rm", flags={"ref": []})
def rm(ref: list[str]) -> None:
    """Delete a task by id prefix or title"""
    from .lib.fuzzy import resolve_task
    from .session import session

    with session() as store:
        task = resolve_task(" ".join(ref), store.tasks)
        store.delete_task(task.id)
    print(f"x {task.title}")


@cli("chronos", name="ls")
def ls(completed: bool = False) -> None:
    """List open tasks (--completed includes finished ones)"""
    from .lib.format import format_task_list
    from .session import session

    with session() as store:
        tasks = store.tasks
    print(format_task_list(tasks if completed else [t for t in tasks if not t.is_completed]))
