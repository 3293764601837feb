from datetime import date, datetime
from typing import Any, TypeVar

from chronos.core.errors import PersistenceError
from chronos.core.models import (
    Achievement,
    PointsState,
    Priority,
    Rarity,
    StreakState,
    Task,
)

AGGREGATE_VERSION = 1

Record = dict[str, Any]

E = TypeVar("E", Priority, Rarity)


def _parse_date(val) -> date | None:
    """Parse a date value that may be an ISO string or a numeric timestamp."""
    if isinstance(val, str) and val:
        return date.fromisoformat(val.split("T")[0])
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return datetime.fromtimestamp(val).date()
    return None


def _parse_datetime_optional(val) -> datetime | None:
    """Parse an optional datetime value that may be an ISO string or a numeric timestamp."""
    if isinstance(val, str) and val:
        try:
            return datetime.fromisoformat(val)
        except ValueError:
            return datetime.combine(date.fromisoformat(val), datetime.min.time())
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return datetime.fromtimestamp(val)
    return None


def _iso(val: date | datetime | None) -> str | None:
    return val.isoformat() if val is not None else None


def _enum_or(cls: type[E], val: object, default: E) -> E:
    try:
        return cls(str(val))
    except ValueError:
        return default


def task_to_record(task: Task) -> Record:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "due": _iso(task.due),
        "priority": str(task.priority),
        "is_completed": task.is_completed,
        "completed_at": _iso(task.completed_at),
    }


def record_to_task(rec: Record) -> Task:
    completed_at = _parse_datetime_optional(rec.get("completed_at"))
    return Task(
        id=str(rec["id"]),
        title=str(rec.get("title", "")),
        description=str(rec.get("description") or ""),
        due=_parse_datetime_optional(rec.get("due")) or datetime.min,
        priority=_enum_or(Priority, rec.get("priority"), Priority.MEDIUM),
        is_completed=completed_at is not None,
        completed_at=completed_at,
    )


def achievement_to_record(a: Achievement) -> Record:
    return {
        "id": a.id,
        "title": a.title,
        "description": a.description,
        "icon": a.icon,
        "kind": str(a.kind),
        "threshold": a.threshold,
        "points_required": a.points_required,
        "bonus": a.bonus,
        "rarity": str(a.rarity),
        "is_unlocked": a.is_unlocked,
        "unlocked_at": _iso(a.unlocked_at),
    }


def record_to_achievement(rec: Record) -> Achievement:
    return Achievement(
        id=str(rec["id"]),
        title=str(rec.get("title", "")),
        description=str(rec.get("description", "")),
        icon=str(rec.get("icon", "")),
        kind=str(rec.get("kind", "")),
        threshold=int(rec.get("threshold") or 0),
        points_required=int(rec.get("points_required") or 0),
        bonus=int(rec.get("bonus") or 0),
        rarity=_enum_or(Rarity, rec.get("rarity"), Rarity.COMMON),
        is_unlocked=bool(rec.get("is_unlocked")),
        unlocked_at=_parse_datetime_optional(rec.get("unlocked_at")),
    )


def aggregate_to_record(
    tasks: list[Task],
    points: PointsState,
    streak: StreakState,
    achievements: list[Achievement],
    catalog_version: int,
) -> Record:
    return {
        "version": AGGREGATE_VERSION,
        "catalog_version": catalog_version,
        "tasks": [task_to_record(t) for t in tasks],
        "points": {"current": points.current, "total_earned": points.total_earned},
        "streak": {
            "current": streak.current,
            "longest": streak.longest,
            "last_completion": _iso(streak.last_completion),
        },
        "achievements": [achievement_to_record(a) for a in achievements],
    }


def record_to_aggregate(
    rec: Record,
) -> tuple[list[Task], PointsState, StreakState, list[Achievement]]:
    """
    Inverse of aggregate_to_record. Level is not stored; the ledger derives it.
    Raises PersistenceError on a record that cannot be decoded.
    """
    try:
        tasks = [record_to_task(r) for r in rec.get("tasks", [])]
        p = rec.get("points") or {}
        points = PointsState(
            current=max(0, int(p.get("current", 0))),
            total_earned=int(p.get("total_earned", 0)),
        )
        s = rec.get("streak") or {}
        current = int(s.get("current", 0))
        streak = StreakState(
            current=current,
            longest=max(int(s.get("longest", 0)), current),
            last_completion=_parse_date(s.get("last_completion")),
        )
        achievements = [record_to_achievement(r) for r in rec.get("achievements", [])]
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError, OSError) as e:
        raise PersistenceError(f"corrupt aggregate: {e}") from e
    return tasks, points, streak, achievements
