from collections.abc import Iterable
from datetime import date, timedelta

from chronos.core.models import (
    Achievement,
    PointsState,
    Priority,
    Progress,
    Rarity,
    StreakState,
    Task,
)

from . import ansi, clock

__all__ = [
    "format_achievements",
    "format_completion",
    "format_due",
    "format_stats",
    "format_task",
    "format_task_list",
    "day_counts",
    "next_achievement",
]

_PRIORITY_MARK = {
    Priority.HIGH: lambda: ansi.red("!!"),
    Priority.MEDIUM: lambda: ansi.yellow("! "),
    Priority.LOW: lambda: "  ",
}

_RARITY_COLOR = {
    Rarity.COMMON: "gray",
    Rarity.UNCOMMON: "green",
    Rarity.RARE: "blue",
    Rarity.EPIC: "purple",
    Rarity.LEGENDARY: "orange",
}


def format_due(due: date, today: date | None = None) -> str:
    today = today or clock.today()
    days = (due - today).days
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days == -1:
        return "yesterday"
    if days < 0:
        return f"{-days}d overdue"
    if days < 7:
        return f"in {days}d"
    return due.isoformat()


def format_task(task: Task) -> str:
    check = ansi.green("✓") if task.is_completed else "□"
    mark = _PRIORITY_MARK[task.priority]()
    due = format_due(task.due.date())
    due_str = ansi.red(due) if "overdue" in due and not task.is_completed else ansi.muted(due)
    title = ansi.dim(task.title) if task.is_completed else task.title
    return f"  {check} {mark} {title}  {due_str} {ansi.muted(f'[{task.id[:8]}]')}"


def format_task_list(tasks: list[Task]) -> str:
    if not tasks:
        return "no tasks"
    ordered = sorted(tasks, key=lambda t: (t.is_completed, t.due))
    return "\n".join(format_task(t) for t in ordered)


def format_completion(
    task: Task,
    before: Progress,
    after: Progress,
    points: PointsState,
    unlocked: list[Achievement],
) -> str:
    if not task.is_completed:
        return f"  □ {task.title}  {ansi.muted(f'{points.current} pts')}"
    lines = [f"  {ansi.green('✓')} {task.title}  {ansi.muted(f'{points.current} pts')}"]
    if after.current_streak > before.current_streak:
        lines.append(f"  {ansi.orange('▲')} streak {after.current_streak}d")
    if after.level > before.level:
        lines.append(f"  {ansi.gold('★')} level {after.level}")
    lines.extend(f"  {ansi.gold('★')} {a.title}" for a in unlocked)
    return "\n".join(lines)


def day_counts(tasks: Iterable[Task], day: date) -> tuple[int, int]:
    """Completed and total tasks due on the given day."""
    due = [t for t in tasks if t.due.date() == day]
    return sum(t.is_completed for t in due), len(due)


def next_achievement(
    achievements: Iterable[Achievement], points: PointsState
) -> tuple[Achievement, int] | None:
    """Cheapest locked achievement with a points target, and the points still needed."""
    locked = [a for a in achievements if not a.is_unlocked and a.points_required > 0]
    if not locked:
        return None
    target = min(locked, key=lambda a: a.points_required)
    return target, max(0, target.points_required - points.total_earned)


def format_stats(
    points: PointsState,
    streak: StreakState,
    completed: int,
    points_per_level: int,
    tasks: Iterable[Task] = (),
    achievements: Iterable[Achievement] = (),
    today: date | None = None,
) -> str:
    today = today or clock.today()
    tasks = list(tasks)
    into_level = points.current % points_per_level
    last = streak.last_completion.isoformat() if streak.last_completion else "never"
    done_today, due_today = day_counts(tasks, today)
    week = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        done, total = day_counts(tasks, day)
        week.append(f"{day:%a} {done}/{total}")
    upcoming = next_achievement(achievements, points)
    if upcoming is None:
        next_row = "all unlocked"
    else:
        target, remaining = upcoming
        next_row = f"{target.title}  {ansi.muted(f'{remaining} pts to go')}"
    rows = [
        ("level", f"{points.level}  {ansi.muted(f'{into_level}/{points_per_level}')}"),
        ("points", str(points.current)),
        ("earned", str(points.total_earned)),
        ("streak", f"{streak.current}d"),
        ("longest", f"{streak.longest}d"),
        ("last done", last),
        ("completed", str(completed)),
        ("today", f"{done_today}/{due_today}"),
        ("week", "  ".join(week)),
        ("next", next_row),
    ]
    return "\n".join(f"  {ansi.muted(f'{label:<10}')} {value}" for label, value in rows)


def format_achievements(achievements: list[Achievement]) -> str:
    if not achievements:
        return "no achievements"
    lines = [ansi.bold("ACHIEVEMENTS:")]
    for a in sorted(achievements, key=lambda a: not a.is_unlocked):
        color = _RARITY_COLOR.get(a.rarity, "gray")
        if a.is_unlocked:
            when = a.unlocked_at.strftime("%d/%m/%y") if a.unlocked_at else ""
            lines.append(
                f"  {getattr(ansi, color)('★')} {a.title}  {ansi.muted(a.description)}"
                f"  {ansi.dim(when)}"
            )
        else:
            lines.append(f"  {ansi.muted('·')} {ansi.dim(a.title)}  {ansi.muted(a.description)}")
    return "\n".join(lines)
