import dataclasses
import logging
from collections.abc import Callable, Iterable

from .core.models import Achievement, AchievementKind, Progress, Rarity
from .lib import clock
from .points import PointsLedger, PointSource
from .streaks import MILESTONES

__all__ = ["CATALOG_VERSION", "AchievementEngine", "default_catalog"]

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1

K = AchievementKind


def _streak(days: int, icon: str, rarity: Rarity) -> Achievement:
    # bonus comes from MILESTONES, not the achievement record
    return Achievement(
        id=f"streak-{days}",
        title=f"{days}-Day Streak",
        description=f"Complete tasks {days} days in a row",
        icon=icon,
        kind=K.STREAK_COUNT_AT_LEAST,
        threshold=days,
        rarity=rarity,
    )


def _points(achievement_id: str, title: str, points: int, icon: str, rarity: Rarity) -> Achievement:
    return Achievement(
        id=achievement_id,
        title=title,
        description=f"Earn {points} points",
        icon=icon,
        kind=K.TOTAL_POINTS_AT_LEAST,
        threshold=points,
        points_required=points,
        rarity=rarity,
    )


def default_catalog() -> list[Achievement]:
    """Canonical catalog. Ids are stable and persisted; never reuse one."""
    return [
        Achievement(
            id="getting-started",
            title="Getting Started",
            description="Complete your first task",
            icon="star.fill",
            kind=K.FIRST_TASK_COMPLETED,
            points_required=10,
            bonus=10,
        ),
        Achievement(
            id="task-master",
            title="Task Master",
            description="Complete 10 tasks",
            icon="star.circle.fill",
            kind=K.TASK_COUNT_AT_LEAST,
            threshold=10,
            points_required=100,
            bonus=90,
            rarity=Rarity.UNCOMMON,
        ),
        Achievement(
            id="fifty-tasks",
            title="50 Tasks Completed",
            description="Complete 50 tasks total",
            icon="checkmark.seal.fill",
            kind=K.TASK_COUNT_AT_LEAST,
            threshold=50,
            bonus=200,
            rarity=Rarity.RARE,
        ),
        _streak(3, "flame.fill", Rarity.COMMON),
        _streak(7, "flame.circle.fill", Rarity.UNCOMMON),
        _streak(14, "flame.fill", Rarity.RARE),
        _streak(30, "flame.circle.fill", Rarity.EPIC),
        Achievement(
            id="level-10",
            title="Level 10",
            description="Reach level 10",
            icon="crown.fill",
            kind=K.LEVEL_AT_LEAST,
            threshold=10,
            bonus=50,
            rarity=Rarity.EPIC,
        ),
        _points("productivity-pro", "Productivity Pro", 1000, "medal.star", Rarity.RARE),
        _points("productivity-king", "Productivity King", 10000, "crown.fill", Rarity.EPIC),
        _points(
            "productivity-legend", "Productivity Legend", 100000, "trophy.fill", Rarity.LEGENDARY
        ),
    ]


_PREDICATES: dict[str, Callable[[Achievement, Progress], bool]] = {
    K.FIRST_TASK_COMPLETED.value: lambda a, p: p.completed_count >= 1,
    K.TASK_COUNT_AT_LEAST.value: lambda a, p: p.completed_count >= a.threshold,
    K.STREAK_COUNT_AT_LEAST.value: lambda a, p: p.current_streak >= a.threshold,
    K.LEVEL_AT_LEAST.value: lambda a, p: p.level >= a.threshold,
    K.TOTAL_POINTS_AT_LEAST.value: lambda a, p: p.total_earned >= a.threshold,
}


def _is_milestone(a: Achievement) -> bool:
    return a.kind == K.STREAK_COUNT_AT_LEAST and a.threshold in MILESTONES


class AchievementEngine:
    def __init__(self, ledger: PointsLedger, catalog: Iterable[Achievement] | None = None):
        self.ledger = ledger
        self._achievements = list(catalog if catalog is not None else default_catalog())
        self._retired: set[str] = set()

    @property
    def achievements(self) -> list[Achievement]:
        return list(self._achievements)

    def get(self, achievement_id: str) -> Achievement | None:
        return next((a for a in self._achievements if a.id == achievement_id), None)

    def evaluate(self, progress: Progress) -> list[str]:
        """Unlock every locked achievement whose predicate holds. Returns the new ids."""
        unlocked = []
        for i, a in enumerate(self._achievements):
            if a.is_unlocked or a.id in self._retired or _is_milestone(a):
                continue
            predicate = _PREDICATES.get(str(a.kind))
            if predicate is None or not predicate(a, progress):
                continue
            self._unlock(i)
            self.ledger.award(a.bonus, PointSource.ACHIEVEMENT)
            unlocked.append(a.id)
        return unlocked

    def reach_milestone(self, streak: int) -> str | None:
        """Award the bonus for a streak that exactly hits a milestone, once."""
        bonus = MILESTONES.get(streak)
        if bonus is None:
            return None
        for i, a in enumerate(self._achievements):
            if a.id in self._retired:
                continue
            if a.kind == K.STREAK_COUNT_AT_LEAST and a.threshold == streak:
                if a.is_unlocked:
                    return None
                self.ledger.award(bonus, PointSource.MILESTONE)
                self._unlock(i)
                return a.id
        return None

    def restore(self, records: Iterable[Achievement]) -> None:
        """Merge persisted unlock state by id.

        Records the catalog no longer knows are kept as-is for the next save but
        never unlock, whatever their kind.
        """
        index = {a.id: i for i, a in enumerate(self._achievements)}
        for rec in records:
            i = index.get(rec.id)
            if i is None:
                self._achievements.append(rec)
                self._retired.add(rec.id)
                index[rec.id] = len(self._achievements) - 1
                continue
            if rec.is_unlocked and not self._achievements[i].is_unlocked:
                self._achievements[i] = dataclasses.replace(
                    self._achievements[i], is_unlocked=True, unlocked_at=rec.unlocked_at
                )

    def _unlock(self, i: int) -> None:
        a = self._achievements[i]
        self._achievements[i] = dataclasses.replace(a, is_unlocked=True, unlocked_at=clock.now())
        logger.info("achievement unlocked: %s", a.title)
