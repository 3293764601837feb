import dataclasses
from datetime import date, datetime
from enum import StrEnum

from .errors import StateError


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Rarity(StrEnum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class AchievementKind(StrEnum):
    FIRST_TASK_COMPLETED = "first_task_completed"
    TASK_COUNT_AT_LEAST = "task_count_at_least"
    STREAK_COUNT_AT_LEAST = "streak_count_at_least"
    LEVEL_AT_LEAST = "level_at_least"
    TOTAL_POINTS_AT_LEAST = "total_points_at_least"


@dataclasses.dataclass(frozen=True)
class Task:
    id: str
    title: str
    due: datetime
    description: str = ""
    priority: Priority = Priority.MEDIUM
    is_completed: bool = False
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.completed_at is not None) != self.is_completed:
            raise StateError(
                f"task {self.id[:8]}: completed_at must be set iff is_completed "
                f"(is_completed={self.is_completed}, completed_at={self.completed_at})"
            )


@dataclasses.dataclass
class StreakState:
    current: int = 0
    longest: int = 0
    last_completion: date | None = None


@dataclasses.dataclass
class PointsState:
    current: int = 0
    total_earned: int = 0
    level: int = 0


@dataclasses.dataclass(frozen=True)
class Achievement:
    """One-time unlockable. `kind` stays a plain string so catalogs written by
    newer versions still load; unknown kinds simply never unlock."""

    id: str
    title: str
    description: str
    icon: str
    kind: str
    threshold: int = 0
    points_required: int = 0
    bonus: int = 0
    rarity: Rarity = Rarity.COMMON
    is_unlocked: bool = False
    unlocked_at: datetime | None = None


@dataclasses.dataclass(frozen=True)
class Progress:
    completed_count: int
    current_streak: int
    level: int
    total_earned: int


@dataclasses.dataclass(frozen=True)
class ProcessedTaskDraft:
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due: datetime | None = None
    confidence: float = 0.0
