import logging
from enum import StrEnum

from . import config
from .core.models import PointsState

__all__ = ["PointSource", "PointsLedger"]

logger = logging.getLogger(__name__)


class PointSource(StrEnum):
    TASK = "task"
    MILESTONE = "milestone"
    ACHIEVEMENT = "achievement"


class PointsLedger:
    def __init__(self, state: PointsState | None = None, points_per_level: int | None = None):
        self.state = state or PointsState()
        self.points_per_level = points_per_level or config.DEFAULT_POINTS_PER_LEVEL
        self._relevel()

    def award(self, amount: int, source: PointSource) -> int:
        if amount <= 0:
            return self.state.current
        self.state.current += amount
        self.state.total_earned += amount
        self._relevel()
        logger.info("+%d points (%s) -> %d", amount, source, self.state.current)
        return self.state.current

    def deduct(self, amount: int) -> int:
        if amount <= 0:
            return self.state.current
        self.state.current = max(0, self.state.current - amount)
        self._relevel()
        logger.info("-%d points -> %d", amount, self.state.current)
        return self.state.current

    def _relevel(self) -> None:
        self.state.level = self.state.current // self.points_per_level
