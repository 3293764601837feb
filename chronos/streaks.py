import logging
from collections.abc import Iterable
from datetime import datetime

from .core.models import StreakState

__all__ = ["MILESTONES", "StreakTracker"]

logger = logging.getLogger(__name__)

# streak length (days) -> one-time bonus points
MILESTONES: dict[int, int] = {3: 50, 7: 150, 14: 400, 30: 1000}


class StreakTracker:
    """Daily completion streak over local calendar days.

    `record_completion` handles a single new completion incrementally.
    Anything that removes a completion goes through `recompute`, which
    re-derives the streak from the remaining completion times.
    """

    def __init__(self, state: StreakState | None = None):
        self.state = state or StreakState()

    def record_completion(self, at: datetime) -> int:
        s = self.state
        today = at.date()
        if s.last_completion is None:
            s.current = 1
        else:
            gap = (today - s.last_completion).days
            if gap == 1:
                s.current += 1
            elif gap != 0:
                # gap > 1 is a broken streak; gap < 0 is a clock anomaly, reset too
                s.current = 1
        s.longest = max(s.longest, s.current)
        s.last_completion = today
        logger.debug("streak %d (longest %d)", s.current, s.longest)
        return s.current

    def recompute(self, completion_times: Iterable[datetime]) -> int:
        s = self.state
        days = sorted({t.date() for t in completion_times}, reverse=True)
        if not days:
            s.current = 0
            s.last_completion = None
            return 0

        run = 1
        for newer, older in zip(days, days[1:], strict=False):
            if (newer - older).days != 1:
                break
            run += 1

        s.current = run
        s.longest = max(s.longest, run)
        s.last_completion = days[0]
        logger.debug("streak recomputed: %d (longest %d)", s.current, s.longest)
        return run
