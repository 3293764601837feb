from datetime import date, datetime, timedelta

from chronos.core.models import StreakState
from chronos.streaks import MILESTONES, StreakTracker


def _at(day: int, hour: int = 9) -> datetime:
    return datetime(2026, 3, 1, hour) + timedelta(days=day - 1)


def test_first_completion_starts_streak():
    t = StreakTracker()
    assert t.record_completion(_at(1)) == 1
    assert t.state == StreakState(current=1, longest=1, last_completion=date(2026, 3, 1))


def test_same_day_completion_does_not_increment():
    t = StreakTracker()
    t.record_completion(_at(1, hour=8))
    t.record_completion(_at(1, hour=22))
    assert t.state.current == 1


def test_consecutive_days_increment():
    t = StreakTracker()
    for day in (1, 2, 3):
        t.record_completion(_at(day))
    assert t.state.current == 3
    assert t.state.longest == 3


def test_gap_resets_to_one():
    t = StreakTracker()
    t.record_completion(_at(1))
    t.record_completion(_at(3))
    assert t.state.current == 1
    assert t.state.longest == 1
    assert t.state.last_completion == date(2026, 3, 3)


def test_backdated_completion_resets():
    t = StreakTracker(StreakState(current=4, longest=6, last_completion=date(2026, 3, 10)))
    t.record_completion(_at(5))
    assert t.state.current == 1
    assert t.state.longest == 6
    assert t.state.last_completion == date(2026, 3, 5)


def test_midnight_boundary_counts_as_next_day():
    t = StreakTracker()
    t.record_completion(datetime(2026, 3, 1, 23, 59))
    t.record_completion(datetime(2026, 3, 2, 0, 1))
    assert t.state.current == 2


def test_recompute_empty_keeps_longest():
    t = StreakTracker(StreakState(current=5, longest=9, last_completion=date(2026, 3, 5)))
    assert t.recompute([]) == 0
    assert t.state == StreakState(current=0, longest=9, last_completion=None)


def test_recompute_counts_run_from_most_recent_day():
    t = StreakTracker()
    times = [_at(1), _at(3), _at(4), _at(4, hour=20), _at(5)]
    assert t.recompute(times) == 3
    assert t.state.last_completion == date(2026, 3, 5)
    assert t.state.longest == 3


def test_recompute_stops_at_first_gap():
    t = StreakTracker()
    assert t.recompute([_at(1), _at(2), _at(3), _at(5)]) == 1


def test_recompute_does_not_require_today():
    # a run ending last week is still the current run until a new completion
    t = StreakTracker()
    assert t.recompute([_at(1), _at(2)]) == 2


def test_recompute_agrees_with_incremental():
    days = [1, 2, 2, 3, 5, 6, 7, 8]
    incremental = StreakTracker()
    for d in days:
        incremental.record_completion(_at(d))
    fresh = StreakTracker()
    fresh.recompute([_at(d) for d in days])
    assert fresh.state.current == incremental.state.current == 4
    assert fresh.state.last_completion == incremental.state.last_completion


def test_longest_never_decreases():
    t = StreakTracker()
    seen = 0
    for step in ([1, 2, 3, 4], [1], [], [6, 7], [1, 2, 3, 4, 5]):
        t.recompute([_at(d) for d in step])
        assert t.state.longest >= seen
        seen = t.state.longest
    assert seen == 5


def test_milestone_table():
    assert MILESTONES == {3: 50, 7: 150, 14: 400, 30: 1000}
