from fncli import cli

from . import config
from .lib.format import format_achievements, format_stats
from .session import reset as reset_store
from .session import session


@cli("chronos", name="stats")
def stats() -> None:
    """Show points, level, streaks, today and the last seven days"""
    with session() as store:
        print(
            format_stats(
                store.ledger.state,
                store.tracker.state,
                store.completed_count,
                store.ledger.points_per_level,
                tasks=store.tasks,
                achievements=store.engine.achievements,
            )
        )


@cli("chronos", name="achievements")
def achievements() -> None:
    """List achievements and what is still locked"""
    with session() as store:
        print(format_achievements(store.engine.achievements))


@cli("chronos", name="reset")
def reset(yes: bool = False) -> None:
    """Delete all stored tasks, points, streaks and achievements"""
    if not yes:
        print(f"this wipes the {config.get_store_backend()} store; rerun with --yes")
        return
    reset_store()
    print("reset")
