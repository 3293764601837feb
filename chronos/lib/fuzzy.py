from collections.abc import Sequence
from difflib import get_close_matches

from chronos.core.errors import AmbiguousError, NotFoundError
from chronos.core.models import Task

__all__ = ["find_in_pool", "resolve_task"]

FUZZY_MATCH_CUTOFF = 0.8


def _match_id_prefix(ref: str, pool: Sequence[Task]) -> Task | None:
    ref_lower = ref.lower()
    matches = [t for t in pool if t.id.startswith(ref_lower)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        exact = next((t for t in matches if t.id == ref_lower), None)
        if exact:
            return exact
        raise AmbiguousError(ref, count=len(matches), sample=[t.id[:8] for t in matches[:3]])
    return None


def _match_substring(ref: str, pool: Sequence[Task]) -> Task | None:
    ref_lower = ref.lower()
    exact = next((t for t in pool if t.title.lower() == ref_lower), None)
    if exact:
        return exact
    matches = [t for t in pool if ref_lower in t.title.lower()]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise AmbiguousError(ref, count=len(matches), sample=[t.title for t in matches[:3]])
    return None


def _match_fuzzy(ref: str, pool: Sequence[Task]) -> Task | None:
    titles = [t.title.lower() for t in pool]
    matches = get_close_matches(ref.lower(), titles, n=1, cutoff=FUZZY_MATCH_CUTOFF)
    if matches:
        return next(t for t in pool if t.title.lower() == matches[0])
    return None


def find_in_pool(ref: str, pool: Sequence[Task]) -> Task | None:
    """Id prefix, then exact/substring title, then fuzzy title."""
    if not pool or not ref.strip():
        return None
    ref = ref.strip()
    return _match_id_prefix(ref, pool) or _match_substring(ref, pool) or _match_fuzzy(ref, pool)


def resolve_task(ref: str, pool: Sequence[Task]) -> Task:
    task = find_in_pool(ref, pool)
    if task is None:
        raise NotFoundError(f"no task matching '{ref}'")
    return task
