class ChronosError(Exception):
    pass


class NotFoundError(ChronosError):
    pass


class StateError(ChronosError):
    pass


class PersistenceError(ChronosError):
    pass


class AmbiguousError(ChronosError):
    def __init__(self, ref: str, count: int = 0, sample: list[str] | None = None):
        self.ref = ref
        self.count = count
        self.sample = sample or []
        count_note = f" ({count})" if count else ""
        note = f": {', '.join(self.sample)}" if self.sample else ""
        super().__init__(f"ambiguous ref '{ref}' matches multiple tasks{count_note}{note}")
