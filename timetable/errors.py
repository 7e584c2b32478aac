"""Failures raised by the timetable loader and the query engine."""


class TimetableError(Exception):
    """Base class for timetable failures."""


class LoadError(TimetableError):
    """A source table could not be read or is structurally malformed."""

    def __init__(self, table: str, reason: str) -> None:
        self.table = table
        self.reason = reason
        super().__init__(f"Error loading {table}: {reason}")


class NotFoundError(TimetableError):
    """No timetable data satisfies the query."""


class AmbiguousStationError(TimetableError):
    """A station name matches more than one stop under the unique-match policy."""

    def __init__(self, name: str, stop_ids: list[str]) -> None:
        self.name = name
        self.stop_ids = stop_ids
        super().__init__(
            f"Station name '{name}' matches {len(stop_ids)} stops: {', '.join(stop_ids)}"
        )
