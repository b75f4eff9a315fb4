from sqlalchemy.exc import DBAPIError

from tekken_stats.constants import CONFLICT_SQLSTATES


class IngestionError(Exception):
    pass


class MalformedBatchError(IngestionError):
    """The delivered message could not be parsed into match records."""


class FlushRetriesExhausted(IngestionError):
    def __init__(self, table, attempts, last_error):
        super().__init__(
            f"Failed to flush {table} after {attempts} attempts due to conflicts: {last_error}"
        )
        self.table = table
        self.attempts = attempts
        self.last_error = last_error


def sqlstate_of(exc):
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_conflict_error(exc):
    """True for deadlocks and serialization failures reported by Postgres."""
    return isinstance(exc, DBAPIError) and sqlstate_of(exc) in CONFLICT_SQLSTATES
