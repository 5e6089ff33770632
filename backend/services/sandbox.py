"""Isolated query execution against a throwaway copy of a sample database.

Each call opens its own in-memory DuckDB instance, loads the schema and the
seed data, runs a single query and closes the instance again. Nothing a query
does can leak into another execution.

The instance has no access to files or the network, and its configuration is
locked so a query cannot turn that back on. Memory, threads, wall-clock time
and the number of fetched rows are capped by the ``SANDBOX_*`` settings.
"""

import threading
from dataclasses import dataclass, field
from typing import Any

import duckdb

from backend.core import config

SANDBOX_ERRORS = (duckdb.Error, duckdb.InterruptException)


@dataclass
class QueryResult:
    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def labels(self) -> list[str]:
        return unique_labels(self.columns)

    def as_records(self, limit: int | None = None) -> list[dict[str, Any]]:
        rows = self.rows if limit is None else self.rows[:limit]
        labels = self.labels
        return [
            {label: to_jsonable(value) for label, value in zip(labels, row)}
            for row in rows
        ]


def unique_labels(columns: list[str]) -> list[str]:
    """Suffix repeated column names (``id``, ``id_2``) so records keep every value."""
    labels: list[str] = []
    used: set[str] = set()
    for column in columns:
        label = column
        suffix = 1
        while label in used:
            suffix += 1
            label = f'{column}_{suffix}'
        used.add(label)
        labels.append(label)
    return labels


def to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class QueryDeadline:
    """Interrupts ``connection`` once ``seconds`` have passed."""

    def __init__(self, connection: duckdb.DuckDBPyConnection, seconds: float):
        self.connection = connection
        self.seconds = seconds
        self.expired = False
        self._timer = threading.Timer(seconds, self._interrupt)
        self._timer.daemon = True

    def _interrupt(self) -> None:
        self.expired = True
        self.connection.interrupt()

    @property
    def message(self) -> str:
        return f'Query exceeded the time limit of {self.seconds:g} seconds.'

    def __enter__(self) -> 'QueryDeadline':
        self._timer.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._timer.cancel()


def connect_sandbox() -> duckdb.DuckDBPyConnection:
    return duckdb.connect(
        database=':memory:',
        config={
            'enable_external_access': False,
            'memory_limit': config.SANDBOX_MEMORY_LIMIT,
            'threads': config.SANDBOX_THREADS,
            'lock_configuration': True,
        },
    )


def _run_script(connection: duckdb.DuckDBPyConnection, sql: str | None) -> None:
    if sql and sql.strip():
        connection.execute(sql)


def execute_in_sandbox(schema_sql: str, seed_data: str | None, query: str) -> QueryResult:
    connection = connect_sandbox()
    try:
        with QueryDeadline(connection, config.SANDBOX_TIMEOUT_SECONDS) as deadline:
            try:
                _run_script(connection, schema_sql)
                _run_script(connection, seed_data)
            except SANDBOX_ERRORS as exc:
                reason = deadline.message if deadline.expired else exc
                return QueryResult(error=f'setup failed: {reason}')

            if not query or not query.strip():
                return QueryResult(error='Query is empty.')

            row_limit = config.SANDBOX_RESULT_ROW_LIMIT
            try:
                connection.execute(query)
                if connection.description is None:
                    return QueryResult()
                columns = [column[0] for column in connection.description]
                rows = connection.fetchmany(row_limit + 1)
            except SANDBOX_ERRORS as exc:
                return QueryResult(error=deadline.message if deadline.expired else str(exc))

        if len(rows) > row_limit:
            return QueryResult(error=f'Query returned more than {row_limit} rows.')
        return QueryResult(columns=columns, rows=[tuple(row) for row in rows])
    finally:
        connection.close()


def validate_database(schema_sql: str, seed_data: str | None) -> str | None:
    """Load a schema and seed into a sandbox and return the error, if any."""
    connection = connect_sandbox()
    try:
        with QueryDeadline(connection, config.SANDBOX_TIMEOUT_SECONDS) as deadline:
            _run_script(connection, schema_sql)
            _run_script(connection, seed_data)
    except SANDBOX_ERRORS as exc:
        return deadline.message if deadline.expired else str(exc)
    finally:
        connection.close()
    return None
