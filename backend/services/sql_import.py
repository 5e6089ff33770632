"""Split an uploaded SQL dump into schema DDL and seed DML for the sandbox."""

import logging
from dataclasses import dataclass, field

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError

logger = logging.getLogger(__name__)

SANDBOX_DIALECT = 'duckdb'
SUPPORTED_DIALECTS = {'postgres', 'mysql', 'sqlite', 'duckdb', 'tsql', 'oracle'}

SCHEMA_EXPRESSIONS = (exp.Create, exp.Alter)
SEED_EXPRESSIONS = (exp.Insert, exp.Update, exp.Delete)


class SqlImportError(ValueError):
    pass


@dataclass
class SplitDump:
    schema_sql: str
    seed_data: str
    skipped: list[str] = field(default_factory=list)


def _join_statements(statements: list[str]) -> str:
    return ''.join(f'{statement};\n' for statement in statements)


def split_sql_dump(content: str, dialect: str = 'postgres') -> SplitDump:
    """Parse ``content`` in ``dialect`` and re-emit it for the sandbox engine.

    Session and control statements (SET, USE, transactions, LOCK TABLES and
    the like) are dropped; everything else that is neither DDL nor DML is
    skipped and reported.
    """
    normalized_dialect = (dialect or 'postgres').strip().lower()
    if normalized_dialect not in SUPPORTED_DIALECTS:
        raise SqlImportError(f'Unsupported SQL dialect: {dialect}')
    if not content or not content.strip():
        raise SqlImportError('SQL content is empty.')

    try:
        expressions = sqlglot.parse(content, read=normalized_dialect)
    except ParseError as exc:
        raise SqlImportError(f'Could not parse SQL content: {exc}') from exc

    schema_statements: list[str] = []
    seed_statements: list[str] = []
    skipped: list[str] = []

    for expression in expressions:
        if expression is None:
            continue
        if isinstance(expression, SCHEMA_EXPRESSIONS):
            schema_statements.append(expression.sql(dialect=SANDBOX_DIALECT, comments=False))
        elif isinstance(expression, SEED_EXPRESSIONS):
            seed_statements.append(expression.sql(dialect=SANDBOX_DIALECT, comments=False))
        else:
            skipped.append(expression.sql(dialect=normalized_dialect, comments=False)[:80])

    if not schema_statements:
        raise SqlImportError('SQL content does not contain any CREATE statements.')

    if skipped:
        logger.info('Skipped %d statements while importing SQL dump', len(skipped))

    return SplitDump(
        schema_sql=_join_statements(schema_statements),
        seed_data=_join_statements(seed_statements),
        skipped=skipped,
    )
