import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from backend.services.sandbox import QueryResult, execute_in_sandbox

logger = logging.getLogger(__name__)

SOLUTION_FAILED_MESSAGE = 'The reference solution for this exercise could not be executed.'


@dataclass
class GradingResult:
    is_correct: bool
    student_result: QueryResult
    solution_result: QueryResult

    @property
    def error_message(self) -> str | None:
        if self.student_result.error:
            return self.student_result.error
        if self.solution_result.error:
            return SOLUTION_FAILED_MESSAGE
        return None


def _normalize_value(value: Any) -> tuple[bool, str]:
    # NULL must not compare equal to the string 'None'
    if value is None:
        return (True, '')
    return (False, str(value))


def normalize_row(columns: Iterable[str], row: Iterable[Any]) -> tuple:
    return tuple(sorted(
        (column.lower(), _normalize_value(value))
        for column, value in zip(columns, row)
    ))


def normalize_rows(result: QueryResult) -> Counter:
    return Counter(normalize_row(result.columns, row) for row in result.rows)


def results_match(student: QueryResult, solution: QueryResult) -> bool:
    """Compare two result sets as unordered multisets of rows.

    Row order and column order are ignored; column names (case-insensitive)
    and stringified values are significant.
    """
    if not student.success or not solution.success:
        return False
    if sorted(c.lower() for c in student.columns) != sorted(c.lower() for c in solution.columns):
        return False
    return normalize_rows(student) == normalize_rows(solution)


def grade_query(schema_sql: str, seed_data: str | None, solution_query: str, query: str) -> GradingResult:
    student_result = execute_in_sandbox(schema_sql, seed_data, query)
    solution_result = execute_in_sandbox(schema_sql, seed_data, solution_query)

    if solution_result.error:
        logger.error('Solution query failed to execute: %s', solution_result.error)

    return GradingResult(
        is_correct=results_match(student_result, solution_result),
        student_result=student_result,
        solution_result=solution_result,
    )


def grade_submission(exercise, database, query: str) -> GradingResult:
    return grade_query(database.schema_sql, database.seed_data, exercise.solution_query, query)
