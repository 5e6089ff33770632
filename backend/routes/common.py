from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.database import check_connection, ensure_submission_schema, run_with_retry

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        run_with_retry(check_connection)
        ensure_submission_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
