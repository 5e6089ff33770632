import logging
import time
from threading import Lock
from typing import Callable, TypeVar

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config

logger = logging.getLogger(__name__)

T = TypeVar('T')

engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

TRANSIENT_ERROR_MARKERS = (
    'connection refused',
    'could not connect',
    'server closed the connection',
    'connection reset',
    'timeout expired',
    'too many connections',
    'database is locked',
    'terminating connection',
)

_schema_lock = Lock()
_submission_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_transient_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def run_with_retry(
    operation: Callable[[], T],
    attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying with exponential backoff on transient errors.

    Only errors whose message matches ``TRANSIENT_ERROR_MARKERS`` are retried;
    everything else propagates on the first failure.
    """
    max_attempts = attempts or config.DB_RETRY_ATTEMPTS
    delay = config.DB_RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if attempt >= max_attempts or not is_transient_error(exc):
                raise
            wait_seconds = delay * (2 ** (attempt - 1))
            logger.warning(
                'Transient database error on attempt %d/%d, retrying in %.2fs: %s',
                attempt,
                max_attempts,
                wait_seconds,
                exc,
            )
            sleep(wait_seconds)

    raise RuntimeError('run_with_retry exhausted without result')


def ensure_submission_schema() -> None:
    global _submission_schema_checked

    if _submission_schema_checked:
        return

    with _schema_lock:
        if _submission_schema_checked:
            return

        inspector = inspect(engine)

        if 'submissions' not in inspector.get_table_names():
            _submission_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('submissions')}
        migration_steps = [
            ('hints', 'ALTER TABLE submissions ADD COLUMN hints JSON'),
            ('suggestions', 'ALTER TABLE submissions ADD COLUMN suggestions JSON'),
            ('explanation', 'ALTER TABLE submissions ADD COLUMN explanation TEXT'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_submissions_student_created ON submissions(student_id, created_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_submissions_exercise_created ON submissions(exercise_id, created_at)')
            )

        _submission_schema_checked = True


def check_connection() -> None:
    with engine.connect() as connection:
        connection.execute(text('SELECT 1'))
