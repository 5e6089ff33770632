from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_roles
from backend.core import config
from backend.database import get_db
from backend.models.exercise import Exercise
from backend.models.sample_database import SampleDatabase
from backend.models.user import Role, User
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services.sandbox import execute_in_sandbox

router = APIRouter(tags=['exercises'])

staff_only = require_roles(Role.TEACHER, Role.TUTOR)


def _require_text(value: str, label: str) -> str:
    if not value or not value.strip():
        raise ValueError(f'{label} is required.')
    return value.strip()


class CreateExerciseRequest(BaseModel):
    title: str
    description: str
    initial_query: str | None = None
    solution_query: str
    database_id: int

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _require_text(value, 'Title')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        return _require_text(value, 'Description')

    @field_validator('solution_query')
    @classmethod
    def validate_solution_query(cls, value: str) -> str:
        return _require_text(value, 'Solution query')


class UpdateExerciseRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    initial_query: str | None = None
    solution_query: str | None = None
    database_id: int | None = None

    @field_validator('title', 'description', 'solution_query')
    @classmethod
    def validate_required_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_text(value, 'Value')


class RunQueryRequest(BaseModel):
    query: str


class AuthorSummary(BaseModel):
    id: int
    name: str
    role: Role

    class Config:
        from_attributes = True


class ExerciseResponse(BaseModel):
    id: int
    title: str
    description: str
    initial_query: str | None = None
    solution_query: str | None = None
    database_id: int
    author_id: int | None = None
    author: AuthorSummary | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RunQueryResponse(BaseModel):
    columns: list[str]
    rows: list[dict[str, Any]]
    row_count: int
    truncated: bool
    error: str | None = None


def get_exercise_or_404(exercise_id: int, db: Session) -> Exercise:
    exercise = db.query(Exercise).filter(Exercise.id == exercise_id).first()
    if exercise is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'Exercise with ID {exercise_id} not found.',
        )
    return exercise


def ensure_database_exists(database_id: int, db: Session) -> None:
    if db.query(SampleDatabase.id).filter(SampleDatabase.id == database_id).first() is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Database with ID {database_id} does not exist.',
        )


def present_exercise(exercise: Exercise, user: User) -> ExerciseResponse:
    response = ExerciseResponse.model_validate(exercise)
    if user.role == Role.STUDENT:
        response.solution_query = None
    return response


def ensure_can_modify(exercise: Exercise, user: User, action: str) -> None:
    # teachers may change any exercise, tutors only their own
    if user.role != Role.TEACHER and exercise.author_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'You can only {action} your own exercises.',
        )


@router.get('/', response_model=list[ExerciseResponse])
def list_exercises(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        exercises = db.query(Exercise).order_by(Exercise.id.asc()).all()
        return [present_exercise(exercise, current_user) for exercise in exercises]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{exercise_id}', response_model=ExerciseResponse)
def get_exercise(
    exercise_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return present_exercise(get_exercise_or_404(exercise_id, db), current_user)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/', response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
def create_exercise(
    data: CreateExerciseRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        ensure_database_exists(data.database_id, db)

        exercise = Exercise(
            title=data.title,
            description=data.description,
            initial_query=data.initial_query,
            solution_query=data.solution_query,
            database_id=data.database_id,
            author_id=current_user.id,
        )
        db.add(exercise)
        db.commit()
        db.refresh(exercise)
        return exercise
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{exercise_id}', response_model=ExerciseResponse)
def update_exercise(
    exercise_id: int,
    data: UpdateExerciseRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        exercise = get_exercise_or_404(exercise_id, db)
        ensure_can_modify(exercise, current_user, 'update')

        changes = data.model_dump(exclude_unset=True)
        if changes.get('database_id') is not None:
            ensure_database_exists(changes['database_id'], db)

        for field_name, value in changes.items():
            if value is None and field_name != 'initial_query':
                continue
            setattr(exercise, field_name, value)

        db.commit()
        db.refresh(exercise)
        return exercise
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{exercise_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_exercise(
    exercise_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        exercise = get_exercise_or_404(exercise_id, db)
        ensure_can_modify(exercise, current_user, 'delete')

        db.delete(exercise)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{exercise_id}/run', response_model=RunQueryResponse)
def run_query(
    exercise_id: int,
    data: RunQueryRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        exercise = get_exercise_or_404(exercise_id, db)
        schema_sql = exercise.database.schema_sql
        seed_data = exercise.database.seed_data
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    result = execute_in_sandbox(schema_sql, seed_data, data.query)

    return RunQueryResponse(
        columns=result.labels,
        rows=result.as_records(limit=config.SANDBOX_MAX_ROWS),
        row_count=len(result.rows),
        truncated=len(result.rows) > config.SANDBOX_MAX_ROWS,
        error=result.error,
    )
