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
from backend.models.submission import Submission
from backend.models.user import Role, User
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services.feedback import FeedbackRequest, FeedbackService, get_feedback_service
from backend.services.grading import GradingResult, grade_submission

router = APIRouter(tags=['submissions'])

staff_only = require_roles(Role.TEACHER, Role.TUTOR)

FEEDBACK_RESULT_ROWS = 20


class SubmitSolutionRequest(BaseModel):
    exercise_id: int
    query: str

    @field_validator('query')
    @classmethod
    def validate_query(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError('Query is required.')
        return value


class SubmissionResponse(BaseModel):
    id: int
    query: str
    is_correct: bool
    feedback: str
    hints: list[str] = []
    suggestions: list[str] = []
    explanation: str = ''
    student_id: int
    exercise_id: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class SubmitSolutionResponse(SubmissionResponse):
    columns: list[str] = []
    rows: list[dict[str, Any]] = []
    error: str | None = None


def build_feedback_request(exercise: Exercise, query: str, grading: GradingResult) -> FeedbackRequest:
    return FeedbackRequest(
        student_query=query,
        solution_query=exercise.solution_query,
        exercise_title=exercise.title,
        exercise_description=exercise.description,
        is_correct=grading.is_correct,
        student_result=grading.student_result.as_records(limit=FEEDBACK_RESULT_ROWS) if grading.student_result.success else None,
        solution_result=grading.solution_result.as_records(limit=FEEDBACK_RESULT_ROWS) if grading.solution_result.success else None,
        error_message=grading.error_message,
        database_schema=exercise.database.schema_sql,
    )


@router.post('/submit', response_model=SubmitSolutionResponse, status_code=status.HTTP_201_CREATED)
def submit_solution(
    data: SubmitSolutionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    ensure_database_ready()

    try:
        exercise = db.query(Exercise).filter(Exercise.id == data.exercise_id).first()
        if exercise is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Exercise not found.')
        database = exercise.database
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    grading = grade_submission(exercise, database, data.query)
    feedback = feedback_service.generate_feedback(build_feedback_request(exercise, data.query, grading))

    try:
        submission = Submission(
            query=data.query,
            is_correct=grading.is_correct,
            feedback=feedback.feedback,
            hints=feedback.hints,
            suggestions=feedback.suggestions,
            explanation=feedback.explanation,
            student_id=current_user.id,
            exercise_id=exercise.id,
        )
        db.add(submission)
        db.commit()
        db.refresh(submission)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = SubmitSolutionResponse.model_validate(submission)
    response.columns = grading.student_result.labels
    response.rows = grading.student_result.as_records(limit=config.SANDBOX_MAX_ROWS)
    response.error = grading.student_result.error
    return response


@router.get('/my', response_model=list[SubmissionResponse])
def list_my_submissions(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Submission).filter(
            Submission.student_id == current_user.id,
        ).order_by(Submission.created_at.desc(), Submission.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/exercise/{exercise_id}', response_model=list[SubmissionResponse])
def list_exercise_submissions(
    exercise_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(Submission).filter(
            Submission.exercise_id == exercise_id,
        ).order_by(Submission.created_at.desc(), Submission.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{submission_id}', response_model=SubmissionResponse)
def get_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        submission = db.query(Submission).filter(Submission.id == submission_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Submission not found.')

    if current_user.role == Role.STUDENT and submission.student_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You can only view your own submissions.',
        )

    return submission
