from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_roles
from backend.auth.passwords import hash_password
from backend.database import get_db
from backend.models.exercise import Exercise
from backend.models.submission import Submission
from backend.models.user import Role, User
from backend.routes.auth_routes import EmailField, NameField, PasswordField, UserResponse
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.routes.exercise_routes import ExerciseResponse

router = APIRouter(tags=['admin'])

RECENT_SUBMISSIONS_LIMIT = 10

staff_only = require_roles(Role.TEACHER, Role.TUTOR)


class CreateUserRequest(BaseModel):
    email: EmailField
    password: PasswordField
    name: NameField
    role: Role = Role.STUDENT


class UpdateUserRequest(BaseModel):
    email: EmailField | None = None
    password: PasswordField | None = None
    name: NameField | None = None
    role: Role | None = None


class AdminUserResponse(UserResponse):
    created_at: datetime | None = None


class RecentSubmissionResponse(BaseModel):
    id: int
    exercise_id: int
    exercise_title: str
    is_correct: bool
    created_at: datetime | None = None


class StudentProgressResponse(BaseModel):
    student: AdminUserResponse
    total_submissions: int
    correct_submissions: int
    attempted_exercise_ids: list[int]
    solved_exercise_ids: list[int]
    recent_submissions: list[RecentSubmissionResponse]


def get_user_or_404(user_id: int, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'User with ID {user_id} not found.',
        )
    return user


def ensure_email_available(email: str, db: Session) -> None:
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='Email is already in use.')


def ensure_teacher_privileges(current_user: User, detail: str) -> None:
    if current_user.role != Role.TEACHER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def list_users_with_role(role: Role, db: Session) -> list[User]:
    ensure_database_ready()

    try:
        return db.query(User).filter(User.role == role).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/teachers', response_model=list[AdminUserResponse])
def list_teachers(current_user: User = Depends(staff_only), db: Session = Depends(get_db)):
    return list_users_with_role(Role.TEACHER, db)


@router.get('/tutors', response_model=list[AdminUserResponse])
def list_tutors(current_user: User = Depends(staff_only), db: Session = Depends(get_db)):
    return list_users_with_role(Role.TUTOR, db)


@router.get('/students', response_model=list[AdminUserResponse])
def list_students(current_user: User = Depends(staff_only), db: Session = Depends(get_db)):
    return list_users_with_role(Role.STUDENT, db)


@router.get('/exercises', response_model=list[ExerciseResponse])
def list_all_exercises(current_user: User = Depends(staff_only), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Exercise).order_by(Exercise.created_at.desc(), Exercise.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/students/{student_id}/progress', response_model=StudentProgressResponse)
def get_student_progress(
    student_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        student = get_user_or_404(student_id, db)
        submissions = (
            db.query(Submission, Exercise.title)
            .join(Exercise, Submission.exercise_id == Exercise.id)
            .filter(Submission.student_id == student.id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    attempted = sorted({submission.exercise_id for submission, _ in submissions})
    solved = sorted({submission.exercise_id for submission, _ in submissions if submission.is_correct})

    return StudentProgressResponse(
        student=AdminUserResponse.model_validate(student),
        total_submissions=len(submissions),
        correct_submissions=sum(1 for submission, _ in submissions if submission.is_correct),
        attempted_exercise_ids=attempted,
        solved_exercise_ids=solved,
        recent_submissions=[
            RecentSubmissionResponse(
                id=submission.id,
                exercise_id=submission.exercise_id,
                exercise_title=title,
                is_correct=submission.is_correct,
                created_at=submission.created_at,
            )
            for submission, title in submissions[:RECENT_SUBMISSIONS_LIMIT]
        ],
    )


@router.post('/users', response_model=AdminUserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: CreateUserRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    if data.role == Role.TEACHER:
        ensure_teacher_privileges(current_user, 'Only teachers can create teacher accounts.')

    ensure_database_ready()

    try:
        ensure_email_available(data.email, db)

        user = User(
            email=data.email,
            hashed_password=hash_password(data.password),
            name=data.name,
            role=data.role,
            is_blocked=False,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/users/{user_id}', response_model=AdminUserResponse)
def update_user(
    user_id: int,
    data: UpdateUserRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    if current_user.id == user_id and data.role is not None and data.role != Role.TEACHER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You cannot change your own role.',
        )
    if data.role is not None:
        ensure_teacher_privileges(current_user, 'Only teachers can change roles.')

    ensure_database_ready()

    try:
        user = get_user_or_404(user_id, db)
        if user.role == Role.TEACHER:
            ensure_teacher_privileges(current_user, 'Only teachers can edit teacher accounts.')

        if data.email is not None and data.email != user.email:
            ensure_email_available(data.email, db)
            user.email = data.email
        if data.name is not None:
            user.name = data.name
        if data.role is not None:
            user.role = data.role
        if data.password is not None:
            user.hashed_password = hash_password(data.password)

        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/users/{user_id}', response_model=AdminUserResponse)
def delete_user(
    user_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    if current_user.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You cannot delete your own account.',
        )

    ensure_database_ready()

    try:
        user = get_user_or_404(user_id, db)
        if user.role == Role.TEACHER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Teacher accounts cannot be deleted.',
            )

        deleted = AdminUserResponse.model_validate(user)
        db.delete(user)
        db.commit()
        return deleted
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/users/{user_id}/block', response_model=AdminUserResponse)
def block_user(
    user_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    if current_user.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You cannot block your own account.',
        )

    ensure_database_ready()

    try:
        user = get_user_or_404(user_id, db)
        if user.role == Role.TEACHER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Teacher accounts cannot be blocked.',
            )

        user.is_blocked = True
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/users/{user_id}/unblock', response_model=AdminUserResponse)
def unblock_user(
    user_id: int,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        user = get_user_or_404(user_id, db)
        user.is_blocked = False
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
