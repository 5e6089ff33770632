import pytest
from fastapi import HTTPException

from backend.auth.passwords import verify_password
from backend.models.submission import Submission
from backend.models.user import Role, User
from backend.routes.admin_routes import (
    CreateUserRequest,
    UpdateUserRequest,
    block_user,
    create_user,
    delete_user,
    get_student_progress,
    list_all_exercises,
    list_students,
    list_teachers,
    list_tutors,
    unblock_user,
    update_user,
)


def add_submission(db, student, exercise, is_correct: bool, query: str = 'SELECT * FROM Toys') -> Submission:
    submission = Submission(
        query=query,
        is_correct=is_correct,
        feedback='Feedback',
        hints=[],
        suggestions=[],
        explanation='',
        student_id=student.id,
        exercise_id=exercise.id,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def test_users_are_listed_by_role(db, teacher, tutor, student, make_user) -> None:
    second_student = make_user('another@example.edu')

    assert [user.id for user in list_teachers(teacher, db)] == [teacher.id]
    assert [user.id for user in list_tutors(teacher, db)] == [tutor.id]
    assert {user.id for user in list_students(tutor, db)} == {student.id, second_student.id}


def test_create_user_with_role(db, teacher) -> None:
    user = create_user(
        CreateUserRequest(email=' New.Tutor@example.edu ', password='secret123', name='New Tutor', role=Role.TUTOR),
        teacher,
        db,
    )

    assert user.email == 'new.tutor@example.edu'
    assert user.role == Role.TUTOR
    assert verify_password('secret123', user.hashed_password)


def test_create_user_rejects_existing_email(db, teacher, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_user(CreateUserRequest(email=student.email, password='secret123', name='Copy'), teacher, db)

    assert exception_info.value.status_code == 409


def test_update_user_changes_fields(db, teacher, student) -> None:
    user = update_user(
        student.id,
        UpdateUserRequest(name='Promoted', role=Role.TUTOR, password='another-secret'),
        teacher,
        db,
    )

    assert user.name == 'Promoted'
    assert user.role == Role.TUTOR
    assert verify_password('another-secret', user.hashed_password)


def test_update_user_cannot_change_own_role(db, teacher) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(teacher.id, UpdateUserRequest(role=Role.STUDENT), teacher, db)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'You cannot change your own role.'


def test_update_user_returns_404_for_unknown_user(db, teacher) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(999, UpdateUserRequest(name='Ghost'), teacher, db)

    assert exception_info.value.status_code == 404


def test_delete_user_removes_account_and_submissions(db, teacher, student, toys_exercise) -> None:
    add_submission(db, student, toys_exercise, is_correct=True)
    student_id = student.id

    deleted = delete_user(student_id, teacher, db)

    assert deleted.id == student_id
    assert db.query(User).filter(User.id == student_id).first() is None
    assert db.query(Submission).filter(Submission.student_id == student_id).count() == 0


@pytest.mark.parametrize('operation', [delete_user, block_user])
def test_teacher_accounts_are_protected(db, tutor, make_user, operation) -> None:
    other_teacher = make_user('head@example.edu', Role.TEACHER)

    with pytest.raises(HTTPException) as exception_info:
        operation(other_teacher.id, tutor, db)

    assert exception_info.value.status_code == 403


@pytest.mark.parametrize('operation', [delete_user, block_user])
def test_staff_cannot_target_themselves(db, tutor, operation) -> None:
    with pytest.raises(HTTPException) as exception_info:
        operation(tutor.id, tutor, db)

    assert exception_info.value.status_code == 403


def test_block_and_unblock_student(db, tutor, student) -> None:
    assert block_user(student.id, tutor, db).is_blocked is True
    assert unblock_user(student.id, tutor, db).is_blocked is False


def test_student_progress_summarizes_submissions(db, teacher, student, toys_exercise) -> None:
    add_submission(db, student, toys_exercise, is_correct=False, query='SELECT toyName FROM Toys')
    latest = add_submission(db, student, toys_exercise, is_correct=True)

    progress = get_student_progress(student.id, teacher, db)

    assert progress.student.id == student.id
    assert progress.total_submissions == 2
    assert progress.correct_submissions == 1
    assert progress.attempted_exercise_ids == [toys_exercise.id]
    assert progress.solved_exercise_ids == [toys_exercise.id]
    assert progress.recent_submissions[0].id == latest.id
    assert progress.recent_submissions[0].exercise_title == 'All toys'


def test_tutor_cannot_promote_themselves(db, tutor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(tutor.id, UpdateUserRequest(role=Role.TEACHER), tutor, db)

    db.refresh(tutor)
    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only teachers can change roles.'
    assert tutor.role == Role.TUTOR


def test_tutor_cannot_change_student_role(db, tutor, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(student.id, UpdateUserRequest(role=Role.TUTOR), tutor, db)

    assert exception_info.value.status_code == 403


def test_tutor_cannot_reset_teacher_password(db, tutor, teacher) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user(teacher.id, UpdateUserRequest(password='taken-over'), tutor, db)

    db.refresh(teacher)
    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only teachers can edit teacher accounts.'
    assert verify_password('secret123', teacher.hashed_password)


def test_tutor_can_edit_student_details(db, tutor, student) -> None:
    assert update_user(student.id, UpdateUserRequest(name='Renamed'), tutor, db).name == 'Renamed'


def test_tutor_cannot_create_teacher_account(db, tutor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_user(
            CreateUserRequest(email='boss@example.edu', password='secret123', name='Boss', role=Role.TEACHER),
            tutor,
            db,
        )

    assert exception_info.value.status_code == 403
    assert db.query(User).filter(User.email == 'boss@example.edu').first() is None


def test_staff_list_all_exercises_with_solutions(db, tutor, toys_exercise) -> None:
    exercises = list_all_exercises(tutor, db)

    assert [exercise.id for exercise in exercises] == [toys_exercise.id]
    assert exercises[0].solution_query == 'SELECT * FROM Toys'
