import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.submission import Submission
from backend.routes.submission_routes import (
    SubmitSolutionRequest,
    get_submission,
    list_exercise_submissions,
    list_my_submissions,
    submit_solution,
)
from backend.services.feedback import FeedbackRequest, FeedbackResponse, FeedbackService


class RecordingFeedbackService(FeedbackService):
    def __init__(self):
        super().__init__(api_key='')
        self.requests: list[FeedbackRequest] = []

    def generate_feedback(self, request: FeedbackRequest) -> FeedbackResponse:
        self.requests.append(request)
        return super().generate_feedback(request)


@pytest.fixture
def feedback_service() -> RecordingFeedbackService:
    return RecordingFeedbackService()


def submit(db, user, exercise, query: str, feedback_service: FeedbackService):
    return submit_solution(SubmitSolutionRequest(exercise_id=exercise.id, query=query), user, db, feedback_service)


def test_correct_submission_is_graded_and_stored(db, student, toys_exercise, feedback_service) -> None:
    response = submit(db, student, toys_exercise, 'SELECT * FROM Toys ORDER BY price DESC', feedback_service)

    assert response.is_correct is True
    assert response.feedback.startswith('Excellent!')
    assert response.student_id == student.id
    assert response.exercise_id == toys_exercise.id
    assert len(response.rows) == 8
    assert response.error is None

    stored = db.query(Submission).filter(Submission.id == response.id).one()
    assert stored.is_correct is True
    assert stored.query == 'SELECT * FROM Toys ORDER BY price DESC'
    assert stored.hints == ['You solved the exercise!']


def test_incorrect_submission_gets_hints_and_results(db, student, toys_exercise, feedback_service) -> None:
    response = submit(db, student, toys_exercise, "SELECT * FROM Toys WHERE category = 'Vehicles'", feedback_service)

    assert response.is_correct is False
    assert response.hints == ['Your query runs, but the result is not correct.']
    assert len(response.rows) == 2

    feedback_request = feedback_service.requests[0]
    assert feedback_request.is_correct is False
    assert feedback_request.solution_query == 'SELECT * FROM Toys'
    assert len(feedback_request.solution_result) == 8
    assert 'CREATE TABLE Toys' in feedback_request.database_schema


def test_failing_query_is_stored_as_incorrect_with_error(db, student, toys_exercise, feedback_service) -> None:
    response = submit(db, student, toys_exercise, 'SELECT * FROM Toy', feedback_service)

    assert response.is_correct is False
    assert response.error is not None
    assert response.rows == []
    assert response.hints == ['A table or column does not exist.']
    assert feedback_service.requests[0].error_message == response.error
    assert db.query(Submission).count() == 1


def test_submit_to_unknown_exercise_returns_404(db, student, feedback_service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        submit_solution(SubmitSolutionRequest(exercise_id=999, query='SELECT 1'), student, db, feedback_service)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Exercise not found.'
    assert feedback_service.requests == []


def test_blank_query_is_rejected() -> None:
    with pytest.raises(ValidationError):
        SubmitSolutionRequest(exercise_id=1, query='  \n ')


def test_my_submissions_are_newest_first(db, student, tutor, toys_exercise, feedback_service) -> None:
    first = submit(db, student, toys_exercise, 'SELECT toyName FROM Toys', feedback_service)
    second = submit(db, student, toys_exercise, 'SELECT * FROM Toys', feedback_service)
    submit(db, tutor, toys_exercise, 'SELECT * FROM Toys', feedback_service)

    submissions = list_my_submissions(student, db)

    assert [submission.id for submission in submissions] == [second.id, first.id]


def test_staff_list_submissions_for_exercise(db, student, tutor, toys_exercise, feedback_service) -> None:
    submit(db, student, toys_exercise, 'SELECT * FROM Toys', feedback_service)
    submit(db, tutor, toys_exercise, 'SELECT toyId FROM Toys', feedback_service)

    submissions = list_exercise_submissions(toys_exercise.id, tutor, db)

    assert len(submissions) == 2
    assert {submission.exercise_id for submission in submissions} == {toys_exercise.id}


def test_student_reads_own_submission(db, student, toys_exercise, feedback_service) -> None:
    created = submit(db, student, toys_exercise, 'SELECT * FROM Toys', feedback_service)

    assert get_submission(created.id, student, db).id == created.id


def test_student_cannot_read_other_students_submission(db, student, make_user, toys_exercise, feedback_service) -> None:
    other = make_user('other@example.edu')
    created = submit(db, other, toys_exercise, 'SELECT * FROM Toys', feedback_service)

    with pytest.raises(HTTPException) as exception_info:
        get_submission(created.id, student, db)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'You can only view your own submissions.'


def test_staff_read_any_submission(db, student, teacher, toys_exercise, feedback_service) -> None:
    created = submit(db, student, toys_exercise, 'SELECT * FROM Toys', feedback_service)

    assert get_submission(created.id, teacher, db).student_id == student.id


def test_unknown_submission_returns_404(db, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_submission(999, student, db)

    assert exception_info.value.status_code == 404
