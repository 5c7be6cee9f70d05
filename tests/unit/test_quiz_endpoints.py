"""Endpoint tests for /api/v1/quizzes with QuizService mocked out."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from quizhub.errors import BadRequestError, NotFoundError
from quizhub.models.quiz import (
    AttemptOutcome,
    LeaderboardEntry,
    Question,
    Quiz,
    QuizSummary,
)


@pytest.fixture
def quiz_service(client):
    """QuizService double wired in through the dependency provider."""
    from quizhub.api.dependencies import get_quiz_service
    from quizhub.main import app

    service = MagicMock()
    for name in (
        "create_quiz",
        "list_owner_quizzes",
        "get_quiz",
        "update_quiz",
        "delete_quiz",
        "get_leaderboard",
        "submit_attempt",
        "list_attempts",
        "get_attempt_results",
    ):
        setattr(service, name, AsyncMock())
    app.dependency_overrides[get_quiz_service] = lambda: service
    return service


def _auth(client, username="owner"):
    """Register and log in; return (account id, bearer headers)."""
    registered = client.post(
        "/api/v1/users/register",
        json={
            "fullName": username.title(),
            "email": f"{username}@x.com",
            "username": username,
            "password": "secret123",
        },
    ).json()["data"]
    login = client.post(
        "/api/v1/users/login", json={"username": username, "password": "secret123"}
    )
    client.cookies.clear()
    token = login.json()["data"]["accessToken"]
    return UUID(registered["id"]), {"Authorization": f"Bearer {token}"}


def _quiz(owner_id) -> Quiz:
    now = datetime.now(timezone.utc)
    return Quiz(
        id=uuid4(),
        owner_id=owner_id,
        title="Capitals",
        description=None,
        questions=[
            Question(
                id=uuid4(),
                question_text="Capital of France?",
                options=["Paris", "Rome"],
                correct_answer_index=0,
                explanation="It is Paris.",
            )
        ],
        time_limit=None,
        created_at=now,
        updated_at=now,
    )


QUIZ_BODY = {
    "title": "Capitals",
    "questions": [
        {"questionText": "Capital of France?", "options": ["Paris", "Rome"], "correctAnswerIndex": 0}
    ],
}


class TestCreateQuiz:
    """Tests for POST /api/v1/quizzes/create."""

    def test_returns_201_with_shareable_link(self, client, quiz_service):
        owner_id, headers = _auth(client)
        quiz = _quiz(owner_id)
        quiz_service.create_quiz.return_value = quiz

        response = client.post("/api/v1/quizzes/create", json=QUIZ_BODY, headers=headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["quiz"]["title"] == "Capitals"
        assert data["shareableLink"].endswith(f"/api/v1/quizzes/{quiz.id}/attempt")
        called_owner, called_request = quiz_service.create_quiz.call_args.args
        assert called_owner == owner_id
        assert called_request.questions[0].correct_answer_index == 0

    def test_requires_auth(self, client, quiz_service):
        response = client.post("/api/v1/quizzes/create", json=QUIZ_BODY)
        assert response.status_code == 401
        quiz_service.create_quiz.assert_not_awaited()

    def test_out_of_range_answer_index_is_400(self, client, quiz_service):
        _, headers = _auth(client)
        body = {
            "title": "Bad",
            "questions": [{"questionText": "?", "options": ["a", "b"], "correctAnswerIndex": 5}],
        }

        response = client.post("/api/v1/quizzes/create", json=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_lone_surrogate_in_options_is_400(self, client, quiz_service):
        _, headers = _auth(client)
        raw = (
            '{"title": "Bad", "questions": [{"questionText": "?", '
            '"options": ["ok", "\\ud800"], "correctAnswerIndex": 0}]}'
        )

        response = client.post(
            "/api/v1/quizzes/create",
            content=raw,
            headers={**headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        quiz_service.create_quiz.assert_not_awaited()

    def test_service_validation_error_surfaces(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.create_quiz.side_effect = BadRequestError(
            "Title and at least one question are required"
        )

        response = client.post("/api/v1/quizzes/create", json={}, headers=headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Title and at least one question are required"


class TestGetQuiz:
    """Owner sees the answer key; everyone else does not."""

    def test_owner_sees_answer_key(self, client, quiz_service):
        owner_id, headers = _auth(client)
        quiz_service.get_quiz.return_value = _quiz(owner_id)

        response = client.get(f"/api/v1/quizzes/{uuid4()}", headers=headers)

        assert response.status_code == 200
        question = response.json()["data"]["questions"][0]
        assert question["correctAnswerIndex"] == 0
        assert question["explanation"] == "It is Paris."

    def test_participant_sees_public_view(self, client, quiz_service):
        _, headers = _auth(client, username="player")
        quiz_service.get_quiz.return_value = _quiz(uuid4())

        response = client.get(f"/api/v1/quizzes/{uuid4()}", headers=headers)

        assert response.status_code == 200
        question = response.json()["data"]["questions"][0]
        assert question["questionText"] == "Capital of France?"
        assert "correctAnswerIndex" not in question
        assert "explanation" not in question

    def test_missing_quiz_is_404(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.get_quiz.side_effect = NotFoundError("Quiz not found")

        response = client.get(f"/api/v1/quizzes/{uuid4()}", headers=headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Quiz not found"

    def test_bad_uuid_is_400(self, client, quiz_service):
        _, headers = _auth(client)
        response = client.get("/api/v1/quizzes/not-a-uuid", headers=headers)
        assert response.status_code == 400


class TestOwnerRoutes:
    """Listing, updating and deleting."""

    def test_my_quizzes_empty_list(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.list_owner_quizzes.return_value = []

        response = client.get("/api/v1/quizzes/my-quizzes", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_my_quizzes_lists_summaries(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.list_owner_quizzes.return_value = [
            QuizSummary(id=uuid4(), title="Capitals", created_at=datetime.now(timezone.utc))
        ]

        response = client.get("/api/v1/quizzes/my-quizzes", headers=headers)

        assert response.json()["data"][0]["title"] == "Capitals"
        assert "createdAt" in response.json()["data"][0]

    def test_update_passes_owner(self, client, quiz_service):
        owner_id, headers = _auth(client)
        quiz_service.update_quiz.return_value = _quiz(owner_id)
        quiz_id = uuid4()

        response = client.patch(
            f"/api/v1/quizzes/{quiz_id}/update", json={"title": "Capitals"}, headers=headers
        )

        assert response.status_code == 200
        args = quiz_service.update_quiz.call_args.args
        assert args[0] == quiz_id
        assert args[1] == owner_id

    def test_delete_by_non_owner_is_404(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.delete_quiz.side_effect = NotFoundError("Quiz not found or unauthorized")

        response = client.delete(f"/api/v1/quizzes/{uuid4()}/delete", headers=headers)

        assert response.status_code == 404

    def test_delete_returns_empty_data(self, client, quiz_service):
        _, headers = _auth(client)

        response = client.delete(f"/api/v1/quizzes/{uuid4()}/delete", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"] == {}


class TestAttemptRoutes:
    """Submitting attempts, history, results and leaderboard."""

    def test_submit_attempt(self, client, quiz_service):
        _, headers = _auth(client, username="player")
        attempt_id = uuid4()
        quiz_service.submit_attempt.return_value = AttemptOutcome(
            attempt_id=attempt_id, score=1, total_questions=2, correct_answers=1
        )

        response = client.post(
            f"/api/v1/quizzes/{uuid4()}/attempt",
            json={"answers": [{"questionId": str(uuid4()), "selectedOptionIndex": 0}]},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data == {
            "attemptId": str(attempt_id),
            "score": 1,
            "totalQuestions": 2,
            "correctAnswers": 1,
        }

    def test_user_attempts_route_is_not_a_quiz_id(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.list_attempts.return_value = []

        response = client.get("/api/v1/quizzes/user/attempts", headers=headers)

        assert response.status_code == 200
        quiz_service.get_quiz.assert_not_awaited()

    def test_results_of_someone_elses_attempt_is_404(self, client, quiz_service):
        _, headers = _auth(client)
        quiz_service.get_attempt_results.side_effect = NotFoundError("Attempt not found")

        response = client.get(f"/api/v1/quizzes/attempt/{uuid4()}/results", headers=headers)

        assert response.status_code == 404

    def test_leaderboard(self, client, quiz_service):
        _, headers = _auth(client)
        now = datetime.now(timezone.utc)
        quiz_service.get_leaderboard.return_value = [
            LeaderboardEntry(username="alice", score=3, completed_at=now),
            LeaderboardEntry(username="bob", score=2, completed_at=now),
        ]

        response = client.get(f"/api/v1/quizzes/{uuid4()}/leaderboard", headers=headers)

        assert [row["username"] for row in response.json()["data"]] == ["alice", "bob"]
        assert "completedAt" in response.json()["data"][0]
