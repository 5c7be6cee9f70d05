"""Quiz and attempt API endpoints."""

from typing import Union
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request, status

from quizhub.api.dependencies import get_current_account, get_quiz_service
from quizhub.models.quiz import (
    AttemptOutcome,
    AttemptRequest,
    AttemptResults,
    AttemptSummary,
    CreateQuizRequest,
    CreateQuizResponse,
    LeaderboardEntry,
    PublicQuiz,
    Quiz,
    QuizSummary,
    UpdateQuizRequest,
)
from quizhub.models.response import ApiResponse
from quizhub.models.user import Account
from quizhub.services.quiz_service import QuizService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/quizzes", tags=["Quizzes"])


def _shareable_link(request: Request, quiz_id: UUID) -> str:
    return str(request.url_for("attempt_quiz", quiz_id=str(quiz_id)))


# Fixed paths are declared before the /{quiz_id} routes.


@router.get("/user/attempts")
async def list_attempts(
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[list[AttemptSummary]]:
    """The caller's attempts with quiz titles, newest first."""
    attempts = await quizzes.list_attempts(current_account.id)
    return ApiResponse(data=attempts, message="Attempts fetched successfully")


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    body: CreateQuizRequest,
    request: Request,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[CreateQuizResponse]:
    """Create a quiz and return the link participants use to attempt it."""
    quiz = await quizzes.create_quiz(current_account.id, body)
    return ApiResponse(
        status_code=status.HTTP_201_CREATED,
        data=CreateQuizResponse(quiz=quiz, shareable_link=_shareable_link(request, quiz.id)),
        message="Quiz created successfully",
    )


@router.get("/my-quizzes")
async def my_quizzes(
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[list[QuizSummary]]:
    """Quizzes the caller created, newest first."""
    items = await quizzes.list_owner_quizzes(current_account.id)
    return ApiResponse(data=items, message="Quizzes fetched successfully")


@router.get("/attempt/{attempt_id}/results")
async def attempt_results(
    attempt_id: UUID,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[AttemptResults]:
    """Per-question results of one of the caller's attempts."""
    results = await quizzes.get_attempt_results(attempt_id, current_account.id)
    return ApiResponse(data=results, message="Quiz results fetched successfully")


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: UUID,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[Union[Quiz, PublicQuiz]]:
    """Fetch a quiz. Only its owner sees the answer key."""
    quiz = await quizzes.get_quiz(quiz_id)
    data = quiz if quiz.owner_id == current_account.id else PublicQuiz.from_quiz(quiz)
    return ApiResponse(data=data, message="Quiz fetched successfully")


@router.patch("/{quiz_id}/update")
async def update_quiz(
    quiz_id: UUID,
    body: UpdateQuizRequest,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[Quiz]:
    """Update a quiz the caller owns."""
    quiz = await quizzes.update_quiz(quiz_id, current_account.id, body)
    return ApiResponse(data=quiz, message="Quiz updated successfully")


@router.delete("/{quiz_id}/delete")
async def delete_quiz(
    quiz_id: UUID,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[dict]:
    """Delete a quiz the caller owns, with its attempts."""
    await quizzes.delete_quiz(quiz_id, current_account.id)
    return ApiResponse(data={}, message="Quiz deleted successfully")


@router.get("/{quiz_id}/leaderboard")
async def leaderboard(
    quiz_id: UUID,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[list[LeaderboardEntry]]:
    """Best attempt per participant, highest score first."""
    rows = await quizzes.get_leaderboard(quiz_id)
    return ApiResponse(data=rows, message="Leaderboard fetched successfully")


@router.post("/{quiz_id}/attempt", name="attempt_quiz")
async def attempt_quiz(
    quiz_id: UUID,
    body: AttemptRequest,
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[AttemptOutcome]:
    """Submit answers and get the score."""
    outcome = await quizzes.submit_attempt(quiz_id, current_account.id, body)
    logger.info("quiz_attempted", quiz_id=str(quiz_id), score=outcome.score)
    return ApiResponse(data=outcome, message="Quiz attempted successfully")
