"""Quiz, question, attempt and leaderboard models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from quizhub.models.request import RequestModel
from quizhub.models.response import CamelModel


class QuestionIn(RequestModel):
    """A multiple-choice question as submitted by the quiz author.

    ``id`` is only sent back when editing, to keep the ids that existing
    attempts refer to.
    """

    id: Optional[UUID] = None
    question_text: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., ge=0)
    explanation: Optional[str] = None

    @model_validator(mode="after")
    def correct_index_in_range(self) -> "QuestionIn":
        """Require the correct answer to point at one of the options."""
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correctAnswerIndex must reference one of the options")
        return self


class Question(QuestionIn):
    """A stored question; always has an id."""

    id: UUID


class PublicQuestion(CamelModel):
    """A question as shown to someone taking the quiz (no answer key)."""

    id: UUID
    question_text: str
    options: list[str]


class CreateQuizRequest(RequestModel):
    """New quiz. Title and at least one question are checked by the service."""

    title: str = ""
    description: Optional[str] = None
    questions: list[QuestionIn] = Field(default_factory=list)
    time_limit: Optional[int] = Field(default=None, ge=1)


class UpdateQuizRequest(RequestModel):
    """Partial quiz update; omitted fields keep their stored values."""

    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[list[QuestionIn]] = None
    time_limit: Optional[int] = Field(default=None, ge=1)


class Quiz(CamelModel):
    """Full quiz including the answer key (owner view)."""

    id: UUID
    owner_id: UUID
    title: str
    description: Optional[str] = None
    questions: list[Question]
    time_limit: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class PublicQuiz(CamelModel):
    """Quiz without the answer key (participant view)."""

    id: UUID
    owner_id: UUID
    title: str
    description: Optional[str] = None
    questions: list[PublicQuestion]
    time_limit: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> "PublicQuiz":
        return cls(
            id=quiz.id,
            owner_id=quiz.owner_id,
            title=quiz.title,
            description=quiz.description,
            questions=[
                PublicQuestion(id=q.id, question_text=q.question_text, options=q.options)
                for q in quiz.questions
            ],
            time_limit=quiz.time_limit,
            created_at=quiz.created_at,
        )


class QuizSummary(CamelModel):
    """Compact quiz listing entry."""

    id: UUID
    title: str
    description: Optional[str] = None
    created_at: datetime


class CreateQuizResponse(CamelModel):
    """Created quiz plus the link participants use to attempt it."""

    quiz: Quiz
    shareable_link: str


class AnswerIn(RequestModel):
    """One submitted answer."""

    question_id: UUID
    selected_option_index: int


class AttemptRequest(RequestModel):
    """A full quiz submission."""

    answers: list[AnswerIn]
    time_taken: Optional[int] = Field(default=None, ge=0)


class AttemptAnswer(AnswerIn):
    """A scored answer as stored on the attempt."""

    is_correct: bool


class AttemptOutcome(CamelModel):
    """Immediate result of submitting an attempt."""

    attempt_id: UUID
    score: int
    total_questions: int
    correct_answers: int


class AttemptSummary(CamelModel):
    """An attempt in a user's history, with the quiz it belongs to."""

    id: UUID
    quiz_id: UUID
    quiz_title: Optional[str] = None
    quiz_description: Optional[str] = None
    score: int
    time_taken: Optional[int] = None
    completed_at: datetime
    created_at: datetime


class QuestionResult(CamelModel):
    """Per-question breakdown of an attempt."""

    question_id: UUID
    question_text: str
    options: list[str]
    correct_answer_index: int
    explanation: Optional[str] = None
    user_selected_option: Optional[int] = None
    is_correct: bool


class AttemptResults(CamelModel):
    """Detailed results of a single attempt."""

    quiz_title: str
    score: int
    total_questions: int
    results: list[QuestionResult]
    attempted_at: datetime


class LeaderboardEntry(CamelModel):
    """One row of a quiz leaderboard (a user's best attempt)."""

    username: str
    score: int
    completed_at: datetime
