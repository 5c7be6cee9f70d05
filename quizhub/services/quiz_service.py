"""Quiz CRUD, attempt scoring, results and leaderboards."""

import json
from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog

from quizhub.database import get_pool
from quizhub.errors import BadRequestError, NotFoundError
from quizhub.models.quiz import (
    AnswerIn,
    AttemptAnswer,
    AttemptOutcome,
    AttemptRequest,
    AttemptResults,
    AttemptSummary,
    CreateQuizRequest,
    LeaderboardEntry,
    Question,
    QuestionIn,
    QuestionResult,
    Quiz,
    QuizSummary,
    UpdateQuizRequest,
)

logger = structlog.get_logger(__name__)

_QUIZ_COLUMNS = "id, owner_id, title, description, questions, time_limit, created_at, updated_at"


def _load_json(value) -> list:
    """asyncpg hands JSONB back as text unless a codec is registered."""
    if value is None:
        return []
    return json.loads(value) if isinstance(value, str) else value


def _row_to_quiz(row) -> Quiz:
    return Quiz(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        description=row["description"],
        questions=[Question(**q) for q in _load_json(row["questions"])],
        time_limit=row["time_limit"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _assign_question_ids(questions: list[QuestionIn]) -> list[Question]:
    """Keep ids the client sent back and mint ids for new questions.

    Raises:
        BadRequestError: If two questions carry the same id
    """
    assigned = [
        Question(**q.model_dump(exclude={"id"}), id=q.id or uuid4())
        for q in questions
    ]
    if len({q.id for q in assigned}) != len(assigned):
        raise BadRequestError("Question IDs must be unique within a quiz")
    return assigned


def _questions_json(questions: list[Question]) -> str:
    return json.dumps([q.model_dump(mode="json") for q in questions])


def score_answers(
    questions: list[Question], answers: list[AnswerIn]
) -> tuple[int, list[AttemptAnswer]]:
    """Score a submission in a single pass over the answers.

    Args:
        questions: The quiz's questions
        answers: Submitted answers

    Returns:
        Tuple of (score, scored answers)

    Raises:
        BadRequestError: If an answer names an unknown question or a
            question is answered twice
    """
    by_id = {q.id: q for q in questions}
    seen: set[UUID] = set()
    score = 0
    scored = []

    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise BadRequestError("Invalid question ID provided")
        if answer.question_id in seen:
            raise BadRequestError("Each question may only be answered once")
        seen.add(answer.question_id)

        is_correct = question.correct_answer_index == answer.selected_option_index
        if is_correct:
            score += 1
        scored.append(
            AttemptAnswer(
                question_id=answer.question_id,
                selected_option_index=answer.selected_option_index,
                is_correct=is_correct,
            )
        )

    return score, scored


class QuizService:
    """Service for quizzes and their attempts."""

    async def create_quiz(self, owner_id: UUID, request: CreateQuizRequest) -> Quiz:
        """Create a quiz owned by the given account.

        Raises:
            BadRequestError: If the title is blank or there are no questions
        """
        title = request.title.strip()
        if not title or not request.questions:
            raise BadRequestError("Title and at least one question are required")

        quiz_id = uuid4()
        now = datetime.now(timezone.utc)
        questions = _assign_question_ids(request.questions)
        description = request.description.strip() if request.description else None

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO quizzes (id, owner_id, title, description, questions, time_limit, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8)
                """,
                quiz_id,
                owner_id,
                title,
                description,
                _questions_json(questions),
                request.time_limit,
                now,
                now,
            )

        logger.info(
            "quiz_created",
            quiz_id=str(quiz_id),
            owner_id=str(owner_id),
            question_count=len(questions),
        )

        return Quiz(
            id=quiz_id,
            owner_id=owner_id,
            title=title,
            description=description,
            questions=questions,
            time_limit=request.time_limit,
            created_at=now,
            updated_at=now,
        )

    async def list_owner_quizzes(self, owner_id: UUID) -> list[QuizSummary]:
        """Quizzes created by an account, newest first."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, title, description, created_at
                FROM quizzes
                WHERE owner_id = $1
                ORDER BY created_at DESC
                """,
                owner_id,
            )

        return [
            QuizSummary(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def get_quiz(self, quiz_id: UUID) -> Quiz:
        """Get a quiz with its questions.

        Raises:
            NotFoundError: If the quiz does not exist
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_QUIZ_COLUMNS} FROM quizzes WHERE id = $1",
                quiz_id,
            )

        if row is None:
            raise NotFoundError("Quiz not found")
        return _row_to_quiz(row)

    async def update_quiz(
        self, quiz_id: UUID, owner_id: UUID, request: UpdateQuizRequest
    ) -> Quiz:
        """Apply a partial update to a quiz the caller owns.

        Only fields present in the request body are written. An explicit
        null clears ``description`` or ``time_limit``; omitting them keeps
        the stored values.

        Raises:
            BadRequestError: If the update blanks the title, empties the
                questions or repeats a question id
            NotFoundError: If the quiz does not exist or belongs to someone else
        """
        sent = request.model_fields_set

        set_clauses = []
        params = []
        param_idx = 1

        if "title" in sent:
            title = request.title.strip() if request.title is not None else ""
            if not title:
                raise BadRequestError("Title cannot be empty")
            set_clauses.append(f"title = ${param_idx}")
            params.append(title)
            param_idx += 1

        if "description" in sent:
            set_clauses.append(f"description = ${param_idx}")
            params.append(request.description)
            param_idx += 1

        if "questions" in sent:
            if not request.questions:
                raise BadRequestError("A quiz needs at least one question")
            set_clauses.append(f"questions = ${param_idx}::jsonb")
            params.append(_questions_json(_assign_question_ids(request.questions)))
            param_idx += 1

        if "time_limit" in sent:
            set_clauses.append(f"time_limit = ${param_idx}")
            params.append(request.time_limit)
            param_idx += 1

        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.extend([quiz_id, owner_id])

        query = f"""
            UPDATE quizzes
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx} AND owner_id = ${param_idx + 1}
            RETURNING {_QUIZ_COLUMNS}
        """

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            raise NotFoundError("Quiz not found or unauthorized")

        logger.info("quiz_updated", quiz_id=str(quiz_id), owner_id=str(owner_id))
        return _row_to_quiz(row)

    async def delete_quiz(self, quiz_id: UUID, owner_id: UUID) -> None:
        """Delete a quiz the caller owns, along with its attempts.

        Raises:
            NotFoundError: If the quiz does not exist or belongs to someone else
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM quizzes WHERE id = $1 AND owner_id = $2",
                quiz_id,
                owner_id,
            )

        if result != "DELETE 1":
            raise NotFoundError("Quiz not found or unauthorized")

        logger.info("quiz_deleted", quiz_id=str(quiz_id), owner_id=str(owner_id))

    async def get_leaderboard(self, quiz_id: UUID) -> list[LeaderboardEntry]:
        """Each participant's best attempt, highest score first.

        Ties on score go to whoever completed first.

        Raises:
            NotFoundError: If the quiz does not exist or has no attempts
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT username, score, completed_at
                FROM (
                    SELECT DISTINCT ON (a.user_id)
                        acc.username, a.score, a.completed_at
                    FROM attempts a
                    JOIN accounts acc ON acc.id = a.user_id
                    WHERE a.quiz_id = $1
                    ORDER BY a.user_id, a.score DESC, a.completed_at ASC
                ) best
                ORDER BY score DESC, completed_at ASC
                """,
                quiz_id,
            )

            if not rows:
                exists = await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM quizzes WHERE id = $1)",
                    quiz_id,
                )
                if not exists:
                    raise NotFoundError("Quiz not found")
                raise NotFoundError("No attempts found for this quiz")

        return [
            LeaderboardEntry(
                username=row["username"],
                score=row["score"],
                completed_at=row["completed_at"],
            )
            for row in rows
        ]

    async def submit_attempt(
        self, quiz_id: UUID, user_id: UUID, request: AttemptRequest
    ) -> AttemptOutcome:
        """Score and store an attempt.

        Raises:
            NotFoundError: If the quiz does not exist
            BadRequestError: If an answer is invalid
        """
        quiz = await self.get_quiz(quiz_id)
        score, scored = score_answers(quiz.questions, request.answers)

        attempt_id = uuid4()
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO attempts (id, quiz_id, user_id, score, answers, time_taken, completed_at, created_at)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8)
                """,
                attempt_id,
                quiz_id,
                user_id,
                score,
                json.dumps([a.model_dump(mode="json") for a in scored]),
                request.time_taken,
                now,
                now,
            )

        logger.info(
            "attempt_recorded",
            attempt_id=str(attempt_id),
            quiz_id=str(quiz_id),
            user_id=str(user_id),
            score=score,
        )

        return AttemptOutcome(
            attempt_id=attempt_id,
            score=score,
            total_questions=len(quiz.questions),
            correct_answers=sum(1 for a in scored if a.is_correct),
        )

    async def list_attempts(self, user_id: UUID) -> list[AttemptSummary]:
        """A user's attempts with their quiz titles, newest first."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT a.id, a.quiz_id, q.title AS quiz_title,
                       q.description AS quiz_description,
                       a.score, a.time_taken, a.completed_at, a.created_at
                FROM attempts a
                LEFT JOIN quizzes q ON q.id = a.quiz_id
                WHERE a.user_id = $1
                ORDER BY a.created_at DESC
                """,
                user_id,
            )

        return [
            AttemptSummary(
                id=row["id"],
                quiz_id=row["quiz_id"],
                quiz_title=row["quiz_title"],
                quiz_description=row["quiz_description"],
                score=row["score"],
                time_taken=row["time_taken"],
                completed_at=row["completed_at"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def get_attempt_results(self, attempt_id: UUID, user_id: UUID) -> AttemptResults:
        """Per-question breakdown of one of the user's attempts.

        Raises:
            NotFoundError: If the attempt is not the user's, or its quiz is gone
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, quiz_id, score, answers, created_at
                FROM attempts
                WHERE id = $1 AND user_id = $2
                """,
                attempt_id,
                user_id,
            )

        if row is None:
            raise NotFoundError("Attempt not found")

        quiz = await self.get_quiz(row["quiz_id"])
        answers = {
            a.question_id: a
            for a in (AttemptAnswer(**item) for item in _load_json(row["answers"]))
        }

        results = []
        for question in quiz.questions:
            answer = answers.get(question.id)
            results.append(
                QuestionResult(
                    question_id=question.id,
                    question_text=question.question_text,
                    options=question.options,
                    correct_answer_index=question.correct_answer_index,
                    explanation=question.explanation,
                    user_selected_option=answer.selected_option_index if answer else None,
                    is_correct=answer.is_correct if answer else False,
                )
            )

        return AttemptResults(
            quiz_title=quiz.title,
            score=row["score"],
            total_questions=len(quiz.questions),
            results=results,
            attempted_at=row["created_at"],
        )
