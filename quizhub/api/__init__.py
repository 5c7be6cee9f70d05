"""API package exports."""

from quizhub.api.middleware import CorrelationIdMiddleware
from quizhub.api.quizzes import router as quizzes_router
from quizhub.api.users import router as users_router

__all__ = ["CorrelationIdMiddleware", "quizzes_router", "users_router"]
