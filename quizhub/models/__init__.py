"""Models package exports."""

from quizhub.models.auth import LoginResponse, TokenPair
from quizhub.models.quiz import Question, Quiz
from quizhub.models.response import ApiResponse, ErrorResponse
from quizhub.models.user import Account, AccountCredentials

__all__ = [
    "Account",
    "AccountCredentials",
    "ApiResponse",
    "ErrorResponse",
    "LoginResponse",
    "Question",
    "Quiz",
    "TokenPair",
]
