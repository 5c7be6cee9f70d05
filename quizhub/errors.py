"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``quizhub.main`` turns every ``ApiError`` into the
``{success: false, message}`` envelope with the matching status code.
"""


class ApiError(Exception):
    """Base exception carrying an HTTP status code and a client-safe message."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ApiError):
    """Malformed or missing input."""

    status_code = 400


class UnauthorizedError(ApiError):
    """Missing, invalid, expired or superseded token, or bad credentials."""

    status_code = 401


class NotFoundError(ApiError):
    """No matching account or resource."""

    status_code = 404


class ConflictError(ApiError):
    """Uniqueness violation."""

    status_code = 409


class InternalError(ApiError):
    """Unexpected store or crypto failure."""

    status_code = 500


class TokenInvalidError(Exception):
    """Raised by the token service when a JWT cannot be trusted.

    Attributes:
        reason: Human-readable cause ("jwt expired", "invalid signature", ...)
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
