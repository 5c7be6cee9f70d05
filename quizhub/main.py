"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizhub.api.middleware import CorrelationIdMiddleware
from quizhub.api.quizzes import router as quizzes_router
from quizhub.api.users import router as users_router
from quizhub.config import get_settings
from quizhub.errors import ApiError
from quizhub.models.response import ErrorResponse
from quizhub.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from quizhub.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - every store call will fail until it is reachable",
        )

    logger.info("application_started", log_level=settings.log_level, port=settings.port)

    yield

    try:
        from quizhub.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


app = FastAPI(
    title="QuizHub API",
    description="Create quizzes, share attempt links, submit answers and compare scores",
    version="0.1.0",
    lifespan=lifespan,
)


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    """Build the uniform ``{success: false, message}`` error envelope."""
    correlation_id = getattr(request.state, "correlation_id", None)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    body = ErrorResponse(message=message, correlation_id=correlation_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Convert service errors into the error envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log("api_error", status_code=exc.status_code, message=exc.message, path=request.url.path)
    return _error_response(request, exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Framework-level HTTP errors (unknown route, wrong method) use the same envelope."""
    return _error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 Bad Request."""
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = f"Field '{field}': {first_error.get('msg', 'Validation failed')}"
    else:
        message = "Request validation failed"

    logger.warning("validation_error", detail=message)
    return _error_response(request, 400, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected becomes a 500 without internal detail."""
    structlog.get_logger().exception("unhandled_exception", path=request.url.path)
    return _error_response(request, 500, "Internal server error")


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(quizzes_router)


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "API WORKING"


@app.get("/health")
async def health() -> dict:
    """Report database connectivity."""
    from quizhub.database import health_check

    healthy = await health_check()
    return {"status": "ok" if healthy else "degraded", "database": healthy}


def run() -> None:
    """Console entry point: serve the app on the configured port."""
    import uvicorn

    uvicorn.run("quizhub.main:app", host="0.0.0.0", port=get_settings().port)
