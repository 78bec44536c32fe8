import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import Settings
from shared.dependencies import get_db, get_settings
from shared.exceptions import AppError
from shared.infrastructure.database import (
    build_engine,
    build_session_factory,
    init_schema,
    ping,
)
from shared.log import configure_logging
from shared.schemas import ErrorResponse, HealthResponse
from users.interfaces.routes import router as users_router

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["health"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting %s (env: %s)", settings.APP_NAME, settings.APP_ENV)
    if settings.AUTO_CREATE_SCHEMA:
        await init_schema(app.state.engine)
    yield
    await app.state.engine.dispose()
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router)
    app.include_router(users_router)
    return app


def _error_response(
    status_code: int, error: str, code: str, details: dict | None = None, headers=None
) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError):
    details = dict(exc.details) if exc.details else {}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if exc.__cause__ is not None and not request.app.state.settings.is_production:
            details["cause"] = str(exc.__cause__)
    return _error_response(exc.status_code, exc.message, exc.code, details or None)


def _validation_code(errors) -> str:
    first = errors[0] if errors else {}
    if first.get("type") == "json_invalid":
        return "INVALID_JSON"
    source = first.get("loc", ("body",))[0]
    if source == "path":
        return "INVALID_USER_ID"
    if source == "query":
        return "INVALID_QUERY_PARAMS"
    return "VALIDATION_ERROR"


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    details = {
        "errors": [
            {"loc": [str(part) for part in e["loc"]], "msg": e["msg"], "type": e["type"]}
            for e in errors
        ]
    }
    return _error_response(400, "Invalid request", _validation_code(errors), details)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={"error": "Route not found", "path": request.url.path},
        )
    code = "METHOD_NOT_ALLOWED" if exc.status_code == 405 else "HTTP_ERROR"
    return _error_response(
        exc.status_code, str(exc.detail), code, headers=getattr(exc, "headers", None)
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error", "INTERNAL_ERROR")


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    database = "healthy"
    try:
        await ping(db)
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database ping failed: %s", exc)
        database = "unhealthy"

    if database != "healthy":
        response.status_code = 503
    return HealthResponse(
        status="ok" if database == "healthy" else "degraded",
        services={"api": "healthy", "database": database},
        version=settings.APP_VERSION,
    )


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.APP_PORT)
