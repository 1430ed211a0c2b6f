"""FastAPI application factory"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.core.config import get_settings
from src.core.exceptions import (
    AuthError,
    CooldownError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    PresenceServiceError,
    StoreError,
)
from src.core.logging import setup_logging
from src.db.database import init_db, purge_expired_entries

logger = logging.getLogger(__name__)

# Exception -> (status code, error label). First match wins, so subclasses go before their parents.
ERROR_STATUS: list[tuple[type[PresenceServiceError], int, str]] = [
    (AuthError, 401, "Unauthorized"),
    (ForbiddenError, 403, "Forbidden"),
    (InvalidRequestError, 400, "Invalid payload"),
    (NotFoundError, 404, "Not found"),
    (StoreError, 500, "Store failure"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_logging(settings)
    init_db()

    purge_task = None
    if settings.purge_interval_sec > 0:
        purge_task = asyncio.create_task(purge_loop(settings.purge_interval_sec))

    logger.info("Presence registry ready")
    yield

    if purge_task:
        purge_task.cancel()


async def purge_loop(interval_sec: int, purge: Callable[[], int] = purge_expired_entries) -> None:
    """Periodically drop expired rows: keys that are pruned from their index are never read (and lazily removed) again."""
    while True:
        await asyncio.sleep(interval_sec)
        try:
            await asyncio.to_thread(purge)
        except StoreError as e:
            logger.warning(f"Expired entry sweep failed, retrying in {interval_sec}s: {e}")


async def handle_service_error(request: Request, exc: Exception) -> JSONResponse:
    for exc_type, status_code, label in ERROR_STATUS:
        if isinstance(exc, exc_type):
            if status_code >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return JSONResponse({"error": label, "message": str(exc)}, status_code=status_code)
    return await handle_unexpected_error(request, exc)


async def handle_cooldown(request: Request, exc: CooldownError) -> JSONResponse:
    return JSONResponse(
        {"error": "Cooldown", "message": str(exc), "retryAfter": exc.retry_after_sec},
        status_code=429,
        headers={"Retry-After": str(exc.retry_after_sec)},
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [str(error.get("msg", "")) for error in exc.errors()]
    return JSONResponse({"error": "Invalid payload", "details": details}, status_code=400)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"error": "Internal error", "message": str(exc)}, status_code=500)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Presence Registry",
        description="Live player presence and moderation command bus for game servers",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["content-type", "x-api-key", "x-admin-key"],
    )

    @app.middleware("http")
    async def no_store(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        return response

    app.add_exception_handler(CooldownError, handle_cooldown)
    app.add_exception_handler(PresenceServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=None)
