import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud
from .config import Settings
from .db import Database
from .errors import ApiError, ConfigError, validation_error
from .logging_setup import setup_logging
from .routes import tasks

logger = logging.getLogger(__name__)


def _validation_messages(exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        prefix = f"{'.'.join(loc)}: " if loc else ""
        messages.append(f"{prefix}{error.get('msg', 'Invalid value')}")
    return messages or ["Invalid request body"]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; settings default to the process environment"""
    if settings is None:
        settings = Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings)
        await database.connect()
        app.state.database = database
        try:
            async with database.session() as session:
                logger.info("Task store ready with %d tasks", await crud.count_tasks(session))
            yield
        finally:
            await database.close()

    app = FastAPI(
        title="Task Manager API",
        description="CRUD API for tasks with duplicate-title detection",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = validation_error(_validation_messages(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content={"message": "Not Found"})
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"message": "Internal Server Error"})

    app.include_router(tasks.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {"message": "Welcome to the Task Manager API!"}

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "OK"}

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn"""
    import uvicorn

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        setup_logging()
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    setup_logging(settings.log_level)
    logger.info("Starting Task Manager API on %s:%d", settings.host, settings.port)

    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except SystemExit as e:
        # Recent uvicorn exits by itself (status 3) when the lifespan fails
        if server.started or e.code in (None, 0):
            raise

    if not server.started:
        logger.error("Failed to connect to database; exiting")
        sys.exit(1)


if __name__ == "__main__":
    run()
