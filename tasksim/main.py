import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings as default_settings
from .logging_setup import setup_logging
from .responses import IndentedORJSONResponse
from .routers import tasks
from .storage.repo import TaskRegistry
from worker.runner import TaskRunner, WorkerOptions

logger = logging.getLogger("tasksim.api")


def error_response(request: Request, status_code: int, text: str) -> IndentedORJSONResponse:
    """Error body in the service's wire format: 404s carry ``message``, everything else ``error``."""
    key = "message" if status_code == 404 else "error"
    request_id = getattr(request.state, "request_id", None)
    headers = {"X-Request-ID": request_id} if request_id else None
    return IndentedORJSONResponse(
        status_code=status_code,
        content={key: text, "request_id": request_id},
        headers=headers,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    registry = TaskRegistry()
    runner = TaskRunner(registry, WorkerOptions.from_settings(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        runner.shutdown(timeout=settings.task_poll_interval_seconds * 4)

    app = FastAPI(title="Task Simulator API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.runner = runner

    @app.middleware("http")
    async def tag_request(request: Request, call_next):
        request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        logger.info(
            "%s %s -> %s request_id=%s elapsed_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            request.state.request_id,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        return error_response(request, exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        logger.exception("request failed path=%s", request.url.path, exc_info=exc)
        return error_response(request, 500, "Internal Server Error")

    @app.get("/health")
    def health():
        return {"status": "ok", "tasks": len(registry), "active_workers": runner.active_count()}

    app.include_router(tasks.router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    setup_logging(default_settings.log_level.upper(), json_format=default_settings.log_format == "json")
    logger.info("starting HTTP server host=%s port=%s", default_settings.host, default_settings.port)
    uvicorn.run(app, host=default_settings.host, port=default_settings.port, log_config=None)
