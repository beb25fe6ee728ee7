import logging
import logging.handlers
import contextvars
from pathlib import Path
from typing import Optional

from core.config import settings
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def _ensure_log_dir(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


client_ip_var = contextvars.ContextVar("client_ip", default="-")
user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")


def bind_log_user(user_id) -> None:
    """Attach the resolved account id to log lines for the rest of the request."""
    user_id_var.set(str(user_id) if user_id is not None else "-")


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Inject per-request context variables
        record.client_ip = client_ip_var.get()
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _build_rotating_file_handler(filename: str, level: int, formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        interval=1,
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def _build_handlers(level: int, log_dir: Path) -> dict[str, logging.Handler]:
    formatter = logging.Formatter(
        fmt="%(levelname)s - %(asctime)s - %(client_ip)s - %(user_id)s - %(api)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    app_file = _build_rotating_file_handler("app.log", level, formatter, log_dir)
    access_file = _build_rotating_file_handler("access.log", level, formatter, log_dir)
    error_file = _build_rotating_file_handler("error.log", logging.WARNING, formatter, log_dir)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    return {
        "app": app_file,
        "access": access_file,
        "error": error_file,
        "console": console_handler,
    }


def _reset_handlers(target_logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    for h in list(target_logger.handlers):
        target_logger.removeHandler(h)
    for h in handlers:
        target_logger.addHandler(h)
    target_logger.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Configure logging with daily rotation and TTL-based retention.

    - Rotates at midnight; keeps last LOG_TTL_DAYS files
    - Applies handlers to root, app, and Uvicorn loggers
    """
    log_dir = Path(settings.LOG_DIR)
    _ensure_log_dir(log_dir)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)

    # Root logger -> app + error + console
    root_logger = logging.getLogger()
    _reset_handlers(root_logger, [handlers["app"], handlers["error"], handlers["console"]], level)

    app_name = app_logger_name or "hris_recovery"
    app_logger = logging.getLogger(app_name)
    app_logger.propagate = False
    _reset_handlers(app_logger, [handlers["app"], handlers["error"], handlers["console"]], level)

    for name in ("uvicorn", "uvicorn.error", "fastapi"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _reset_handlers(lgr, [handlers["app"], handlers["error"], handlers["console"]], level)
    # uvicorn.access -> access + console
    access_logger = logging.getLogger("uvicorn.access")
    access_logger.propagate = False
    _reset_handlers(access_logger, [handlers["access"], handlers["console"]], level)

    return app_logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            client_ip = forwarded.split(",", 1)[0].strip()
        else:
            client_ip = request.client.host if request.client else "-"

        context_token_ip = client_ip_var.set(client_ip or "-")
        context_token_user = user_id_var.set("-")
        context_token_api = api_var.set(f"{request.method} {request.url.path}")
        try:
            return await call_next(request)
        finally:
            client_ip_var.reset(context_token_ip)
            user_id_var.reset(context_token_user)
            api_var.reset(context_token_api)
