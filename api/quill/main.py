from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from fastapi.staticfiles import StaticFiles  # noqa: E402

from . import schemas  # noqa: E402
from .errors import QuillError  # noqa: E402
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .routers import ai, auth, comments, notifications, posts, system  # noqa: E402
from .settings import FRONTEND_URL, RUN_MIGRATIONS  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    # Logging is already configured by this module
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations() -> None:
    logger.info("Running Alembic migrations...")
    try:
        command.upgrade(_alembic_config(), "head")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise
    logger.info("run_migrations: Completed successfully.")


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return

    if RUN_MIGRATIONS:
        run_migrations()
    else:
        logger.info("run_startup_tasks: RUN_MIGRATIONS is off, skipping migrations.")

    _STARTUP_COMPLETE = True
    logger.info("Startup tasks completed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't start until these complete
    run_startup_tasks()
    logger.info("Quill API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Quill API",
    version="1.0.0",
    description="Social blogging API",
    lifespan=lifespan,
)


@app.exception_handler(QuillError)
async def quill_error_handler(request: Request, exc: QuillError) -> JSONResponse:
    """Render service errors as RFC 7807 problem details."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    problem = schemas.Problem(title=exc.title, status=exc.status_code, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


def _cors_origins() -> list[str]:
    """Comma-separated CORS_ORIGINS; defaults to the local frontend."""
    raw = os.getenv("CORS_ORIGINS", FRONTEND_URL)
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if "*" in origins:
        logger.warning("CORS_ORIGINS allows any origin; credentials will be sent cross-site")
    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


app.include_router(system.router)
app.include_router(auth.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(notifications.router)
app.include_router(ai.router)


# Serve stored avatars and post images
_vault_location = os.getenv("VAULT_LOCATION")
if _vault_location:
    Path(_vault_location).mkdir(parents=True, exist_ok=True)
    public_prefix = os.getenv("VAULT_PUBLIC_URL", "/vault").rstrip("/")
    if public_prefix.startswith("/"):
        app.mount(public_prefix, StaticFiles(directory=_vault_location), name="vault")
        logger.info(f"Mounted vault at {public_prefix} from {_vault_location}")
