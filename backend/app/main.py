from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import application as application_api
from .api import auth as auth_api
from .api import job as job_api
from .api import realtime as realtime_api
from .config import FRONTEND_ORIGINS, LOG_LEVEL
from .database import init_db
from .services.notifications import install_relay
from .services.rate_limiter import api_limit
from .utils.error_handlers import (
    AppError,
    app_error_response,
    create_error_response,
    get_error_message,
    http_error_response,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    relay = app.state.notifier
    await relay.start()
    yield
    await relay.stop()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Domain errors carry their own status code and kind."""
        return app_error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTPException with user-friendly messages."""
        return http_error_response(exc)

    @app.exception_handler(OperationalError)
    async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError):
        """Handle database operational errors."""
        logger.exception("Database OperationalError: %s", exc)
        return create_error_response(503, get_error_message("database_error"), kind="internal")

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        """Handle general database errors."""
        logger.exception("Database SQLAlchemyError: %s", exc)
        return create_error_response(500, get_error_message("database_error"), kind="internal")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors globally."""
        logger.exception("Unhandled exception: %s", exc)
        return create_error_response(500, get_error_message("server_error"), kind="internal")


def create_app() -> FastAPI:
    app = FastAPI(title="Job Board API", lifespan=lifespan)
    install_relay(app)
    register_exception_handlers(app)

    limited = [Depends(api_limit)]
    app.include_router(auth_api.router, dependencies=limited)
    app.include_router(job_api.router, dependencies=limited)
    app.include_router(application_api.router, dependencies=limited)
    app.include_router(realtime_api.router)

    @app.get("/")
    def root():
        return {"message": "Welcome to Job Board API"}

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return JSONResponse({"status": "Backend running", "service": "Job Board API"})

    _default_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[*_default_origins, *FRONTEND_ORIGINS],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
