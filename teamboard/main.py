from contextlib import asynccontextmanager
from typing import AsyncGenerator
import asyncio
import os
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from alembic.config import Config
from alembic import command

from teamboard.db import init_db
from teamboard.db.database import session_scope
from teamboard.core import get_settings
from teamboard.core.exceptions import AppException, TransientStoreError
from teamboard.api.v1 import api_router
from teamboard.core.middleware import RequestLoggingMiddleware
from teamboard.logs import api_logger, debug_logger
from teamboard.services.permission_service import PermissionService

# Get application settings
settings = get_settings()

GENERIC_ERROR_MESSAGE = "Internal server error"


def run_migrations() -> None:
    alembic_cfg = Config(os.path.join(Path(__file__).parent.parent, "alembic.ini"))
    command.upgrade(alembic_cfg, "head")


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        if settings.RUN_MIGRATIONS:
            # env.py drives its own event loop
            await asyncio.to_thread(run_migrations)
        else:
            await init_db()

        async with session_scope() as session:
            await PermissionService.seed_catalog(session)
        api_logger.info("Database schema and permission catalog are ready")
    except Exception:
        debug_logger.log_exception("Database initialization failed")
        raise

    yield

    await PermissionService.close()


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for team kanban boards with role-based permissions",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        debug_logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": GENERIC_ERROR_MESSAGE})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    debug_logger.log_exception(f"Database error on {request.method} {request.url.path}")
    return await app_exception_handler(request, TransientStoreError())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Validation failed") if errors else "Validation failed"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message, "errors": [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in errors
        ]},
    )


# Include API router
app.include_router(api_router)


@app.get("/")
async def root(request: Request):
    """Health check endpoint"""
    api_logger.info(f"Received health check request: {request.method} {request.url}")
    return {"message": f"{settings.PROJECT_NAME} is running"}


if __name__ == "__main__":
    import uvicorn

    api_logger.info("Starting server on http://0.0.0.0:8000")

    uvicorn.run(
        "teamboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
