"""
Main FastAPI application for the Inkpost publishing API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkpost import __version__
from inkpost.config import AUTO_CREATE_TABLES
from inkpost.errors import InkpostError
from inkpost.routes.auth import router as auth_router
from inkpost.routes.comments import router as comments_router
from inkpost.routes.feed import router as feed_router
from inkpost.routes.health import router as health_router
from inkpost.routes.posts import router as posts_router
from inkpost.routes.users import router as users_router

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    # field_validator errors arrive as "Value error, <our message>"
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    location = ".".join(str(part) for part in first.get("loc", ())[1:])
    return f"{location}: {message}" if location else message


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_TABLES:
        from inkpost.db import init_db
        init_db()
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Inkpost API",
        description="Publishing platform: posts, comments, likes, follows and search",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers; every error body is {"error": message}
    @app.exception_handler(InkpostError)
    async def domain_exception_handler(request: Request, exc: InkpostError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Database operation failed"})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(auth_router)
    app.include_router(posts_router)
    app.include_router(comments_router)
    app.include_router(users_router)
    app.include_router(feed_router)
    app.include_router(health_router)

    @app.get("/")
    def root():
        return {"message": "Inkpost API", "status": "healthy", "version": __version__}

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("inkpost.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
