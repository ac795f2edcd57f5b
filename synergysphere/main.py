import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from synergysphere import __version__
from synergysphere.auth.routes import router as auth_router
from synergysphere.config import CORS_ORIGINS, ENVIRONMENT, HOST, LOG_LEVEL, PORT, is_production_like
from synergysphere.database import Base, engine
from synergysphere.errors import AppError
from synergysphere.routes.notifications import router as notifications_router
from synergysphere.routes.projects import router as projects_router
from synergysphere.routes.tasks import router as tasks_router
from synergysphere.time_utils import utc_now

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


def error_body(message: str, errors=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


# ============== Exception Handlers ==============

async def app_error_handler(request: Request, exc: AppError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors),
        headers=exc.headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location), "message": err.get("msg", "Invalid value")})
    logger.info(f"{request.method} {request.url.path} -> 400: {len(errors)} validation error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error during {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error during {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def create_app() -> FastAPI:
    """Build the API application with routers, CORS and error handling."""
    application = FastAPI(
        title="SynergySphere API",
        description="Team collaboration: projects, members, tasks and notifications",
        version=__version__,
    )

    # CORS middleware for the dashboard frontend
    application.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(SQLAlchemyError, storage_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    application.include_router(auth_router)
    application.include_router(projects_router)
    application.include_router(tasks_router)
    application.include_router(notifications_router)

    # Create tables in development; production schemas are provisioned separately
    @application.on_event("startup")
    def create_tables():
        if not is_production_like():
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables ensured")

    @application.get("/health")
    def health_check():
        return {"status": "OK", "timestamp": utc_now().isoformat(), "environment": ENVIRONMENT}

    return application


app = create_app()


def run():
    """Serve the API with uvicorn (``synergysphere`` console script)."""
    logger.info(f"🚀 SynergySphere API starting on port {PORT} ({ENVIRONMENT})")
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
