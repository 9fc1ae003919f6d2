from contextlib import asynccontextmanager
from typing import Optional
import json
import logging
import traceback

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from meetup.auth.auth import decode_user_id, get_request_token
from meetup.database import Base, engine, get_db
import meetup.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from meetup.errors import MeetupError
from meetup.routers import activities as activities_router
from meetup.routers import meetings as meetings_router
from meetup.routers import notifications as notifications_router
from meetup.routers import participants as participants_router
from meetup.utils.logging_config import setup_logging

_REDACTED_KEYS = ("password", "token", "secret")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logging.getLogger("meetup").info("Database initialized.")
    yield
    logging.getLogger("meetup").info("Application shutdown.")


app = FastAPI(
    title="Meetup",
    description="Community meetup backend: meetings, participation and activity attendance",
    lifespan=lifespan,
)


def _summarize_payload(body: bytes) -> Optional[str]:
    if not body:
        return None
    try:
        parsed = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return "unavailable"
    if not isinstance(parsed, dict):
        return type(parsed).__name__
    redacted = {}
    for key, value in parsed.items():
        if any(marker in str(key).lower() for marker in _REDACTED_KEYS):
            redacted[key] = "***"
        elif isinstance(value, (str, int, float, bool, type(None))):
            redacted[key] = value
        else:
            redacted[key] = type(value).__name__
    return json.dumps(redacted, ensure_ascii=True)


async def audit_action_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    method = request.method.upper()
    if method not in {"POST", "PUT", "PATCH", "DELETE"}:
        return await call_next(request)

    path = request.url.path
    if not path.startswith("/api/"):
        return await call_next(request)

    user_id = "anonymous"
    token = await get_request_token(request)
    if token:
        try:
            user_id = decode_user_id(token) or "anonymous"
        except JWTError:
            user_id = "invalid-token"

    payload_summary: Optional[str] = None
    if request.headers.get("content-type", "").lower().startswith("application/json"):
        payload_summary = _summarize_payload(await request.body())

    response = await call_next(request)

    details = {
        "method": method,
        "path": path,
        "status": response.status_code,
        "user": user_id,
    }
    if payload_summary:
        details["payload"] = payload_summary
    logging.getLogger("audit").info("Audit action: %s", details)
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=audit_action_middleware)

# Include routers
app.include_router(meetings_router.router)
app.include_router(participants_router.router)
app.include_router(participants_router.my_participations_router)
app.include_router(activities_router.meeting_activities_router)
app.include_router(activities_router.router)
app.include_router(activities_router.calendar_router)
app.include_router(notifications_router.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger = logging.getLogger("meetup")
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs.", "code": "INTERNAL_ERROR"},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger = logging.getLogger("meetup")
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error: {exc.detail}")
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    code = exc.code if isinstance(exc, MeetupError) else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": code},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger = logging.getLogger("meetup")
    # Extract just the error messages for a simpler, guaranteed-serializable response
    error_messages = [err["msg"] for err in exc.errors()]

    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=422,
        content={"detail": error_messages, "code": "VALIDATION_ERROR"},
    )


@app.get("/health", tags=["healthcheck"])
async def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        logging.getLogger("database").error(f"Health check database connection error: {e}")
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        )
