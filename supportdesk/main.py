import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from supportdesk.api.tickets import router as tickets_router
from supportdesk.api.messages import router as messages_router
from supportdesk.api.habits import router as habits_router
from supportdesk.core.config import settings
from supportdesk.core.db import Database, get_db
from supportdesk.core.errors import ServiceError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_timeout=settings.DB_CONNECT_TIMEOUT,
    ).init(create_tables=settings.DB_CREATE_TABLES)
    app.state.database = database
    logger.info("%s started", settings.PROJECT_NAME)
    try:
        yield
    finally:
        database.dispose()
        logger.info("%s stopped", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Support tickets with threaded messaging, plus a daily habit-compliance tracker.",
    version="1.0.0",
    lifespan=lifespan,
)


def error_response(request: Request, status_code: int, message: str, error=None, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    content.update(extra)
    content["request_id"] = getattr(request.state, "request_id", None)
    return JSONResponse(status_code=status_code, content=content)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%r)", request.method, request.url.path, exc.message, exc.error)
    return error_response(request, exc.status_code, exc.message, exc.error)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")), "message": err.get("msg")}
        for err in exc.errors()
    ]
    fields = ", ".join(sorted({problem["field"] for problem in problems if problem["field"]}))
    return error_response(request, 400, f"Missing or invalid fields: {fields}" if fields else "Invalid request", problems)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(request, 404, "Route not found", path=request.url.path)
    return error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage error on %s %s", request.method, request.url.path)
    transient = isinstance(exc, (OperationalError, PoolTimeoutError))
    message = "Storage temporarily unavailable" if transient else "Storage error"
    return error_response(request, 500, message, str(getattr(exc, "orig", None) or exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "Internal server error", str(exc))


@app.get("/api/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Health check database ping failed: %s", exc)
        db_status = "error"
    return {
        "status": "ok",
        "message": "Support Ticket API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
    }


app.include_router(tickets_router)
app.include_router(messages_router)
app.include_router(habits_router)
