import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.exceptions import HTTPException, RequestValidationError
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from payportal import __version__, database
from payportal.api import customer, employee
from payportal.config import settings
from payportal.errors import PortalError, StorageFault
from payportal.logging_config import setup_logging
from payportal.security import security_config, validate_environment
from payportal.services.rate_limit import limiter, rate_limit_exceeded_handler

setup_logging(settings.log_level)
validate_environment()

logger = logging.getLogger(__name__)

app = FastAPI(title="International Payments Portal API", version=__version__)


def _error_body(code: str, message: str, data: dict | None = None) -> dict:
    body = {"success": False, "error": code, "message": message}
    if data:
        body["data"] = data
    return body


# JSON error responses
@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message, exc.data))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "request"] = err.get("msg", "Invalid value")
    return JSONResponse(status_code=400, content=_error_body("ValidationError", "Validation failed", {"fields": fields}))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=_error_body("HTTPError", message), headers=exc.headers)


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    data = {"detail": str(exc)} if settings.is_development else None
    return JSONResponse(status_code=500, content=_error_body(StorageFault.code, "Storage error", data))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    data = {"detail": str(exc)} if settings.is_development else None
    return JSONResponse(status_code=500, content=_error_body("InternalError", "Internal server error", data))


# Security and rate limiting
security_config.apply_security_middleware(app)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# Basic routes
@app.get("/")
def root():
    return {"message": "Customer International Payments Portal API", "version": __version__, "status": "Active"}


@app.head("/")
def root_head():
    return Response(status_code=200)


@app.get("/health")
async def health_check():
    db_status = "connected"
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Health check database error: %s", e)
        db_status = "error"
    redis_status = "not configured"
    if database.redis_client is not None:
        try:
            await database.redis_client.ping()
            redis_status = "connected"
        except Exception as e:
            logger.warning("Health check redis error: %s", e)
            redis_status = "error"
    return {"status": "ok" if db_status == "connected" else "degraded", "database": db_status, "redis": redis_status}


# Routers
app.include_router(employee.router, prefix="/api")
app.include_router(customer.router, prefix="/api")


@app.on_event("startup")
async def on_startup():
    if not settings.is_production:
        await database.init_models()
