import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from app.api.auth import router as auth_router
from app.api.coupons import router as coupons_router
from app.api.orders import router as orders_router
from app.api.payments import router as payments_router
from app.api.shipping import router as shipping_router
from app.api.tax import router as tax_router
from app.core import AppError, engine, init_db, is_paytabs_configured, settings
from app.core.rate_limit import limiter
from app.models import ErrorLog
from app.logging import setup_logging

setup_logging()
log = logging.getLogger(__name__)


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("PayTabs configured: %s (environment=%s)", "yes" if is_paytabs_configured() else "NO", settings.environment)
    yield


app = FastAPI(
    title="Storefront API",
    description="Catalog, checkout pricing and PayTabs payment reconciliation",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    exc: Exception | None = None,
) -> JSONResponse:
    body = {"status": "error", "code": code, "message": message, "status_code": status_code}
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    if settings.debug and exc is not None:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        log.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.code, exc)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Too many requests. Please wait a minute.", "RATE_LIMIT_EXCEEDED")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    first = errs[0] if errs else {}
    loc = [str(p) for p in (first.get("loc") or []) if p != "body"]
    message = first.get("msg") or "Invalid request"
    if loc:
        message = f"{'.'.join(loc)}: {message}"
    response = _error_response(request, 422, message, "VALIDATION_ERROR")
    return response


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(request, exc.status_code, detail, "HTTP_ERROR")


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=exc)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                user_id=None,
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__))[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Unexpected server error.", "INTERNAL_ERROR", exc)


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(tax_router)
app.include_router(shipping_router)
app.include_router(coupons_router)


@app.get("/health")
def health():
    db_status = "ok"
    try:
        with Session(engine) as db:
            db.exec(text("SELECT 1"))
    except Exception as e:
        log.warning("Health DB check failed: %s", e)
        db_status = "error"
    return {"status": "ok", "database": db_status, "paytabs_configured": is_paytabs_configured()}
