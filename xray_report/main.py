import logging
import time
import uuid
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from xray_report.api import api_router
from xray_report.api.deps import build_services
from xray_report.core.config import is_inference_configured, settings
from xray_report.core.rate_limit import limiter
from xray_report.logging import setup_logging

setup_logging(level=settings.log_level.upper())
log = logging.getLogger("xray_report")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own services before startup
    services = getattr(app.state, "services", None) or build_services()
    app.state.services = services
    log.info(
        "Starting: store=%s upload_dir=%s inference key loaded: %s",
        services.store_backend,
        services.blobs.root,
        "yes" if is_inference_configured() else "NO (set INFERENCE_API_KEY in .env)",
    )
    yield
    await services.worker.shutdown()
    log.info("Shut down")


app = FastAPI(
    title="X-ray Report API",
    description="Upload an X-ray image and receive an AI-written diagnostic-style report",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = list(first.get("loc") or [])
    field = str(loc[-1]) if loc else None
    if first.get("type") == "missing" and field:
        return f"Missing field: {field}"
    return first.get("msg") or "Invalid request."


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    rid = getattr(request.state, "request_id", None)
    body = {"error": _validation_error_message(exc), "status_code": 422}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    path = (request.url.path or "").strip()
    if path.startswith("/analyze"):
        user_msg = "Failed to start analysis"
    elif path.startswith("/upload"):
        user_msg = "Failed to upload file"
    else:
        user_msg = "Unexpected server error."
    return _error_response(request, 500, user_msg)


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
app.include_router(api_router)


@app.get("/health")
def health(request: Request):
    services = getattr(request.app.state, "services", None)
    return {
        "status": "ok",
        "inference_configured": is_inference_configured(),
        "store": services.store_backend if services else settings.store_backend,
    }
