import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from janus.core import errors
from janus.core.config import settings, require_db_url
from janus.core.errors import JanusError
from janus.routes.apps import router as apps_router
from janus.routes.auth import router as auth_router
from janus.routes.db_proxy import router as db_proxy_router

logger = logging.getLogger(__name__)

require_db_url()

app = FastAPI(title="Janus")
logger.info(
    "Startup config: ENV=%s couchdb=%s host_url=%s db_prefix=%s",
    settings.ENV,
    settings.db_host,
    settings.HOST_URL,
    settings.DB_PREFIX,
)

_ERROR_KIND_BY_STATUS: dict[int, str] = {
    400: errors.INVALID_REQUEST,
    401: errors.PRIVILEGES_REQUIRED,
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    422: errors.INVALID_REQUEST,
    500: "internal_error",
}


def _error_kind(status_code: int) -> str:
    return _ERROR_KIND_BY_STATUS.get(int(status_code), "http_error")


@app.exception_handler(JanusError)
def janus_exception_handler(request: Request, exc: JanusError):  # noqa: ARG001
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):  # noqa: ARG001
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": _error_kind(exc.status_code)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(status_code=400, content={"error": errors.INVALID_REQUEST})


# Apps on any origin may log in, so by default the caller's Origin is reflected back.
if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )

app.include_router(auth_router)
app.include_router(apps_router)
app.include_router(db_proxy_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


# Registered last so API routes win over same-named files.
if settings.STATIC_DIR and os.path.isdir(settings.STATIC_DIR):
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")


def run() -> None:
    import uvicorn

    uvicorn.run("janus.main:app", host="0.0.0.0", port=settings.PORT)
