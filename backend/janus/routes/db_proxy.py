# janus/routes/db_proxy.py
"""
Pass-through to CouchDB for tenant databases.

The locator returned by ``/login/`` points here. Requests are forwarded with
the caller's own native session only, so CouchDB's ``_security`` objects decide
what each user may touch; admin credentials are never attached.
"""
from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from janus.core import errors
from janus.core.couchdb import NATIVE_SESSION_COOKIE, CouchDB, CouchUnavailableError, get_couch
from janus.core.errors import JanusError
from janus.services.sessions import read_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(tags=["db"])

PROXY_PREFIX = "/db/"

FORWARDED_REQUEST_HEADERS = ("accept", "content-type", "if-match", "if-none-match", "destination")
# CouchDB may refresh its cookie; the gateway record is keyed by the original token, so don't pass it on.
DROPPED_RESPONSE_HEADERS = frozenset({"connection", "keep-alive", "transfer-encoding", "set-cookie"})


def _upstream_path(request: Request) -> str:
    raw = request.scope.get("raw_path")
    path = raw.decode("latin-1").split("?", 1)[0] if raw else quote(request.url.path)
    path = path[len(PROXY_PREFIX):] if path.startswith(PROXY_PREFIX) else path.lstrip("/")
    query = request.url.query
    return f"{path}?{query}" if query else path


def _upstream_headers(request: Request) -> dict[str, str]:
    headers = {k: v for k, v in request.headers.items() if k.lower() in FORWARDED_REQUEST_HEADERS}
    token = read_session_cookie(request)
    if token is not None:
        headers["Cookie"] = f"{NATIVE_SESSION_COOKIE}={token}"
    return headers


@router.api_route("/db/{path:path}", methods=["GET", "HEAD", "POST", "PUT", "DELETE"])
async def proxy(path: str, request: Request, couch: CouchDB = Depends(get_couch)):
    body = await request.body()
    try:
        upstream = await run_in_threadpool(
            couch.forward,
            request.method,
            _upstream_path(request),
            headers=_upstream_headers(request),
            content=body or None,
        )
    except CouchUnavailableError:
        raise JanusError(errors.DATABASE_UNAVAILABLE, status_code=502)

    headers = {k: v for k, v in upstream.headers.items() if k.lower() not in DROPPED_RESPONSE_HEADERS}
    return StreamingResponse(
        upstream.iter_raw(),
        status_code=upstream.status_code,
        headers=headers,
        background=BackgroundTask(upstream.close),
    )
