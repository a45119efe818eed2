# janus/routes/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from janus.core import errors
from janus.core.couchdb import CouchDB, get_couch
from janus.core.errors import JanusError
from janus.dependencies.session import get_session_store
from janus.schemas.auth import LoginIn, LoginOut, OkOut
from janus.services.login import LoginPipeline
from janus.services.sessions import (
    GatewaySessionStore,
    clear_session_cookie,
    read_session_cookie,
    set_session_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

DEVELOPER_KEY = "developer"


@router.post("/login/", response_model=LoginOut)
def login(
    payload: LoginIn,
    request: Request,
    response: Response,
    couch: CouchDB = Depends(get_couch),
    sessions: GatewaySessionStore = Depends(get_session_store),
):
    if payload.key == DEVELOPER_KEY:
        # Developer accounts are provisioned with janus-admin, not through login
        raise JanusError(errors.DEVELOPER_LOGIN_UNSUPPORTED)

    # The page's origin is the audience the assertion must have been issued for
    audience = request.headers.get("origin", "")
    result = LoginPipeline(couch, sessions=sessions).run(payload.assertion, audience, payload.appkey)

    set_session_cookie(response, result.session_token)
    return {"ok": True, "db": result.db, "name": result.name, "url": result.url}


@router.post("/logout/", response_model=OkOut)
def logout(
    request: Request,
    response: Response,
    sessions: GatewaySessionStore = Depends(get_session_store),
):
    token = read_session_cookie(request)
    if token is not None:
        sessions.revoke(token)
    clear_session_cookie(response)
    return {"ok": True}
