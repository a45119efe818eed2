# janus/dependencies/session.py
from __future__ import annotations

import logging

from fastapi import Depends, Request

from janus.core import errors
from janus.core.couchdb import CouchDB, get_couch
from janus.core.errors import JanusError, unauthorized
from janus.services.sessions import (
    GatewaySessionStore,
    SessionCheckError,
    SessionExpiredError,
    read_session_cookie,
)

logger = logging.getLogger(__name__)


def get_session_store(couch: CouchDB = Depends(get_couch)) -> GatewaySessionStore:
    return GatewaySessionStore(couch)


def get_session_user(
    request: Request,
    sessions: GatewaySessionStore = Depends(get_session_store),
) -> str:
    """
    Validates:
      - a session cookie is present
      - a gateway record exists for it
      - CouchDB still authenticates it
    Returns:
      - the owning username
    """
    token = read_session_cookie(request)
    if token is None:
        logger.info("%s %s rejected: no session cookie", request.method, request.url.path)
        raise unauthorized(errors.PRIVILEGES_REQUIRED)

    try:
        return sessions.validate(token)
    except SessionExpiredError:
        raise unauthorized(errors.SESSION_EXPIRED)
    except SessionCheckError:
        raise JanusError(errors.ERROR_CHECKING_SESSION)
