# janus/routes/apps.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from janus.core import errors
from janus.core.couchdb import CouchDB, get_couch
from janus.core.errors import JanusError
from janus.dependencies.session import get_session_user
from janus.schemas.app import AppIn
from janus.schemas.auth import OkOut
from janus.services.apps import AppLifecycleError, create_app, delete_app

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app", tags=["apps"])


@router.put("/{app_key}/", response_model=OkOut, status_code=status.HTTP_201_CREATED)
def put_app(
    app_key: str,
    payload: AppIn | None = None,
    owner: str = Depends(get_session_user),
    couch: CouchDB = Depends(get_couch),
):
    name = payload.name if payload is not None else ""
    try:
        create_app(couch, app_key, owner, name)
    except AppLifecycleError as exc:
        logger.info("Adding application %s failed: %s", app_key, exc)
        raise JanusError(errors.ERROR_CREATING_APP)
    return {"ok": True}


@router.delete("/{app_key}/", response_model=OkOut)
def remove_app(
    app_key: str,
    owner: str = Depends(get_session_user),
    couch: CouchDB = Depends(get_couch),
):
    try:
        delete_app(couch, app_key, owner)
    except AppLifecycleError as exc:
        logger.info("Deleting application %s failed: %s", app_key, exc)
        raise JanusError(errors.ERROR_DELETING_APP)
    return {"ok": True}
