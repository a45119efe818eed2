# janus/services/tenants.py
"""
Per-(app, user) tenant databases.

A tenant database name is a pure function of the app record and the user's
identity, so it is recomputed on every login instead of being stored. Email
addresses are not valid database names, so the identity is hashed.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from janus.core.couchdb import CouchDB, CouchError

logger = logging.getLogger(__name__)

APP_RECORD_ID = "data"


class AppNotFoundError(Exception):
    """Raised when an app key has no readable app record."""


@dataclass(frozen=True)
class AppRecord:
    key: str
    dev: str
    name: str


def identity_hash(email: str) -> str:
    # Must stay md5: existing tenant databases were named with it.
    return hashlib.md5(email.encode("utf-8")).hexdigest()


def tenant_database_name(app: AppRecord, email: str, prefix: str) -> str:
    return f"{prefix}{app.dev}_{app.name}_{identity_hash(email)}"


def get_app(couch: CouchDB, app_key: str) -> AppRecord:
    """Load the app record stored in the app's own database."""
    logger.info("Verifying application, key: %s", app_key)
    if not app_key:
        raise AppNotFoundError("Missing app key")
    try:
        doc = couch.get_document(app_key, APP_RECORD_ID)
    except CouchError as exc:
        raise AppNotFoundError(f"App {app_key} unreadable") from exc
    if doc is None or not doc.get("dev"):
        raise AppNotFoundError(f"App {app_key} not found")
    return AppRecord(key=app_key, dev=str(doc["dev"]), name=str(doc.get("name") or ""))


def ensure_database(couch: CouchDB, name: str) -> bool:
    """
    Make sure ``name`` exists. Returns True if it was created by this call.

    "Already exists" is success so concurrent first logins can race safely.
    """
    logger.info("Ensuring %s exists", name)
    created = couch.create_database(name)
    if not created:
        logger.debug("Database %s already exists", name)
    return created


def secure_database(couch: CouchDB, name: str, username: str) -> None:
    """Restrict ``name`` so ``username`` is its only (non-admin) member."""
    logger.info("Ensuring %s only can write to %s", username, name)
    couch.secure_database(name, member_names=[username])
