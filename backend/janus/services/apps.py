# janus/services/apps.py
"""
App lifecycle.

An app key doubles as the name of the app's own database, which holds the app
record (``data``: owning developer + display name). Tenant database names are
derived from that record, so only its developer may create or delete it.

Also hosts the deployment-time registration helpers used by ``janus-admin``.
"""
from __future__ import annotations

import hashlib
import logging
import re
import uuid

from janus.core.config import settings
from janus.core.couchdb import CouchDB, CouchError
from janus.services.tenants import APP_RECORD_ID, ensure_database, secure_database

logger = logging.getLogger(__name__)

# CouchDB database naming characters; keys never enter the system "_" namespace
APP_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_$()+/-]*$")


class AppLifecycleError(Exception):
    """
    Raised for any app create/delete failure.

    Deliberately carries no reason the client can see: "no such app" and
    "not your app" must look the same.
    """


def is_valid_app_key(app_key: str) -> bool:
    return bool(app_key) and bool(APP_KEY_PATTERN.fullmatch(app_key))


def create_app(couch: CouchDB, app_key: str, owner: str, name: str = "") -> None:
    """
    Provision ``app_key`` as an app owned by ``owner``.

    Re-creating an app you already own updates its name. A key that names an
    existing database which is not your app is refused before its security
    is touched.
    """
    if not is_valid_app_key(app_key):
        raise AppLifecycleError(f"Invalid app key {app_key!r}")
    if app_key.startswith(settings.DB_PREFIX) or app_key in {settings.SESSION_DB, settings.APP_DB, settings.DEV_DB}:
        raise AppLifecycleError(f"Reserved app key {app_key!r}")

    try:
        created = ensure_database(couch, app_key)
        existing = None if created else couch.get_document(app_key, APP_RECORD_ID)
        if not created and (existing is None or existing.get("dev") != owner):
            raise AppLifecycleError(f"Database {app_key} is not an app owned by {owner}")

        secure_database(couch, app_key, owner)

        record: dict = {"dev": owner, "name": name or ""}
        if existing is not None and existing.get("_rev"):
            record["_rev"] = existing["_rev"]
        couch.put_document(app_key, APP_RECORD_ID, record)
    except CouchError as exc:
        raise AppLifecycleError(f"Failed to create app {app_key}") from exc

    logger.info("Adding application %s succeeded", app_key)


def delete_app(couch: CouchDB, app_key: str, owner: str) -> None:
    """Delete ``app_key`` if and only if ``owner`` is its developer."""
    try:
        record = couch.get_document(app_key, APP_RECORD_ID) if is_valid_app_key(app_key) else None
    except CouchError as exc:
        raise AppLifecycleError(f"App {app_key} unreadable") from exc

    if record is None or record.get("dev") != owner:
        raise AppLifecycleError(f"App {app_key} not deletable by {owner}")

    try:
        couch.delete_database(app_key)
    except CouchError as exc:
        raise AppLifecycleError(f"Failed to delete app {app_key}") from exc

    logger.info("Deleting application %s succeeded", app_key)


# -----------------------------
# Deployment-time registration
# -----------------------------
def bootstrap_system_databases(couch: CouchDB) -> list[tuple[str, bool]]:
    """
    Create the gateway's own databases and lock them to server admins.

    Returns ``(name, created)`` pairs.
    """
    results: list[tuple[str, bool]] = []
    for db_name in (settings.APP_DB, settings.DEV_DB, settings.SESSION_DB):
        created = couch.create_database(db_name)
        couch.secure_database(db_name, member_roles=["_admin"])
        results.append((db_name, created))
    return results


def generate_developer_id() -> str:
    return hashlib.md5(uuid.uuid4().bytes).hexdigest()


def generate_app_key(name: str) -> str:
    # Keys are database names, which must start with a letter
    digest = hashlib.md5(name.encode("utf-8") + uuid.uuid4().bytes).hexdigest()
    return f"app_{digest}"


def register_developer(couch: CouchDB, dev_id: str | None = None) -> str:
    dev_id = dev_id or generate_developer_id()
    couch.put_document(settings.DEV_DB, dev_id, {"_id": dev_id, "type": "developer"})
    return dev_id


def register_app(couch: CouchDB, name: str, dev_id: str) -> str:
    """
    Register an app for an existing developer and provision its database.

    Raises:
        AppLifecycleError: the developer is unknown or provisioning failed
    """
    try:
        developer = couch.get_document(settings.DEV_DB, dev_id)
    except CouchError as exc:
        raise AppLifecycleError(f"Developer {dev_id} unreadable") from exc
    if developer is None:
        raise AppLifecycleError(f"Unknown developer {dev_id}")

    app_key = generate_app_key(name)
    try:
        couch.put_document(settings.APP_DB, app_key, {"_id": app_key, "name": name, "dev": dev_id})
    except CouchError as exc:
        raise AppLifecycleError(f"Failed to register app {name}") from exc

    create_app(couch, app_key, dev_id, name)
    return app_key
