# janus/services/sessions.py
from __future__ import annotations

import logging

from fastapi import Request, Response

from janus.core.config import settings
from janus.core.couchdb import CouchConflictError, CouchDB, CouchError

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base exception for gateway session failures."""


class SessionExpiredError(SessionError):
    """No local record, or CouchDB no longer accepts the native token."""


class SessionCheckError(SessionError):
    """The native session check itself failed."""


# -----------------------------
# Native sessions
# -----------------------------
def issue_native_session(couch: CouchDB, username: str, secret: str | None) -> str:
    """
    Authenticate against CouchDB's own credential check and return the raw
    ``AuthSession`` token.
    """
    logger.info("Creating CouchDB session")
    if not secret:
        raise CouchError(f"No stored secret for {username}")
    return couch.create_session(username, secret)


# -----------------------------
# Gateway session records
# -----------------------------
class GatewaySessionStore:
    """
    Session records layered over CouchDB cookie sessions.

    A record maps a native token to its owner. A session is only valid while
    both the record exists and CouchDB still authenticates the token; a live
    CouchDB cookie minted elsewhere is not enough on its own.
    """

    def __init__(self, couch: CouchDB, db_name: str | None = None) -> None:
        self.couch = couch
        self.db_name = db_name or settings.SESSION_DB

    def record(self, token: str, username: str) -> None:
        """
        Create or replace the record for ``token``.

        CouchDB tokens have one-second resolution, so two logins by the same
        user can share a token and race on this write. A conflict is resolved
        by re-reading: an identical record is kept, anything else is replaced
        once with the fresh revision.
        """
        logger.info("Creating Janus session")
        existing = self.couch.get_document(self.db_name, token)
        try:
            self._write(token, username, existing)
        except CouchConflictError:
            current = self.couch.get_document(self.db_name, token)
            if current is not None and current.get("user") == username:
                logger.debug("Session record written concurrently for the same user")
                return
            self._write(token, username, current)

    def _write(self, token: str, username: str, existing: dict | None) -> None:
        doc: dict = {"user": username}
        if existing is not None and existing.get("_rev"):
            doc["_rev"] = existing["_rev"]
        self.couch.put_document(self.db_name, token, doc)


    def validate(self, token: str) -> str:
        """
        Return the owning username for a live session.

        Raises:
            SessionExpiredError: record missing/unreadable, or token no longer authenticated
            SessionCheckError: the native check could not be performed
        """
        try:
            doc = self.couch.get_document(self.db_name, token)
        except CouchError as exc:
            raise SessionExpiredError("Session record unreadable") from exc
        if doc is None or not doc.get("user"):
            raise SessionExpiredError("No session record")

        try:
            authenticated = self.couch.check_session(token)
        except CouchError as exc:
            raise SessionCheckError("Native session check failed") from exc
        if not authenticated:
            raise SessionExpiredError("Native session expired")

        return str(doc["user"])

    def revoke(self, token: str) -> None:
        """Best-effort logout: drop the record, then the native session. Never raises."""
        try:
            if not self.couch.delete_document(self.db_name, token):
                logger.debug("Session record already gone")
        except CouchError as exc:
            logger.warning("Failed to delete session record: %s", exc)
        try:
            self.couch.delete_session(token)
        except CouchError as exc:
            logger.warning("Failed to delete native session: %s", exc)


# -----------------------------
# Cookie helpers
# -----------------------------
def cookie_name() -> str:
    return str(getattr(settings, "SESSION_COOKIE_NAME", "AuthSession")).strip() or "AuthSession"


def cookie_samesite() -> str:
    v = str(getattr(settings, "SESSION_COOKIE_SAMESITE", "lax")).lower().strip()
    if v not in {"lax", "strict", "none"}:
        return "lax"
    return v


def set_session_cookie(resp: Response, token: str) -> None:
    # Path=/ so the cookie also reaches the /db/ proxy
    resp.set_cookie(
        key=cookie_name(),
        value=token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite=cookie_samesite(),
        path="/",
    )


def clear_session_cookie(resp: Response) -> None:
    resp.delete_cookie(key=cookie_name(), path="/")


def read_session_cookie(req: Request) -> str | None:
    val = req.cookies.get(cookie_name())
    if not val:
        return None
    val = val.strip()
    return val or None
