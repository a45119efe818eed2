# janus/core/couchdb.py
"""
Thin CouchDB client used by every gateway component.

Provides the handful of document-store calls the gateway needs without leaking
httpx errors up the stack:
- document get/put/delete by (database, doc id)
- database create/delete and ``_security`` updates (admin credentials)
- native cookie sessions: create/check/delete (never admin credentials)
- a streamed pass-through used by the ``/db/`` proxy

One instance owns one ``httpx.Client`` for the life of the process. The client
is thread-safe and keeps no cookie jar, so concurrent requests for different
users never share a native session.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Iterable, Mapping
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import httpx

from janus.core.config import settings

logger = logging.getLogger(__name__)

NATIVE_SESSION_COOKIE = "AuthSession"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CouchError(Exception):
    """Base exception for document-store failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CouchUnavailableError(CouchError):
    """Raised on transport errors and timeouts."""

    pass


class CouchNotFoundError(CouchError):
    """Raised when a database or document does not exist."""

    pass


class CouchConflictError(CouchError):
    """Raised when a write loses an optimistic-concurrency race (409)."""

    pass


class CouchUnauthorizedError(CouchError):
    """Raised when CouchDB rejects the credentials used (401/403)."""

    pass


def _error_for(response: httpx.Response, action: str) -> CouchError:
    status = response.status_code
    message = f"{action} failed with HTTP {status}"
    if status == 404:
        return CouchNotFoundError(message, status)
    if status == 409:
        return CouchConflictError(message, status)
    if status in {401, 403}:
        return CouchUnauthorizedError(message, status)
    return CouchError(message, status)


def _split_credentials(url: str) -> tuple[str, tuple[str, str] | None]:
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    path = parts.path if parts.path.endswith("/") else parts.path + "/"
    base_url = urlunsplit((parts.scheme, netloc, path, "", ""))
    if parts.username is None:
        return base_url, None
    return base_url, (unquote(parts.username), unquote(parts.password or ""))


def _path(*segments: str) -> str:
    return "/".join(quote(segment, safe="") for segment in segments)


def _session_cookie_header(token: str) -> dict[str, str]:
    return {"Cookie": f"{NATIVE_SESSION_COOKIE}={token}"}


class CouchDB:
    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        admin_auth: tuple[str, str] | None = None,
    ) -> None:
        base_url, url_auth = _split_credentials(url)
        self.base_url = base_url
        self._admin_auth = admin_auth or url_auth
        # A jar that refuses every cookie: responses to one user's /_session call
        # must never be replayed on another user's request.
        jar = CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            cookies=jar,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        admin: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        auth = self._admin_auth if admin else None
        try:
            return self._client.request(method, path, auth=auth, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("CouchDB %s failed: %s", action, type(exc).__name__)
            raise CouchUnavailableError(f"{action} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_document(self, db: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document, or None when it (or its database) is missing."""
        resp = self._request("GET", _path(db, doc_id), action="get_document")
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise _error_for(resp, "get_document")
        return resp.json()

    def put_document(self, db: str, doc_id: str, doc: Mapping[str, Any]) -> str:
        """
        Create or update a document and return its new revision.

        Updating an existing document requires ``_rev`` in ``doc``; a stale or
        missing revision raises :class:`CouchConflictError`.
        """
        resp = self._request("PUT", _path(db, doc_id), action="put_document", json=dict(doc))
        if resp.status_code not in {201, 202}:
            raise _error_for(resp, "put_document")
        return str(resp.json().get("rev") or "")

    def delete_document(self, db: str, doc_id: str) -> bool:
        """Delete a document. Returns False when there was nothing to delete."""
        current = self.get_document(db, doc_id)
        if current is None:
            return False
        resp = self._request(
            "DELETE",
            _path(db, doc_id),
            action="delete_document",
            params={"rev": current.get("_rev", "")},
        )
        if resp.status_code == 404:
            return False
        if resp.status_code not in {200, 202}:
            raise _error_for(resp, "delete_document")
        return True

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    def create_database(self, db: str) -> bool:
        """Create a database. Returns False (not an error) if it already exists."""
        resp = self._request("PUT", _path(db), action="create_database")
        if resp.status_code in {201, 202}:
            return True
        if resp.status_code == 412:
            return False
        raise _error_for(resp, "create_database")

    def delete_database(self, db: str) -> None:
        resp = self._request("DELETE", _path(db), action="delete_database")
        if resp.status_code not in {200, 202}:
            raise _error_for(resp, "delete_database")

    def secure_database(
        self,
        db: str,
        *,
        member_names: Iterable[str] = (),
        member_roles: Iterable[str] = (),
        admin_names: Iterable[str] = (),
        admin_roles: Iterable[str] = (),
    ) -> None:
        """Replace the database ``_security`` object. Reapplying it is a no-op."""
        security = {
            "admins": {"names": list(admin_names), "roles": list(admin_roles)},
            "members": {"names": list(member_names), "roles": list(member_roles)},
        }
        resp = self._request("PUT", _path(db, "_security"), action="secure_database", json=security)
        if resp.status_code != 200:
            raise _error_for(resp, "secure_database")

    # ------------------------------------------------------------------
    # Native sessions
    # ------------------------------------------------------------------

    def create_session(self, name: str, password: str) -> str:
        """Open a CouchDB cookie session and return the raw cookie value."""
        resp = self._request(
            "POST",
            "_session",
            action="create_session",
            admin=False,
            json={"name": name, "password": password},
        )
        if resp.status_code != 200:
            raise _error_for(resp, "create_session")
        token = resp.cookies.get(NATIVE_SESSION_COOKIE)
        if not token:
            raise CouchError("create_session returned no session cookie", resp.status_code)
        return token

    def check_session(self, token: str) -> bool:
        """True if CouchDB still considers the session cookie authenticated."""
        resp = self._request(
            "GET",
            "_session",
            action="check_session",
            admin=False,
            headers=_session_cookie_header(token),
        )
        if resp.status_code == 401:
            return False
        if resp.status_code != 200:
            raise _error_for(resp, "check_session")
        user_ctx = resp.json().get("userCtx") or {}
        return bool(user_ctx.get("name"))

    def delete_session(self, token: str) -> None:
        resp = self._request(
            "DELETE",
            "_session",
            action="delete_session",
            admin=False,
            headers=_session_cookie_header(token),
        )
        if resp.status_code not in {200, 401}:
            raise _error_for(resp, "delete_session")

    # ------------------------------------------------------------------
    # Pass-through
    # ------------------------------------------------------------------

    def forward(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        """
        Send a caller's request to CouchDB without admin credentials.

        The returned response is streamed; the caller must close it.
        """
        request = self._client.build_request(
            method,
            path.lstrip("/"),
            params=params,
            headers=headers,
            content=content,
        )
        try:
            return self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("CouchDB forward failed: %s", type(exc).__name__)
            raise CouchUnavailableError(f"forward failed: {exc}") from exc


@lru_cache
def get_couch() -> CouchDB:
    """Process-wide CouchDB handle (FastAPI dependency)."""
    logger.info("Connecting to CouchDB at %s", settings.db_host)
    return CouchDB(settings.DB_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)
