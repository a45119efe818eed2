# janus/core/errors.py
"""
Client-facing error taxonomy.

Every failure that reaches a client is reduced to a stable ``error`` string and
an HTTP status. Services raise their own typed exceptions; the boundary that
calls them translates into :class:`JanusError`.
"""
from __future__ import annotations

# Login pipeline
ERROR_VERIFYING_ASSERTION = "error_verifying_assertion"
ERROR_RETRIEVING_USER = "error_retrieving_user"
ERROR_CREATING_USER = "error_creating_user"
ERROR_VERIFYING_APP = "error_verifying_app"
ERROR_CREATING_DATABASE = "error_creating_database"
ERROR_SECURING_DATABASE = "error_securing_database"
ERROR_CREATING_SESSION = "error_creating_session"
ERROR_CREATING_JANUS_SESSION = "error_creating_janus_session"
DEVELOPER_LOGIN_UNSUPPORTED = "developer_login_unsupported"

# Session validation
SESSION_EXPIRED = "session_expired"
PRIVILEGES_REQUIRED = "privileges_required"
ERROR_CHECKING_SESSION = "error_checking_session"

# App lifecycle
ERROR_CREATING_APP = "error_creating_app"
ERROR_DELETING_APP = "error_deleting_app"

# Proxy
DATABASE_UNAVAILABLE = "database_unavailable"

# Framework level
INVALID_REQUEST = "invalid_request"


class JanusError(Exception):
    """A failure reported to the client as ``{"error": kind}``."""

    def __init__(self, kind: str, status_code: int = 400) -> None:
        super().__init__(kind)
        self.kind = kind
        self.status_code = status_code

    def to_payload(self) -> dict[str, str]:
        return {"error": self.kind}


def unauthorized(kind: str = SESSION_EXPIRED) -> JanusError:
    return JanusError(kind, status_code=401)
