# janus/services/users.py
"""
Federated user records.

Responsibilities:
- Deriving the CouchDB ``_users`` document id from a verified email
- JIT provisioning of the user document on first login
- Refreshing the document on later logins without rotating its secret
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from janus.core.config import settings
from janus.core.couchdb import CouchDB, CouchError

logger = logging.getLogger(__name__)

USER_ID_PREFIX = "org.couchdb.user:"
FEDERATED_ROLE = "browserid"
# Where records provisioned by earlier gateway releases keep the secret
LEGACY_SECRET_FIELD = "thepassword"


class UserStoreError(Exception):
    """Base exception for user record failures."""


class UserRetrievalError(UserStoreError):
    """Raised when the existing user record cannot be read."""


class UserCreationError(UserStoreError):
    """Raised when the user record cannot be written."""


@dataclass
class FederatedUser:
    name: str
    secret: str | None
    rev: str
    roles: list[str] = field(default_factory=list)
    created: bool = False


def user_doc_id(email: str) -> str:
    # Same escaping as encodeURIComponent, which CouchDB clients use for user ids
    return USER_ID_PREFIX + quote(email, safe="-_.!~*'()")


def build_user_doc(email: str) -> dict[str, Any]:
    """The attributes the gateway owns on every login."""
    return {
        "_id": user_doc_id(email),
        "type": "user",
        "name": email,
        "roles": [FEDERATED_ROLE],
        "browserid": True,
    }


def generate_user_secret() -> str:
    return secrets.token_urlsafe(32)


def ensure_user(couch: CouchDB, email: str) -> FederatedUser:
    """
    Ensure a ``_users`` document exists for a verified identity.

    Idempotent: an existing document keeps its ``_rev``-guarded history and
    its secret; only the gateway-owned attributes are merged over it.

    Raises:
        UserRetrievalError: the existing document could not be read
        UserCreationError: the create/update was rejected (incl. conflicts)
    """
    logger.info("Ensuring %s user exists", email)
    doc = build_user_doc(email)
    doc_id = doc["_id"]

    try:
        existing = couch.get_document(settings.USERS_DB, doc_id)
    except CouchError as exc:
        raise UserRetrievalError(f"Failed to read user {doc_id}") from exc

    created = existing is None
    if created:
        secret = generate_user_secret()
        # CouchDB hashes `password` on save; the gateway keeps its own copy to open sessions.
        doc["password"] = secret
        doc["session_secret"] = secret
        logger.info("User %s doesn't exist, creating", email)
    else:
        merged = dict(existing)
        merged.update(doc)
        doc = merged
        if not doc.get("session_secret") and doc.get(LEGACY_SECRET_FIELD):
            doc["session_secret"] = doc[LEGACY_SECRET_FIELD]

    try:
        rev = couch.put_document(settings.USERS_DB, doc_id, doc)
    except CouchError as exc:
        raise UserCreationError(f"Failed to write user {doc_id}") from exc

    return FederatedUser(
        name=email,
        secret=doc.get("session_secret"),
        rev=rev,
        roles=list(doc.get("roles") or []),
        created=created,
    )
