# janus/services/login.py
"""
Login / provisioning pipeline.

Turns a verified identity assertion into a tenant database plus a session:

    verify assertion -> ensure user -> resolve app -> ensure database
    -> secure database -> issue native session -> record gateway session

Stages run strictly in that order. The first failure aborts the run and is
reported as a :class:`JanusError`; earlier stages are not undone. A database
created before a later failure is left in place: its name is re-derived on
the next login, so it is reused rather than orphaned for good.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from janus.auth.persona import AssertionVerificationError, VerifiedAssertion, verify_assertion
from janus.core import errors
from janus.core.config import settings
from janus.core.couchdb import CouchDB, CouchError
from janus.core.errors import JanusError
from janus.services.sessions import GatewaySessionStore, issue_native_session
from janus.services.tenants import (
    AppNotFoundError,
    ensure_database,
    get_app,
    secure_database,
    tenant_database_name,
)
from janus.services.users import FederatedUser, UserCreationError, UserRetrievalError, ensure_user

logger = logging.getLogger(__name__)


class LoginStage(str, enum.Enum):
    VERIFY_ASSERTION = "verify_assertion"
    ENSURE_USER = "ensure_user"
    RESOLVE_APP = "resolve_app"
    ENSURE_DATABASE = "ensure_database"
    SECURE_DATABASE = "secure_database"
    ISSUE_NATIVE_SESSION = "issue_native_session"
    RECORD_GATEWAY_SESSION = "record_gateway_session"


@dataclass(frozen=True)
class LoginResult:
    db: str
    name: str
    url: str
    session_token: str


class LoginPipeline:
    def __init__(
        self,
        couch: CouchDB,
        *,
        verifier: Callable[[str, str], VerifiedAssertion] = verify_assertion,
        sessions: GatewaySessionStore | None = None,
        db_prefix: str | None = None,
        host_url: str | None = None,
    ) -> None:
        self.couch = couch
        self.verifier = verifier
        self.sessions = sessions or GatewaySessionStore(couch)
        self.db_prefix = settings.DB_PREFIX if db_prefix is None else db_prefix
        self.host_url = host_url or settings.HOST_URL

    def _fail(self, stage: LoginStage, kind: str, exc: Exception) -> JanusError:
        logger.error("Error during sign-in at %s: %s", stage.value, exc)
        return JanusError(kind)

    def run(self, assertion: str, audience: str, app_key: str) -> LoginResult:
        try:
            verified = self.verifier(assertion, audience)
        except AssertionVerificationError as exc:
            raise self._fail(LoginStage.VERIFY_ASSERTION, errors.ERROR_VERIFYING_ASSERTION, exc)

        user = self._ensure_user(verified.email)

        try:
            app = get_app(self.couch, app_key)
        except AppNotFoundError as exc:
            raise self._fail(LoginStage.RESOLVE_APP, errors.ERROR_VERIFYING_APP, exc)
        database = tenant_database_name(app, user.name, self.db_prefix)

        try:
            ensure_database(self.couch, database)
        except CouchError as exc:
            raise self._fail(LoginStage.ENSURE_DATABASE, errors.ERROR_CREATING_DATABASE, exc)

        try:
            secure_database(self.couch, database, user.name)
        except CouchError as exc:
            raise self._fail(LoginStage.SECURE_DATABASE, errors.ERROR_SECURING_DATABASE, exc)

        try:
            token = issue_native_session(self.couch, user.name, user.secret)
        except CouchError as exc:
            raise self._fail(LoginStage.ISSUE_NATIVE_SESSION, errors.ERROR_CREATING_SESSION, exc)

        try:
            self.sessions.record(token, user.name)
        except CouchError as exc:
            raise self._fail(LoginStage.RECORD_GATEWAY_SESSION, errors.ERROR_CREATING_JANUS_SESSION, exc)

        logger.info("Successful sign-in")
        return LoginResult(
            db=database,
            name=user.name,
            url=f"{self.host_url}db/{database}",
            session_token=token,
        )

    def _ensure_user(self, email: str) -> FederatedUser:
        try:
            return ensure_user(self.couch, email)
        except UserRetrievalError as exc:
            raise self._fail(LoginStage.ENSURE_USER, errors.ERROR_RETRIEVING_USER, exc)
        except UserCreationError as exc:
            raise self._fail(LoginStage.ENSURE_USER, errors.ERROR_CREATING_USER, exc)
