from __future__ import annotations

import hashlib

import pytest

from janus.core.couchdb import CouchError
from janus.services.tenants import (
    AppNotFoundError,
    AppRecord,
    ensure_database,
    get_app,
    secure_database,
    tenant_database_name,
)

APP = AppRecord(key="K1", dev="D1", name="todo")


def test_tenant_database_name_format():
    expected_hash = hashlib.md5(b"alice@example.com").hexdigest()
    assert tenant_database_name(APP, "alice@example.com", "couch_persona_") == f"couch_persona_D1_todo_{expected_hash}"


def test_tenant_database_name_is_deterministic():
    names = {tenant_database_name(APP, "alice@example.com", "p_") for _ in range(5)}
    assert len(names) == 1


def test_tenant_database_names_differ_per_user():
    emails = [f"user{i}@example.com" for i in range(200)]
    names = {tenant_database_name(APP, email, "p_") for email in emails}
    assert len(names) == len(emails)


def test_get_app(couch, fake_couch):
    fake_couch.add_app("K1", dev="D1", name="todo")
    assert get_app(couch, "K1") == APP


@pytest.mark.parametrize("key", ["", "missing"])
def test_get_app_unknown(couch, key):
    with pytest.raises(AppNotFoundError):
        get_app(couch, key)


def test_get_app_unreadable(couch, fake_couch):
    fake_couch.add_app("K1", dev="D1", name="todo")
    fake_couch.fail_on("GET", "K1/data", status=500)
    with pytest.raises(AppNotFoundError):
        get_app(couch, "K1")


def test_ensure_database_is_idempotent(couch, fake_couch):
    assert ensure_database(couch, "tenant_a") is True
    assert ensure_database(couch, "tenant_a") is False


def test_secure_database_names_user_as_only_member(couch, fake_couch):
    ensure_database(couch, "tenant_a")
    secure_database(couch, "tenant_a", "alice@example.com")
    secure_database(couch, "tenant_a", "alice@example.com")
    assert fake_couch.members("tenant_a") == ["alice@example.com"]


def test_secure_database_failure_raises(couch, fake_couch):
    ensure_database(couch, "tenant_a")
    fake_couch.fail_on("PUT", "tenant_a/_security", status=500)
    with pytest.raises(CouchError):
        secure_database(couch, "tenant_a", "alice@example.com")
