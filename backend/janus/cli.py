"""
Deployment-time administration for Janus.

What it does:
- configure: creates and locks down the gateway's system databases
  (app registry, developer registry, session records)
- add-dev: registers a developer and prints its id
- register-app: registers an app for a developer, provisions the app's
  database and prints the app key

Admin credentials come from --username/--password, or from DB_URL.
"""

from __future__ import annotations

import argparse
import logging
import sys

from janus.core.config import settings
from janus.core.couchdb import CouchDB, CouchError
from janus.services.apps import (
    AppLifecycleError,
    bootstrap_system_databases,
    register_app,
    register_developer,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="janus-admin", description="Janus deployment administration.")
    parser.add_argument("--db-url", default=None, help="CouchDB URL (defaults to DB_URL).")
    parser.add_argument("--username", default=None, help="CouchDB admin username.")
    parser.add_argument("--password", default=None, help="CouchDB admin password.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("configure", help="Configure a clean install.")
    sub.add_parser("add-dev", help="Add a developer.")
    register = sub.add_parser("register-app", help="Register a new app.")
    register.add_argument("name", help="Display name of the app.")
    register.add_argument("--dev", required=True, help="Id of the developer who owns the app.")
    return parser


def _connect(args: argparse.Namespace) -> CouchDB:
    admin_auth = None
    if args.username or args.password:
        admin_auth = (args.username or "", args.password or "")
    return CouchDB(
        args.db_url or settings.DB_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        admin_auth=admin_auth,
    )


def _configure(couch: CouchDB) -> int:
    for db_name, created in bootstrap_system_databases(couch):
        print(f"Creating {db_name} database...{'OK' if created else 'already exists'}")
        print(f"Securing {db_name} database...OK")
    return 0


def _add_dev(couch: CouchDB) -> int:
    dev_id = register_developer(couch)
    print(f"Adding developer...OK\ndev id: {dev_id}")
    return 0


def _register_app(couch: CouchDB, name: str, dev_id: str) -> int:
    app_key = register_app(couch, name, dev_id)
    print(f"Registering app...OK\napp key: {app_key}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not (args.db_url or settings.DB_URL):
        print("DB_URL environment variable not set")
        return 2

    couch = _connect(args)
    try:
        if args.command == "configure":
            return _configure(couch)
        if args.command == "add-dev":
            return _add_dev(couch)
        return _register_app(couch, args.name, args.dev)
    except (CouchError, AppLifecycleError) as e:
        logger.debug("janus-admin %s failed", args.command, exc_info=True)
        print(f"ERROR: {e}")
        return 1
    finally:
        couch.close()


if __name__ == "__main__":
    sys.exit(main())
