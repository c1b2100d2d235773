"""
rlscat application and command line entry point.
"""

import asyncio
import logging
import sys
from pathlib import Path
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from rlscat.config import load_config, Config
from rlscat.models import create_async_db_engine, create_async_session_factory
from rlscat.models.database import create_tables, is_postgres_url
from rlscat.services.admin_auth import AdminAuthService
from rlscat.services.catalog import (
    CatalogError,
    PolicyCatalog,
    load_bundled,
    load_catalog,
    load_records,
)
from rlscat.services.policy_store import PolicyStore
from rlscat.services.sql import render_catalog
from rlscat.api import admin as admin_api
from rlscat.api import catalog as catalog_api


logger = logging.getLogger(__name__)


def load_seed(config: Config) -> PolicyCatalog:
    """Seed catalog from the configured file, or the bundled snapshot."""
    if config.catalog.seed_path:
        return load_catalog(config.catalog.seed_path)
    return load_bundled()


def create_app(config: Config, engine, session_factory) -> FastAPI:
    """Create the catalog FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting rlscat server...")

        await create_tables(engine)

        policy_store = PolicyStore(session_factory)
        if config.catalog.seed_on_startup:
            await policy_store.seed(load_seed(config))

        async def log_update(label: str):
            logger.info(f"Policy updated: {label}")

        policy_store.on_update(log_update)

        catalog_api.set_dependencies(policy_store, config.catalog.schema)
        admin_api.set_dependencies(AdminAuthService(config.admin), policy_store)

        app.state.policy_store = policy_store
        app.state.engine = engine

        logger.info(f"Catalog ready with {await policy_store.count()} policies")

        yield

        logger.info("Shutting down rlscat server...")
        await engine.dispose()

    app = FastAPI(
        title="rlscat",
        description="Row-level-security policy catalog",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(catalog_api.router)
    app.include_router(admin_api.router, prefix="/admin")

    return app


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def cmd_serve(args):
    """Run the catalog server."""
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        print("Please create a config.yaml file or specify a different path with -c")
        return 1

    config = load_config(config_path)
    _setup_logging(config.logging.level)

    engine = create_async_db_engine(config.database)
    app = create_app(config, engine, create_async_session_factory(engine))

    logger.info(f"Catalog server: http://{config.server.host}:{config.server.port}")
    try:
        uvicorn.run(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.logging.level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")

    return 0


def cmd_validate(args):
    """Check a snapshot file and report every problem found."""
    try:
        records = load_records(args.file)
    except (FileNotFoundError, CatalogError) as e:
        print(f"Error: {e}")
        return 1

    failures = 0
    seen = set()
    for record in records:
        for problem in record.problems():
            print(f"{record.label}: {problem}")
            failures += 1
        if record.key in seen:
            print(f"{record.label}: duplicate policy")
            failures += 1
        seen.add(record.key)

    if failures:
        print(f"{failures} problem(s) in {args.file}")
        return 1

    tables = {record.table_name for record in records}
    print(f"OK: {len(records)} policies on {len(tables)} tables")
    return 0


def cmd_render_sql(args):
    """Print the migration script for a snapshot file."""
    try:
        catalog = load_catalog(args.file) if args.file else load_bundled()
    except (FileNotFoundError, CatalogError) as e:
        print(f"Error: {e}")
        return 1

    sys.stdout.write(render_catalog(
        catalog,
        schema=args.schema,
        drop_existing=args.drop_existing,
        force=args.force,
    ))
    return 0


async def _snapshot_to_file(config: Config, schema: str, output: str | None) -> int:
    from rlscat.services.introspect import snapshot

    engine = create_async_db_engine(config.database)
    try:
        records = await snapshot(engine, schema)
    finally:
        await engine.dispose()

    content = PolicyCatalog(records).to_json() + "\n"
    if output:
        Path(output).write_text(content, encoding="utf-8")
        logger.info(f"Wrote {len(records)} policies to {output}")
    else:
        sys.stdout.write(content)
    return 0


def cmd_snapshot(args):
    """Dump the policies of a live PostgreSQL database."""
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        return 1

    config = load_config(config_path)
    _setup_logging(config.logging.level)

    if not is_postgres_url(config.database):
        print("Error: snapshot requires a postgresql:// database url")
        return 1

    schema = args.schema or config.catalog.schema or "public"
    try:
        return asyncio.run(_snapshot_to_file(config, schema, args.output))
    except CatalogError as e:
        print(f"Error: {e}")
        return 1


def cmd_hash_password(args):
    """Generate bcrypt hash for admin password."""
    import getpass
    from rlscat.utils import hash_password

    try:
        password = getpass.getpass("Enter password: ")
        if not password:
            print("Error: Password cannot be empty")
            return 1

        password_confirm = getpass.getpass("Confirm password: ")
        if password != password_confirm:
            print("Error: Passwords do not match")
            return 1

        hashed = hash_password(password)
        print("\nGenerated password hash:")
        print(hashed)
        print("\nAdd this to your config.yaml:")
        print("admin:")
        print(f'  password_hash: "{hashed}"')

    except KeyboardInterrupt:
        print("\nCancelled")
        return 1

    return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Row-level-security policy catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the catalog server")
    serve_parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a policy snapshot file")
    validate_parser.add_argument("file", help="Snapshot file (.json or .yaml)")

    render_parser = subparsers.add_parser("render-sql", help="Print CREATE POLICY statements")
    render_parser.add_argument(
        "file", nargs="?", default=None,
        help="Snapshot file (default: bundled snapshot)",
    )
    render_parser.add_argument("--schema", default=None, help="Schema to qualify tables with")
    render_parser.add_argument(
        "--drop-existing", action="store_true",
        help="Drop each policy before creating it",
    )
    render_parser.add_argument(
        "--force", action="store_true",
        help="Also FORCE row level security for table owners",
    )

    snapshot_parser = subparsers.add_parser("snapshot", help="Dump pg_policies to JSON")
    snapshot_parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    snapshot_parser.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    snapshot_parser.add_argument("--schema", default=None, help="Schema to read (default: public)")

    subparsers.add_parser("hash-password", help="Generate bcrypt hash for admin password")

    args = parser.parse_args()

    # Default to serve if no command specified
    if args.command is None:
        args.command = "serve"
        args.config = "config.yaml"

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "render-sql":
        return cmd_render_sql(args)
    elif args.command == "snapshot":
        return cmd_snapshot(args)
    elif args.command == "hash-password":
        return cmd_hash_password(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    exit(main())
