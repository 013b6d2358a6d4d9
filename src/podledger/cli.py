"""Operator commands: schema creation and the one-time admin bootstrap."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from podledger.config import PodLedgerConfig
from podledger.contrib.sqlalchemy.ledger import (
    build_sqlalchemy_ledger,
    create_schema,
    create_session_factory,
)
from podledger.exceptions import PodLedgerException

logger = logging.getLogger(__name__)


async def init_db(config: PodLedgerConfig) -> None:
    engine, _ = create_session_factory(config.database_url)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    logger.info("Schema ready at %s", config.database_url)


async def provision_admin(
    config: PodLedgerConfig, *, account_id: str, email: str, full_name: str
):
    engine, session_factory = create_session_factory(config.database_url)
    try:
        ledger = build_sqlalchemy_ledger(session_factory, config=config)
        return await ledger.provision_admin(
            account_id=account_id, email=email, full_name=full_name
        )
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podledger",
        description="Delivery ledger administration",
    )
    parser.add_argument(
        "--database-url",
        help="Override PODLEDGER_DATABASE_URL",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables")

    admin = commands.add_parser(
        "provision-admin", help="Create the first administrator"
    )
    admin.add_argument("--account-id", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--full-name", required=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = PodLedgerConfig()
    if args.database_url:
        config = config.model_copy(update={"database_url": args.database_url})
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "init-db":
            asyncio.run(init_db(config))
        else:
            admin = asyncio.run(
                provision_admin(
                    config,
                    account_id=args.account_id,
                    email=args.email,
                    full_name=args.full_name,
                )
            )
            print(f"Provisioned admin {admin.full_name} ({admin.id})")
    except PodLedgerException as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
