"""
Create (or recreate) the ledger tables from the ORM metadata.

Usage:
  python -m tutorledger.scripts.init_db
  python -m tutorledger.scripts.init_db --drop
"""

import argparse
import asyncio
import logging

import tutorledger.core.models  # noqa: F401  (registers tables on Base.metadata)
from tutorledger.core.logging import configure_logging
from tutorledger.db.session import Base, engine

logger = logging.getLogger(__name__)


async def init_db(drop: bool = False) -> None:
    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> None:
    parser = argparse.ArgumentParser(description="Create ledger tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(init_db(drop=args.drop))


if __name__ == "__main__":
    main()
