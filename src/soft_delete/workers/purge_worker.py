"""
Retention Purge Worker
Periodically hard deletes rows that have been soft deleted for longer than the retention window.
"""

import asyncio
import importlib
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import (
    DATABASE_URL,
    PURGE_INTERVAL_SECONDS,
    PURGE_LOCATOR_FACTORY,
    PURGE_RETENTION_DAYS,
    PURGE_WORKER_LOG_LEVEL,
)
from ..errors import InvalidArgumentError
from ..models import utcnow
from ..repository import TableLocator

logger = logging.getLogger("soft-delete-purge-worker")

LocatorFactory = Callable[[Session], TableLocator]


def run_purge_cycle(
    session_factory: Callable[[], Session],
    locator_factory: LocatorFactory,
    retention: timedelta,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Purge every soft-delete table once and commit.

    Returns:
        Rows removed per table name
    """
    cutoff = (now or utcnow()) - retention
    counts: Dict[str, int] = {}

    db = session_factory()
    try:
        for table in locator_factory(db).soft_delete_tables():
            counts[table.alias] = table.hard_delete_all(cutoff)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    for name, count in counts.items():
        logger.info("Purged %d rows from %s soft deleted before %s", count, name, cutoff.isoformat())
    return counts


async def worker_loop(
    session_factory: Callable[[], Session],
    locator_factory: LocatorFactory,
    retention: timedelta = timedelta(days=PURGE_RETENTION_DAYS),
    interval: int = PURGE_INTERVAL_SECONDS,
    max_cycles: Optional[int] = None,
) -> None:
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        try:
            await asyncio.to_thread(run_purge_cycle, session_factory, locator_factory, retention)
        except Exception as exc:
            logger.error("Retention purge failed: %s", exc)

        if max_cycles is not None and cycles >= max_cycles:
            break
        await asyncio.sleep(interval)


def configure_logging() -> None:
    logging.basicConfig(
        level=PURGE_WORKER_LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def load_locator_factory(path: str) -> LocatorFactory:
    """Import a ``"package.module:function"`` locator factory"""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise InvalidArgumentError(f"Locator factory must look like \"module:function\", got \"{path}\"")
    return getattr(importlib.import_module(module_name), attr)


def main(locator_factory: Optional[LocatorFactory] = None) -> None:
    """
    Run the worker against ``DATABASE_URL``.

    Without an argument the factory is loaded from ``PURGE_LOCATOR_FACTORY``.
    ``locator_factory`` registers the application's tables on a session, e.g.:

        def tables(db):
            locator = TableLocator(db)
            locator.add(Order, soft_delete=True)
            return locator
    """
    configure_logging()
    if locator_factory is None:
        locator_factory = load_locator_factory(PURGE_LOCATOR_FACTORY)
    engine = create_engine(DATABASE_URL)
    SessionLocal = sessionmaker(autoflush=False, bind=engine)

    logger.info(
        "Starting purge worker (retention %d days, every %d seconds)", PURGE_RETENTION_DAYS, PURGE_INTERVAL_SECONDS
    )
    asyncio.run(worker_loop(SessionLocal, locator_factory))


if __name__ == "__main__":
    main()
