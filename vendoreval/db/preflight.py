"""
Database reachability check run before the schema is inspected.
"""
import sys
import time
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError

from vendoreval.core.logging import get_logger

logger = get_logger(__name__)


class DatabaseUnavailableError(RuntimeError):
    """The database could not be reached, or refused our credentials."""


def describe_url(url) -> str:
    """Host/database part of a URL; credentials are never logged."""
    parsed = make_url(url)
    if parsed.host:
        host = f"{parsed.host}:{parsed.port}" if parsed.port else parsed.host
        return f"{parsed.drivername}://{host}/{parsed.database or ''}"
    return f"{parsed.drivername}://{parsed.database or ''}"


def wait_for_database(
    engine: Engine,
    attempts: int = 5,
    delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Run `SELECT 1` until it succeeds.

    Raises:
        DatabaseUnavailableError: authentication failed, or every attempt failed
    """
    logger.info(f"Checking database at {describe_url(engine.url)}")

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database reachable")
            return
        except OperationalError as e:
            last_error = e
            if "password authentication failed" in str(e).lower():
                raise DatabaseUnavailableError(
                    f"Authentication failed for user {engine.url.username!r}"
                ) from e
            if attempt < attempts:
                logger.warning(f"Database attempt {attempt}/{attempts} failed, retrying in {delay}s")
                sleep(delay)

    raise DatabaseUnavailableError(
        f"Database unreachable after {attempts} attempts: {last_error}"
    ) from last_error


if __name__ == "__main__":
    from vendoreval.core.logging import setup_logging
    from vendoreval.db.session import engine as app_engine

    setup_logging()
    try:
        wait_for_database(app_engine)
    except DatabaseUnavailableError as e:
        logger.error(str(e))
        sys.exit(1)
