import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from learnlink.exceptions import LearnLinkError, TransactionError
from learnlink.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLite pools do not accept sizing arguments
_pool_options = {} if settings.database_url.startswith("sqlite") else {"pool_size": 20, "max_overflow": 10}

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
    **_pool_options,
)

# Async session factory
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


async def get_db():
    """Async dependency to provide a database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def is_transient(exc: BaseException) -> bool:
    """True for faults a managed database may clear on its own (dropped connections, failovers)."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    attempts: Optional[int] = None,
    base_delay: float = 0.5,
) -> T:
    """
    Run ``work(db)`` and commit it as one unit.

    Any exception rolls the whole unit back. Transient faults are retried with
    exponential backoff (capped by ``db_retry_max_delay_seconds``) up to
    ``attempts`` times; ``work`` must therefore be safe to re-run from scratch.
    Domain errors from ``work`` propagate unchanged; any other failure is
    raised as ``TransactionError``.
    """
    attempts = attempts or settings.db_retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            result = await work(db)
            await db.commit()
            return result
        except Exception as exc:
            await db.rollback()
            if isinstance(exc, LearnLinkError):
                raise
            if not is_transient(exc) or attempt == attempts:
                raise TransactionError(str(exc)) from exc
            delay = min(base_delay * 2 ** (attempt - 1), settings.db_retry_max_delay_seconds)
            logger.warning(f"Transient database fault (attempt {attempt}/{attempts}), retrying in {delay:.1f}s: {exc}")
            await asyncio.sleep(delay)
