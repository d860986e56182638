import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings
from app.core.exceptions import Conflict, ServiceError, StorageFailure

logger = logging.getLogger(__name__)

# pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
# when DB or network closed idle connections).
# pool_recycle: discard connections after this many seconds to avoid stale connections.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a multi-row billing mutation as one transaction.

    Commits when the block exits cleanly. Any exception rolls everything back:
    ServiceError subclasses propagate unchanged, IntegrityError becomes Conflict,
    any other database error becomes a generic StorageFailure.
    """
    try:
        yield db
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Transaction rolled back on integrity error: %s", exc.orig)
        raise Conflict("The operation conflicts with an existing record")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Transaction rolled back on storage error")
        raise StorageFailure("The operation could not be completed. Please retry.")
    except Exception:
        await db.rollback()
        raise
