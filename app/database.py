import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import settings
from app.exceptions import DatabaseError

logger = logging.getLogger(__name__)


def get_async_database_url(url: str) -> str:
    """Convert database URL to use asyncpg driver for async operations."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def get_engine_options(url: str) -> dict:
    """Pool and driver options; the asyncpg tuning only applies to PostgreSQL."""
    if not url.startswith("postgresql+asyncpg://"):
        return {}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        "connect_args": {
            "command_timeout": 60,
            "server_settings": {
                "jit": "off",
            },
        },
    }


DATABASE_URL = get_async_database_url(settings.database_url)

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    future=True,
    **get_engine_options(DATABASE_URL)
)

# Create async sessionmaker
SessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=True,
    autocommit=False
)

# Create Base class for models
Base = declarative_base()

# Dependency to get async database session
async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession, action: str = "save changes"):
    """
    Commit whatever the block writes, or roll all of it back.

    Driver and constraint failures surface as DatabaseError (DB_001); any
    other exception is re-raised unchanged after the rollback.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(f"Could not {action}: {exc}")
        raise DatabaseError(f"Could not {action}") from exc
    except Exception:
        await db.rollback()
        raise
