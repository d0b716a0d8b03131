import sys

from uuid import uuid4

from sqlalchemy import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from imagegen.common.log import log
from imagegen.common.model import MappedBase
from imagegen.core.conf import settings
from imagegen.core.path_conf import BASE_PATH


def create_database_url() -> URL | str:
    """Create the database connection URL"""
    if settings.DATABASE_TYPE == 'sqlite':
        return f'sqlite+aiosqlite:///{BASE_PATH / settings.DATABASE_SQLITE_FILE}'

    return URL.create(
        drivername='postgresql+asyncpg',
        username=settings.DATABASE_USER,
        password=settings.DATABASE_PASSWORD,
        host=settings.DATABASE_HOST,
        port=settings.DATABASE_PORT,
        database=settings.DATABASE_SCHEMA,
    )


def create_async_engine_and_session(url: str | URL) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create the async engine and session factory

    :param url: database connection URL
    :return:
    """
    try:
        engine_kwargs = {
            'echo': settings.DATABASE_ECHO,
            'echo_pool': settings.DATABASE_POOL_ECHO,
            'future': True,
        }
        if not str(url).startswith('sqlite'):
            engine_kwargs.update(
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_recycle=3600,
                pool_pre_ping=True,
                pool_use_lifo=False,
            )
        engine = create_async_engine(url, **engine_kwargs)
    except Exception as e:
        log.error('❌ Database connection failed {}', e)
        sys.exit()
    else:
        db_session = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        return engine, db_session


async def create_tables() -> None:
    """Create database tables"""
    import imagegen.src.billing.domain.models  # noqa: F401

    async with async_engine.begin() as coon:
        await coon.run_sync(MappedBase.metadata.create_all)


async def drop_tables() -> None:
    """Drop database tables"""
    import imagegen.src.billing.domain.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(MappedBase.metadata.drop_all)


def uuid4_str() -> str:
    """uuid4 as a string"""
    return str(uuid4())


SQLALCHEMY_DATABASE_URL = create_database_url()

async_engine, async_db_session = create_async_engine_and_session(SQLALCHEMY_DATABASE_URL)

