from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import DB_ECHO

Base = declarative_base()


def get_engine(database_url: str):
    return create_async_engine(database_url, echo=DB_ECHO, future=True)


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False
    )


async def create_schema(engine):
    # dev/test only; production schema comes from alembic
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
