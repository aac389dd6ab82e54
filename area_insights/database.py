from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from area_insights.config import settings


def _async_url(url: str) -> str:
    # Plain postgres URLs are upgraded to the asyncpg driver
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


async_database_url = _async_url(settings.database_url)

engine_options = {"echo": settings.debug, "pool_pre_ping": True}
if async_database_url.startswith("postgresql"):
    engine_options.update(pool_size=20, max_overflow=0)

async_engine = create_async_engine(async_database_url, **engine_options)

AsyncSessionLocal = sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

Base = declarative_base(metadata=MetaData(naming_convention=convention))


async def init_db(engine=None):
    """Create tables that do not exist yet"""
    engine = engine or async_engine
    async with engine.begin() as conn:
        # Import models so they are registered on the metadata
        from area_insights.models import UserPreference  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def check_db() -> bool:
    async with async_engine.connect() as conn:
        await conn.exec_driver_sql("SELECT 1")
    return True
