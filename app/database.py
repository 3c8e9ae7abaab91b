from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from models.job import Base
from config import DATABASE_URL, DB_ECHO


def build_engine(url: str = DATABASE_URL, echo: bool = DB_ECHO) -> AsyncEngine:
    return create_async_engine(url, echo=echo)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()
async_session = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = None):
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
