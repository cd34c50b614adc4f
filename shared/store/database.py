from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from shared.helper.HelperConfig import HelperConfig
from shared.store.orm import Base

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./knowledge.db"


class Database:
    """Owns the async engine and the session factory of the document store."""

    def __init__(self, url: str, logger=None):
        self.url = url
        self.logging = logger
        self.engine: AsyncEngine = create_async_engine(url, echo=False, future=True)
        self.session_factory = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
        )

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "Database":
        url = helper_config.get_string_val("DATABASE_URL", default=DEFAULT_DATABASE_URL)
        return cls(url=url, logger=helper_config.get_logger())

    async def init_db(self) -> None:
        """
        Create tables if they do not exist.
        Should be called once at startup.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        if self.logging:
            self.logging.info("Database initialized at %s", self.url.split("@")[-1])

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        await self.engine.dispose()
