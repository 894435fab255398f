from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession

from libs.common.config import get_settings

settings = get_settings()


def configure_sqlite(engine: AsyncEngine) -> AsyncEngine:
    """Make SQLite transactions behave like PostgreSQL's for local runs and tests.

    pysqlite's implicit BEGIN breaks SAVEPOINT handling, so SQLAlchemy emits
    the BEGIN itself; IMMEDIATE takes the write lock up front so concurrent
    writers queue instead of failing mid-transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


if settings.DATABASE_URL.startswith("sqlite"):
    engine = configure_sqlite(
        create_async_engine(
            settings.DATABASE_URL,
            future=True,
            connect_args={"timeout": settings.DB_POOL_TIMEOUT},
        )
    )
else:
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=(settings.ENVIRONMENT == "local"),
        future=True,
        pool_pre_ping=True,  # Test connections before using
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)
