from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from crm_service.config import Settings, settings


def build_engine(cfg: Settings) -> AsyncEngine:
    # no connection is opened until first use
    return create_async_engine(
        cfg.database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=cfg.DB_POOL_SIZE,
        max_overflow=cfg.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=cfg.DB_POOL_RECYCLE,
        echo=cfg.DB_ECHO,
    )


engine = build_engine(settings)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)
