from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
import os

# prod: mysql+aiomysql://chef:***@db/vmc1?charset=utf8mb4
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./vmc.db")
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# MySQL closes idle connections after wait_timeout (8h by default)
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    pool_recycle=-1 if IS_SQLITE else 3600,
)
SessionLocal = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

class Base(DeclarativeBase):
    pass

async def init_models():
    """Create missing tables (Utilisateur, SessionMesure, Mesure)."""
    from . import models  # noqa: F401  registers the tables on Base.metadata
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def get_db():
    async with SessionLocal() as session:
        yield session
