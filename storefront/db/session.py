from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy import create_engine
from storefront.core.config import settings

class Base(DeclarativeBase): pass

def make_engine(url: str):
    if url.startswith("sqlite"):
        # single shared connection so in-memory databases survive across threads
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)

engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

