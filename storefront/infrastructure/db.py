from typing import Iterator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from storefront.domain.models import Base


class Database:
    """Engine and session factory for one process.

    Built once in ``create_app`` and shared by reference; tests pass an
    in-memory SQLite engine instead of a Postgres URL.
    """

    def __init__(self, url: str = None, engine: Engine = None, echo: bool = False):
        if engine is None:
            if not url:
                raise ValueError("Database needs either a url or an engine")
            engine = create_engine(url, echo=echo, future=True, pool_pre_ping=True)
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def init_models(self):
        Base.metadata.create_all(self.engine)

    def dispose(self):
        self.engine.dispose()
