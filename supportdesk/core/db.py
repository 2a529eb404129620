from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


class Database:
    """
    Explicitly constructed storage handle.

    Owns the engine and the session factory. Call ``init`` before handing out
    sessions and ``dispose`` on shutdown to release pooled connections.
    """

    def __init__(self, url: str, pool_size: int = 5, pool_timeout: int = 30, connect_timeout: int = 10):
        self.url = url
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.connect_timeout = connect_timeout
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def init(self, create_tables: bool = False) -> "Database":
        if self.engine is not None:
            return self
        if self.url.startswith("sqlite"):
            self.engine = create_engine(self.url, connect_args={"check_same_thread": False})
        else:
            self.engine = create_engine(
                self.url,
                pool_size=self.pool_size,
                pool_timeout=self.pool_timeout,
                pool_pre_ping=True,
                connect_args={"connect_timeout": self.connect_timeout},
            )
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        if create_tables:
            # Import for side effects: registers every table on Base.metadata.
            from supportdesk.models import habit, ticket  # noqa: F401
            Base.metadata.create_all(bind=self.engine)
        return self

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database.init() must be called before opening sessions")
        return self._session_factory()

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._session_factory = None


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
