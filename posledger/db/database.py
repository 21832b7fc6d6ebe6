from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def _is_memory_sqlite(url: str) -> bool:
    return url in {"sqlite://", "sqlite:///:memory:"} or "mode=memory" in url


class Database:
    """Engine and session factory with an explicit open/close lifecycle."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def open(self) -> None:
        if self._engine is not None:
            return
        is_sqlite = self.url.startswith("sqlite")
        options: dict = {"echo": self.echo}
        if is_sqlite:
            options["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(self.url):
                options["poolclass"] = StaticPool
        else:
            options["pool_pre_ping"] = True
            options["pool_recycle"] = 1800
        self._engine = create_engine(self.url, **options)
        self._session_factory = sessionmaker(bind=self._engine, autoflush=False, autocommit=False)

    def create_schema(self) -> None:
        # Importing the models registers every table on Base.metadata.
        import posledger.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        return self._session_factory()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
