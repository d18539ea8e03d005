"""Database lifecycle and persistence helpers.

The ``Database`` object owns the SQLAlchemy engine. It is constructed once at
startup, opened, handed to the components that need it and closed on shutdown.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from fastapi import Request
from sqlalchemy import JSON, create_engine, inspect
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Database:
    """Explicitly opened/closed persistence client."""

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Database":
        if self.engine is not None:
            return self

        kwargs: dict = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url.rstrip("/") == "sqlite:":
                # in-memory databases live on a single connection
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        self.engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None

    def create_all(self) -> None:
        # registers every table on Base.metadata
        import quickbarber.models  # noqa: F401

        if self.engine is None:
            raise RuntimeError("Database is not open")
        Base.metadata.create_all(self.engine)

    def new_session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        return self._session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Unit of work: commit on success, rollback on any error."""
        db = self.new_session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.new_session()
    try:
        yield db
    finally:
        db.close()


def insert_if_absent(
    db: Session,
    record: Base,
    *,
    index_elements: Sequence[str],
    index_where=None,
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING for a transient ORM instance.

    The instance is only used as a validated carrier of column values; it is
    not added to the session. Returns True when a row was written.
    """
    mapper = inspect(type(record))
    values = {}
    for attr in mapper.column_attrs:
        value = getattr(record, attr.key)
        if value is not None:
            values[attr.columns[0].name] = value

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(mapper.local_table)
    elif dialect == "sqlite":
        stmt = sqlite.insert(mapper.local_table)
    else:
        raise NotImplementedError(f"insert_if_absent is not supported for dialect {dialect}")

    stmt = stmt.values(**values).on_conflict_do_nothing(index_elements=list(index_elements), index_where=index_where)
    result = db.execute(stmt)
    return result.rowcount > 0
