"""SQLite engine and session management for the metric store."""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base


MEMORY_URLS = ('sqlite://', 'sqlite:///:memory:')

# Applied to every new SQLite connection
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
    "PRAGMA temp_store=memory",
    "PRAGMA mmap_size=268435456",
)


def is_memory_url(database_url: str) -> bool:
    return database_url in MEMORY_URLS


def sqlite_file_path(database_url: str) -> Optional[Path]:
    """File behind a sqlite:/// URL, None for in-memory or non-SQLite URLs."""
    if not database_url.startswith('sqlite:///') or is_memory_url(database_url):
        return None
    return Path(database_url[len('sqlite:///'):])


def ensure_database_directory(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    db_path = sqlite_file_path(database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)


class DatabaseManager:
    """Owns the engine and the thread-local session registry."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Args:
            database_url: SQLAlchemy URL, normally sqlite:///path/to/file.db
            echo: Log every SQL statement
        """
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[Engine] = create_engine(database_url, **self._engine_options())
        if self.is_sqlite:
            event.listen(self._engine, 'connect', _apply_sqlite_pragmas)
        self._scoped_session: Optional[scoped_session] = scoped_session(sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False
        ))

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith('sqlite:')

    def _engine_options(self) -> Dict[str, Any]:
        if not self.is_sqlite:
            return {'echo': self.echo, 'pool_pre_ping': True, 'pool_recycle': 3600}

        ensure_database_directory(self.database_url)
        options: Dict[str, Any] = {
            'echo': self.echo,
            'connect_args': {'check_same_thread': False, 'timeout': 30}
        }
        if is_memory_url(self.database_url):
            # One shared connection, otherwise every checkout sees an empty database
            options['poolclass'] = StaticPool
        else:
            options['pool_pre_ping'] = True
        return options

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database engine not initialized")
        return self._engine

    def get_session(self) -> Session:
        """Session bound to the calling thread."""
        if self._scoped_session is None:
            raise RuntimeError("Database session factory not initialized")
        return self._scoped_session()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Yields:
            Database session, committed on success and rolled back on error
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_all_tables(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def vacuum(self) -> None:
        """Reclaim free pages. VACUUM cannot run inside a transaction."""
        if not self.is_sqlite:
            return
        with self.engine.connect() as conn:
            conn.execution_options(isolation_level='AUTOCOMMIT').exec_driver_sql('VACUUM')

    def get_database_path(self) -> Optional[Path]:
        return sqlite_file_path(self.database_url)

    def get_database_size(self) -> Optional[int]:
        """
        Size of the database file plus its write-ahead log.

        Returns:
            Size in bytes, or None for in-memory and non-SQLite databases
        """
        db_path = self.get_database_path()
        if db_path is None or not db_path.exists():
            return None

        size = db_path.stat().st_size
        wal_path = db_path.with_name(db_path.name + '-wal')
        if wal_path.exists():
            size += wal_path.stat().st_size
        return size

    def close(self) -> None:
        """Drop thread sessions and pooled connections."""
        if self._scoped_session is not None:
            self._scoped_session.remove()
        if self._engine is not None:
            self._engine.dispose()


def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    for pragma in SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()
