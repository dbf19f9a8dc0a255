"""
core/db.py -- SQLAlchemy engine construction shared by every store.

tasks/store.py and auth/store.py each own their schema and repository, but
they must treat SQLite the same way: thread-agnostic connections and WAL
journal mode. Keeping the engine factory here stops the two from drifting.

Layer rule: core/ is the kernel. No imports from api/, auth/, cache/, tasks/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_url(db_url: str) -> bool:
    return ":memory:" in db_url or "mode=memory" in db_url


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url.

    SQLite requires check_same_thread=False because FastAPI runs sync
    handlers in a thread pool, so a pooled connection may be touched from
    more than one thread. In-memory databases have no journal file, so WAL
    is skipped for them.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine: Engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and not _is_memory_url(db_url):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
