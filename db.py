from __future__ import annotations
import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from errors import ConflictError, StorageUnavailableError

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self): return "UNSET"
    def __bool__(self): return False

# 部分更新时表示“未提供该字段”
UNSET = _Unset()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def present(**fields) -> dict:
    return {k: v for k, v in fields.items() if v is not UNSET}


def _is_memory(url) -> bool:
    return url.database in (None, "", ":memory:")


def _setup_sqlite(engine, memory: bool):
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, _record):
        # pysqlite 默认不在 DDL 前开启事务；交给下面的 BEGIN
        dbapi_conn.isolation_level = None
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys = ON")
        if not memory: cur.execute("PRAGMA journal_mode = WAL")
        cur.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Engine plus session factory for one store instance."""

    def __init__(self, url: str, echo: bool = False):
        self.url = make_url(url)
        kwargs = {"echo": echo, "pool_pre_ping": True}
        sqlite = self.url.get_backend_name() == "sqlite"
        memory = sqlite and _is_memory(self.url)
        if memory:
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        self.engine = create_engine(self.url, **kwargs)
        if sqlite: _setup_sqlite(self.engine, memory)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        # 内存库只有一条共享连接，会话必须串行
        self._lock = threading.RLock() if memory else nullcontext()

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            db = self.Session()
            try:
                yield db
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ConflictError(str(exc.orig)) from exc
            except OperationalError as exc:
                db.rollback()
                logger.warning("storage error: %s", exc.orig)
                raise StorageUnavailableError(str(exc.orig)) from exc
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def ping(self):
        try:
            with self._lock, self.engine.connect() as conn: conn.execute(text("SELECT 1"))
        except OperationalError as exc:
            raise StorageUnavailableError(str(exc.orig)) from exc

    def dispose(self): self.engine.dispose()
