from __future__ import annotations

# moviestore/db.py
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Mapping, Optional, Sequence

import yaml

from .errors import TransactionStateError
from .notify import Cursor
from .repository import movie_repo

logger = logging.getLogger(__name__)

# DB 路径解析顺序：
# 1) 环境变量 MOVIES_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（生产默认）
# 4) 兜底：项目根 movies.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "movies.db")


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("ignoring unreadable %s: %s", cfg_path, e)
        return {}
    out = {}
    for k in ("db_path", "test_db_path"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def get_db_path(_: str | None = None) -> str:
    env_path = os.environ.get("MOVIES_DB_PATH")
    cfg = _read_config_yaml()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def _connect(path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(
        path,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
        isolation_level=None,
    )
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    Short-lived connection for scripts and the operation log.
    Autocommit mode; foreign_keys on; rows are sqlite3.Row.
    """
    conn = _connect(db_path or get_db_path())
    try:
        yield conn
    finally:
        conn.close()


class Database:
    """
    Handle over one SQLite connection with table-level CRUD helpers and
    explicit transactions (begin / mark successful / end).

    Transactions nest: the outermost end_transaction commits only when every
    level was marked successful, otherwise everything rolls back.

    The connection is shared between threads, so a transaction belongs to the
    thread that began it: that thread holds the handle lock until its
    outermost end_transaction, and every other call waits on the same lock.
    Writes from other threads never land inside someone else's transaction,
    and readers never see its uncommitted rows.
    """

    def __init__(self, conn: sqlite3.Connection, path: str):
        self._conn = conn
        self.path = path
        self._lock = threading.RLock()
        self._tx_marks: List[bool] = []
        self._tx_failed = False

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        with self._lock:
            return bool(self._tx_marks)

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ----- queries -----

    def query(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        selection: Optional[str] = None,
        selection_args: Optional[Sequence] = None,
        group_by: Optional[str] = None,
        having: Optional[str] = None,
        order_by: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> Cursor:
        cols = ", ".join(columns) if columns else "*"
        sql = f"SELECT {cols} FROM {table}"
        if selection:
            sql += f" WHERE {selection}"
        if group_by:
            sql += f" GROUP BY {group_by}"
        if having:
            sql += f" HAVING {having}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit:
            sql += f" LIMIT {limit}"
        with self._lock:
            cur = self._conn.execute(sql, list(selection_args or []))
            names = [d[0] for d in cur.description] if cur.description else []
            return Cursor(names, cur.fetchall())

    def insert(self, table: str, values: Optional[Mapping]) -> int:
        """Insert one row. Returns the new rowid, or -1 when a constraint rejects it."""
        values = dict(values or {})
        if values:
            cols = ", ".join(values.keys())
            marks = ", ".join(["?"] * len(values))
            sql = f"INSERT INTO {table}({cols}) VALUES({marks})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        with self._lock:
            try:
                cur = self._conn.execute(sql, list(values.values()))
            except sqlite3.IntegrityError as e:
                logger.error("Error inserting %s into %s: %s", values, table, e)
                return -1
            return cur.lastrowid

    def update(self, table: str, values: Mapping, where: Optional[str] = None, where_args: Optional[Sequence] = None) -> int:
        if not values:
            raise ValueError("Empty values")
        sets = ", ".join(f"{k}=?" for k in values.keys())
        sql = f"UPDATE {table} SET {sets}"
        if where:
            sql += f" WHERE {where}"
        with self._lock:
            cur = self._conn.execute(sql, [*values.values(), *(where_args or [])])
            return cur.rowcount

    def delete(self, table: str, where: Optional[str] = None, where_args: Optional[Sequence] = None) -> int:
        sql = f"DELETE FROM {table}"
        if where:
            sql += f" WHERE {where}"
        with self._lock:
            cur = self._conn.execute(sql, list(where_args or []))
            return cur.rowcount

    # ----- transactions -----

    def begin_transaction(self):
        # held until the matching end_transaction
        self._lock.acquire()
        try:
            if not self._tx_marks:
                self._conn.execute("BEGIN IMMEDIATE")
                self._tx_failed = False
        except BaseException:
            self._lock.release()
            raise
        self._tx_marks.append(False)

    def set_transaction_successful(self):
        with self._lock:
            if not self._tx_marks:
                raise TransactionStateError("no transaction pending")
            if self._tx_marks[-1]:
                raise TransactionStateError("transaction already marked successful")
            self._tx_marks[-1] = True

    def end_transaction(self):
        with self._lock:
            if not self._tx_marks:
                raise TransactionStateError("no transaction pending")
            try:
                ok = self._tx_marks.pop()
                if not ok:
                    self._tx_failed = True
                if not self._tx_marks:
                    try:
                        self._conn.execute("ROLLBACK" if self._tx_failed else "COMMIT")
                    finally:
                        self._tx_failed = False
            finally:
                # matches the acquire in begin_transaction
                self._lock.release()


class MoviesDbHelper:
    """
    Owns the single Database handle for the movies store.

    The handle is opened on first use; a new file gets the schema, an older
    user_version is upgraded by dropping and recreating the table (the store
    only caches remote movie data).
    """

    DATABASE_NAME = "movies.db"
    DATABASE_VERSION = 2

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path
        self._db: Optional[Database] = None
        self._lock = threading.Lock()

    def get_writable_database(self) -> Database:
        with self._lock:
            if self._db is None or not self._db.is_open:
                self._db = self._open()
            return self._db

    def get_readable_database(self) -> Database:
        return self.get_writable_database()

    def close(self):
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None

    def on_create(self, db: Database):
        logger.info("creating movies schema in %s", db.path)
        movie_repo.ensure_schema(db.connection)

    def on_upgrade(self, db: Database, old_version: int, new_version: int):
        logger.info("upgrading movies schema %s -> %s, dropping cached rows", old_version, new_version)
        movie_repo.drop_schema(db.connection)
        self.on_create(db)

    def on_downgrade(self, db: Database, old_version: int, new_version: int):
        raise sqlite3.DatabaseError(f"Can't downgrade database from version {old_version} to {new_version}")

    def _open(self) -> Database:
        path = self.db_path or get_db_path()
        db = Database(_connect(path), path)
        try:
            version = db.connection.execute("PRAGMA user_version").fetchone()[0]
            if version != self.DATABASE_VERSION:
                db.begin_transaction()
                try:
                    if version == 0:
                        self.on_create(db)
                    elif version < self.DATABASE_VERSION:
                        self.on_upgrade(db, version, self.DATABASE_VERSION)
                    else:
                        self.on_downgrade(db, version, self.DATABASE_VERSION)
                    db.connection.execute(f"PRAGMA user_version = {int(self.DATABASE_VERSION)}")
                    db.set_transaction_successful()
                finally:
                    db.end_transaction()
        except Exception:
            db.close()
            raise
        return db
