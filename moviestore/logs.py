"""
Operation log for movie mutations, kept in the same SQLite file as the movies.

One row per insert / update / delete / bulk insert (or seed run): which URI was
touched, what was sent, how many rows it affected or which item URI it
created, and whether it failed.
"""
import json, time, uuid, datetime as dt
from typing import Optional
from .db import get_conn

DDL = """
CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  uri TEXT,
  request_id TEXT,
  payload_json TEXT,
  rows_affected INTEGER,
  result_uri TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts);
CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action);
CREATE INDEX IF NOT EXISTS idx_log_uri ON operation_log(uri);
"""

def ensure_log_schema(db_path: str | None = None):
    with get_conn(db_path) as conn:
        conn.executescript(DDL)

class LogContext:
    """
    Audit record for one mutation against a content URI.

    Use as a context manager: the row is written with result OK when the block
    finishes, or ERROR plus the exception text when it raises (the exception
    still propagates). write() can also be called directly.
    """

    def __init__(self, action: str, uri: str | None = None, payload=None,
                 user: str = "owner", db_path: str | None = None):
        self.action = action
        self.uri = uri
        self.payload = payload
        self.user = user
        self.db_path = db_path
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.rows_affected: Optional[int] = None
        self.result_uri: Optional[str] = None

    def record(self, rows: int | None = None, result_uri: str | None = None):
        if rows is not None:
            self.rows_affected = int(rows)
        if result_uri is not None:
            self.result_uri = result_uri

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is None:
            self.write("OK")
        else:
            self.write("ERROR", str(exc))
        return False

    def write(self, result: str = "OK", err: Optional[str] = None):
        rec = {
            "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "user": self.user,
            "action": self.action,
            "uri": self.uri,
            "request_id": self.request_id,
            "payload_json": json.dumps(self.payload, ensure_ascii=False) if self.payload is not None else None,
            "rows_affected": self.rows_affected,
            "result_uri": self.result_uri,
            "result": result,
            "err_msg": err,
            "latency_ms": int((time.perf_counter() - self.start) * 1000),
        }
        with get_conn(self.db_path) as conn:
            conn.execute(
                """INSERT INTO operation_log
                (ts,user,action,uri,request_id,payload_json,rows_affected,result_uri,result,err_msg,latency_ms)
                VALUES(:ts,:user,:action,:uri,:request_id,:payload_json,:rows_affected,:result_uri,:result,:err_msg,:latency_ms)""",
                rec
            )

def search_logs(q: str|None, action: str|None, ts_from: str|None, ts_to: str|None, page:int, size:int,
                uri: str | None = None, db_path: str | None = None):
    where = []
    params = {}
    if q:
        where.append("(payload_json LIKE :q OR uri LIKE :q OR result_uri LIKE :q OR err_msg LIKE :q)")
        params["q"] = f"%{q}%"
    if uri:
        where.append("uri = :uri")
        params["uri"] = uri
    if action:
        where.append("action = :action")
        params["action"] = action
    if ts_from:
        where.append("ts >= :from")
        params["from"] = ts_from
    if ts_to:
        where.append("ts <= :to")
        params["to"] = ts_to
    wh = " WHERE " + " AND ".join(where) if where else ""
    sql = f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT :limit OFFSET :offset"
    count_sql = f"SELECT COUNT(1) AS cnt FROM operation_log{wh}"
    with get_conn(db_path) as conn:
        total = conn.execute(count_sql, params).fetchone()["cnt"]
        rows = conn.execute(sql, {**params, "limit": size, "offset": (page-1)*size}).fetchall()
        return total, [dict(r) for r in rows]
