"""
movies 表的数据访问：DDL 与可复用的查询构造器。
"""
from __future__ import annotations

from sqlite3 import Connection
from typing import Optional, Sequence, TYPE_CHECKING

from ..contract import MovieEntry

if TYPE_CHECKING:
    from ..db import Database
    from ..notify import Cursor


DDL = f"""
CREATE TABLE IF NOT EXISTS {MovieEntry.TABLE_NAME} (
  {MovieEntry.COLUMN_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
  {MovieEntry.COLUMN_MOVIE_ID} INTEGER NOT NULL,
  {MovieEntry.COLUMN_TITLE} TEXT NOT NULL,
  {MovieEntry.COLUMN_OVERVIEW} TEXT,
  {MovieEntry.COLUMN_POSTER_PATH} TEXT,
  {MovieEntry.COLUMN_RELEASE_DATE} TEXT,
  {MovieEntry.COLUMN_USER_POPULARITY} REAL,
  {MovieEntry.COLUMN_USER_RATING} REAL,
  UNIQUE ({MovieEntry.COLUMN_MOVIE_ID}) ON CONFLICT REPLACE
);
CREATE INDEX IF NOT EXISTS idx_movies_popularity ON {MovieEntry.TABLE_NAME}({MovieEntry.COLUMN_USER_POPULARITY});
CREATE INDEX IF NOT EXISTS idx_movies_rating ON {MovieEntry.TABLE_NAME}({MovieEntry.COLUMN_USER_RATING});
"""


def ensure_schema(conn: Connection):
    # statement by statement: executescript would commit an open transaction
    for stmt in DDL.split(";"):
        if stmt.strip():
            conn.execute(stmt)


def drop_schema(conn: Connection):
    conn.execute(f"DROP TABLE IF EXISTS {MovieEntry.TABLE_NAME}")


def count(conn: Connection) -> int:
    return conn.execute(f"SELECT COUNT(1) FROM {MovieEntry.TABLE_NAME}").fetchone()[0]


class MovieQueryBuilder:
    """Builds SELECTs against a fixed table; one instance is reused per provider."""

    def __init__(self, tables: str = MovieEntry.TABLE_NAME):
        self.tables = tables

    def query(
        self,
        db: "Database",
        projection: Optional[Sequence[str]],
        selection: Optional[str],
        selection_args: Optional[Sequence],
        group_by: Optional[str] = None,
        having: Optional[str] = None,
        sort_order: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> "Cursor":
        return db.query(
            self.tables,
            projection,
            selection,
            selection_args,
            group_by=group_by,
            having=having,
            order_by=sort_order,
            limit=limit,
        )
