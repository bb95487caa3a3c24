"""
Load movie rows from a CSV into the movies table through the provider's
bulk insert (one transaction, one change notification).

CSV columns (header row required): movie_id, title, overview, poster_path,
release_date, popularity, user_rating. Unknown columns are ignored.

Usage:
  python -m moviestore.scripts.seed_movies --csv seeds/movies.csv [--reset]
"""
from __future__ import annotations

import argparse

import pandas as pd

from moviestore.contract import MovieEntry
from moviestore.logs import LogContext, ensure_log_schema
from moviestore.provider import MoviesProvider

_SEED_COLUMNS = [c for c in MovieEntry.ALL_COLUMNS if c != MovieEntry.COLUMN_ID]


def _py(v):
    if v is None or (isinstance(v, float) and v != v):
        return None
    return v.item() if hasattr(v, "item") else v


def read_movies_csv(csv_path: str) -> list[dict]:
    df = pd.read_csv(csv_path)
    cols = [c for c in _SEED_COLUMNS if c in df.columns]
    if MovieEntry.COLUMN_MOVIE_ID not in cols or MovieEntry.COLUMN_TITLE not in cols:
        raise ValueError("csv must have movie_id and title columns")
    df = df[cols].astype(object).where(pd.notna(df[cols]), None)
    return [{k: _py(v) for k, v in rec.items()} for rec in df.to_dict("records")]


def seed_load(csv_path: str, provider: MoviesProvider, log: LogContext, reset: bool = False) -> dict:
    rows = read_movies_csv(csv_path)
    deleted = provider.delete(MovieEntry.CONTENT_URI) if reset else 0
    inserted = provider.bulk_insert(MovieEntry.CONTENT_URI, rows)
    log.record(rows=inserted)
    return {"rows": len(rows), "inserted": inserted, "deleted": deleted}


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--csv", required=True)
    ap.add_argument("--reset", action="store_true", help="delete all movies before loading")
    ap.add_argument("--db", default=None, help="database path (default: MOVIES_DB_PATH / config.yaml)")
    args = ap.parse_args()

    ensure_log_schema(args.db)
    provider = MoviesProvider(db_path=args.db)
    provider.on_create()
    try:
        with LogContext("SEED_MOVIES", MovieEntry.CONTENT_URI, {"csv": args.csv, "reset": args.reset},
                        db_path=args.db) as log:
            res = seed_load(args.csv, provider, log, reset=args.reset)
    finally:
        provider.shutdown()
    print({"message": "ok", **res})


if __name__ == "__main__":
    main()
