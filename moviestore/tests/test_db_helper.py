"""
DB helper / Database handle tests: lazy open, schema versioning, CRUD
sentinels and nested transactions.
"""

import logging
import os
import sqlite3

import pytest

from moviestore import db as db_module
from moviestore.contract import MovieEntry
from moviestore.db import MoviesDbHelper, get_conn, get_db_path
from moviestore.errors import TransactionStateError
from moviestore.repository import movie_repo


def _count(path):
    with get_conn(path) as conn:
        return movie_repo.count(conn)


def test_handle_is_opened_lazily_and_shared(db_path):
    helper = MoviesDbHelper(db_path)
    assert not os.path.exists(db_path)

    readable = helper.get_readable_database()
    writable = helper.get_writable_database()
    assert readable is writable
    assert os.path.exists(db_path)
    version = writable.connection.execute("PRAGMA user_version").fetchone()[0]
    assert version == MoviesDbHelper.DATABASE_VERSION

    helper.close()
    assert not writable.is_open
    reopened = helper.get_writable_database()
    assert reopened is not writable and reopened.is_open
    helper.close()


def test_upgrade_drops_old_table(db_path):
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE movies (_id INTEGER PRIMARY KEY, title TEXT)")
    conn.execute("INSERT INTO movies(title) VALUES('stale')")
    conn.execute("PRAGMA user_version = 1")
    conn.commit()
    conn.close()

    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()
    cols = [r["name"] for r in db.connection.execute("PRAGMA table_info(movies)")]
    assert MovieEntry.COLUMN_USER_RATING in cols
    assert _count(db_path) == 0
    helper.close()


def test_downgrade_refused(db_path):
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA user_version = 99")
    conn.commit()
    conn.close()

    helper = MoviesDbHelper(db_path)
    with pytest.raises(sqlite3.DatabaseError):
        helper.get_writable_database()


def test_insert_returns_minus_one_on_constraint_failure(db_path, caplog):
    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()

    with caplog.at_level(logging.ERROR, logger="moviestore.db"):
        assert db.insert(MovieEntry.TABLE_NAME, {MovieEntry.COLUMN_MOVIE_ID: 1}) == -1
    assert "Error inserting" in caplog.text
    # empty values fall back to DEFAULT VALUES, which NOT NULL columns reject
    assert db.insert(MovieEntry.TABLE_NAME, {}) == -1

    new_id = db.insert(MovieEntry.TABLE_NAME, {MovieEntry.COLUMN_MOVIE_ID: 1, MovieEntry.COLUMN_TITLE: "Alien"})
    assert new_id > 0
    helper.close()


def test_update_delete_counts(db_path):
    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()
    for i in range(3):
        db.insert(MovieEntry.TABLE_NAME, {"movie_id": i, "title": f"t{i}", "popularity": 1.0})

    assert db.update(MovieEntry.TABLE_NAME, {"popularity": 2.0}, "movie_id >= ?", [1]) == 2
    assert db.update(MovieEntry.TABLE_NAME, {"popularity": 3.0}) == 3
    with pytest.raises(ValueError):
        db.update(MovieEntry.TABLE_NAME, {})
    assert db.delete(MovieEntry.TABLE_NAME, "movie_id = ?", [0]) == 1
    assert db.delete(MovieEntry.TABLE_NAME, "1") == 2
    helper.close()


def test_transaction_commits_only_when_marked(db_path):
    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()

    db.begin_transaction()
    db.insert(MovieEntry.TABLE_NAME, {"movie_id": 1, "title": "a"})
    db.end_transaction()
    assert not db.in_transaction
    assert _count(db_path) == 0

    db.begin_transaction()
    db.insert(MovieEntry.TABLE_NAME, {"movie_id": 1, "title": "a"})
    db.set_transaction_successful()
    db.end_transaction()
    assert _count(db_path) == 1
    helper.close()


def test_nested_transaction_failure_rolls_back_outer(db_path):
    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()

    db.begin_transaction()
    db.insert(MovieEntry.TABLE_NAME, {"movie_id": 1, "title": "outer"})
    db.begin_transaction()
    db.insert(MovieEntry.TABLE_NAME, {"movie_id": 2, "title": "inner"})
    db.end_transaction()  # inner not marked
    db.set_transaction_successful()
    db.end_transaction()
    assert _count(db_path) == 0
    helper.close()


def test_transaction_misuse(db_path):
    helper = MoviesDbHelper(db_path)
    db = helper.get_writable_database()
    with pytest.raises(TransactionStateError):
        db.end_transaction()
    with pytest.raises(TransactionStateError):
        db.set_transaction_successful()

    db.begin_transaction()
    db.set_transaction_successful()
    with pytest.raises(TransactionStateError):
        db.set_transaction_successful()
    db.end_transaction()
    helper.close()


def test_db_path_resolution(tmp_path, monkeypatch):
    env_db = tmp_path / "env" / "m.db"
    monkeypatch.setenv("MOVIES_DB_PATH", str(env_db))
    assert get_db_path() == str(env_db)
    assert env_db.parent.is_dir()

    # config.yaml: test_db_path wins under pytest
    monkeypatch.delenv("MOVIES_DB_PATH")
    monkeypatch.setattr(db_module, "_PROJECT_ROOT", str(tmp_path))
    cfg_test = tmp_path / "cfg" / "test.db"
    (tmp_path / "config.yaml").write_text(
        f"db_path: {tmp_path / 'prod.db'}\ntest_db_path: {cfg_test}\n", encoding="utf-8"
    )
    assert get_db_path() == str(cfg_test)


def test_get_conn_rows(db_path):
    with get_conn() as conn:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1
