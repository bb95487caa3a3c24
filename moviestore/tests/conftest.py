import sys
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from moviestore.contract import MovieEntry
from moviestore.notify import ContentObserver, ContentResolver


class RecordingObserver(ContentObserver):
    def __init__(self):
        self.changes = []

    def on_change(self, self_change, uri=None):
        self.changes.append((self_change, uri))


@pytest.fixture()
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "movies_test.db"
    # Point the store (and the operation log) at this temp DB
    monkeypatch.setenv("MOVIES_DB_PATH", str(path))
    return str(path)


@pytest.fixture()
def resolver():
    return ContentResolver()


@pytest.fixture()
def observer(resolver):
    obs = RecordingObserver()
    resolver.register_content_observer(MovieEntry.CONTENT_URI, True, obs)
    return obs


@pytest.fixture()
def provider(db_path, resolver):
    from moviestore.provider import MoviesProvider
    p = MoviesProvider(resolver, db_path)
    assert p.on_create() is True
    yield p
    p.shutdown()


@pytest.fixture()
def make_movie():
    def _make(movie_id, title, popularity=None, user_rating=None, **extra):
        row = {
            MovieEntry.COLUMN_MOVIE_ID: movie_id,
            MovieEntry.COLUMN_TITLE: title,
            MovieEntry.COLUMN_USER_POPULARITY: popularity,
            MovieEntry.COLUMN_USER_RATING: user_rating,
        }
        row.update(extra)
        return row
    return _make


@pytest.fixture()
def client(db_path):
    from fastapi.testclient import TestClient
    from moviestore.api import app
    # context manager runs startup/shutdown (provider open/close)
    with TestClient(app) as c:
        yield c
