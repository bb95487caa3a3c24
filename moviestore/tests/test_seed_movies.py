import pandas as pd
import pytest

from moviestore.contract import MovieEntry
from moviestore.scripts.seed_movies import read_movies_csv, seed_load


class DummyLog:
    def __init__(self):
        self.rows = None

    def record(self, rows=None, result_uri=None):
        self.rows = rows

    def write(self, result: str = "OK", err: str | None = None):
        # no-op for tests
        pass


def _write_csv(path, rows):
    pd.DataFrame(rows).to_csv(path, index=False)
    return str(path)


def test_read_movies_csv_drops_unknown_columns_and_nan(tmp_path):
    csv = _write_csv(tmp_path / "m.csv", [
        {"movie_id": 1, "title": "Heat", "popularity": 10.5, "overview": None, "extra": "x"},
        {"movie_id": 2, "title": "Ronin", "popularity": 3.0, "overview": "car chases", "extra": "y"},
    ])
    rows = read_movies_csv(csv)
    assert rows[0] == {"movie_id": 1, "title": "Heat", "overview": None, "popularity": 10.5}
    assert isinstance(rows[0]["movie_id"], int)
    assert rows[1]["overview"] == "car chases"


def test_read_movies_csv_requires_title(tmp_path):
    csv = _write_csv(tmp_path / "m.csv", [{"movie_id": 1, "popularity": 1.0}])
    with pytest.raises(ValueError):
        read_movies_csv(csv)


def test_seed_load_bulk_inserts_and_resets(provider, observer, tmp_path):
    csv = _write_csv(tmp_path / "m.csv", [
        {"movie_id": i, "title": f"Movie {i}", "popularity": 2.0, "user_rating": 5.0} for i in range(1, 4)
    ])
    log = DummyLog()
    out = seed_load(csv, provider, log)
    assert out == {"rows": 3, "inserted": 3, "deleted": 0}
    assert log.rows == 3
    assert len(observer.changes) == 1

    out = seed_load(csv, provider, log, reset=True)
    assert out == {"rows": 3, "inserted": 3, "deleted": 3}
    with provider.query(MovieEntry.build_movies_with_parameter("2.0")) as c:
        assert len(c) == 3
