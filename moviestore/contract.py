"""
Movie table contract: names shared by the provider, the DB helper and callers.

URIs look like:
  content://moviestore/movies                 directory of movies
  content://moviestore/movies?param=7.5       directory filtered by a value
  content://moviestore/movies/12              single row by _id
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

CONTENT_AUTHORITY = "moviestore"
BASE_CONTENT_URI = f"content://{CONTENT_AUTHORITY}"

PATH_MOVIES = "movies"

# query parameter carrying the filter value
PARAM_KEY = "param"


def path_segments(uri: str) -> list[str]:
    return [s for s in urlsplit(uri).path.split("/") if s]


def authority_of(uri: str) -> str:
    return urlsplit(uri).netloc


class MovieEntry:
    CONTENT_URI = f"{BASE_CONTENT_URI}/{PATH_MOVIES}"

    CONTENT_TYPE = f"vnd.moviestore.dir/{CONTENT_AUTHORITY}/{PATH_MOVIES}"
    CONTENT_ITEM_TYPE = f"vnd.moviestore.item/{CONTENT_AUTHORITY}/{PATH_MOVIES}"

    TABLE_NAME = "movies"

    COLUMN_ID = "_id"
    COLUMN_MOVIE_ID = "movie_id"
    COLUMN_TITLE = "title"
    COLUMN_OVERVIEW = "overview"
    COLUMN_POSTER_PATH = "poster_path"
    COLUMN_RELEASE_DATE = "release_date"
    COLUMN_USER_POPULARITY = "popularity"
    COLUMN_USER_RATING = "user_rating"

    ALL_COLUMNS = (
        COLUMN_ID,
        COLUMN_MOVIE_ID,
        COLUMN_TITLE,
        COLUMN_OVERVIEW,
        COLUMN_POSTER_PATH,
        COLUMN_RELEASE_DATE,
        COLUMN_USER_POPULARITY,
        COLUMN_USER_RATING,
    )

    @staticmethod
    def build_movie_uri(row_id: int) -> str:
        return f"{MovieEntry.CONTENT_URI}/{int(row_id)}"

    @staticmethod
    def build_movies_with_parameter(parameter) -> str:
        return f"{MovieEntry.CONTENT_URI}?{urlencode({PARAM_KEY: str(parameter)})}"

    @staticmethod
    def get_parameter_from_uri(uri: str) -> Optional[str]:
        """First `param` value in the query string, None when absent."""
        values = parse_qs(urlsplit(uri).query, keep_blank_values=True).get(PARAM_KEY)
        return values[0] if values else None

    @staticmethod
    def get_id_from_uri(uri: str) -> Optional[int]:
        segs = path_segments(uri)
        if len(segs) >= 2 and segs[1].isdigit():
            return int(segs[1])
        return None
