"""
Movies content provider: routes content URIs to SQL over the movies table and
broadcasts changes through a ContentResolver.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional, Sequence

from .contract import CONTENT_AUTHORITY, PATH_MOVIES, MovieEntry
from .db import MoviesDbHelper
from .errors import UnsupportedUriError, WriteFailureError
from .matcher import UriMatcher, NO_MATCH
from .notify import ContentResolver, Cursor
from .repository.movie_repo import MovieQueryBuilder

logger = logging.getLogger(__name__)

MOVIE_WITH_POPULARITY = 100
MOVIE_WITH_RATING = 101

_RATING_SETTING_SELECTION = f"{MovieEntry.TABLE_NAME}.{MovieEntry.COLUMN_USER_RATING} = ? "
_POPULARITY_SETTING_SELECTION = f"{MovieEntry.TABLE_NAME}.{MovieEntry.COLUMN_USER_POPULARITY} = ? "


class ContentProvider(ABC):
    """Request/response contract the hosting layer calls into."""

    def __init__(self, resolver: Optional[ContentResolver] = None):
        self.resolver = resolver or ContentResolver()

    @abstractmethod
    def on_create(self) -> bool: ...

    @abstractmethod
    def get_type(self, uri: str) -> Optional[str]: ...

    @abstractmethod
    def query(self, uri: str, projection: Optional[Sequence[str]] = None, selection: Optional[str] = None,
              selection_args: Optional[Sequence] = None, sort_order: Optional[str] = None) -> Cursor: ...

    @abstractmethod
    def insert(self, uri: str, values: Mapping) -> str: ...

    @abstractmethod
    def delete(self, uri: str, selection: Optional[str] = None, selection_args: Optional[Sequence] = None) -> int: ...

    @abstractmethod
    def update(self, uri: str, values: Mapping, selection: Optional[str] = None,
               selection_args: Optional[Sequence] = None) -> int: ...

    def bulk_insert(self, uri: str, values: Iterable[Mapping]) -> int:
        n = 0
        for v in values:
            self.insert(uri, v)
            n += 1
        return n

    def shutdown(self) -> None:
        logger.debug("%s shut down", type(self).__name__)


def build_uri_matcher() -> UriMatcher:
    matcher = UriMatcher(NO_MATCH)
    authority = CONTENT_AUTHORITY

    # same path twice: the later registration wins, "by rating" is never matched
    matcher.add_uri(authority, PATH_MOVIES, MOVIE_WITH_RATING)
    matcher.add_uri(authority, PATH_MOVIES, MOVIE_WITH_POPULARITY)
    return matcher


class MoviesProvider(ContentProvider):
    def __init__(self, resolver: Optional[ContentResolver] = None, db_path: Optional[str] = None):
        super().__init__(resolver)
        self.db_path = db_path
        self.uri_matcher: Optional[UriMatcher] = None
        self.query_builder: Optional[MovieQueryBuilder] = None
        self.open_helper: Optional[MoviesDbHelper] = None

    def on_create(self) -> bool:
        self.uri_matcher = build_uri_matcher()
        self.query_builder = MovieQueryBuilder()
        self.open_helper = MoviesDbHelper(self.db_path)
        return True

    def _get_movie_by_popularity(self, uri: str, projection, sort_order) -> Cursor:
        parameter = MovieEntry.get_parameter_from_uri(uri)
        return self.query_builder.query(
            self.open_helper.get_readable_database(),
            projection,
            _POPULARITY_SETTING_SELECTION,
            [parameter],
            None,
            None,
            sort_order,
        )

    def _get_movie_by_rating(self, uri: str, projection, sort_order) -> Cursor:
        parameter = MovieEntry.get_parameter_from_uri(uri)
        return self.query_builder.query(
            self.open_helper.get_readable_database(),
            projection,
            _RATING_SETTING_SELECTION,
            [parameter],
            None,
            None,
            sort_order,
        )

    def get_type(self, uri: str) -> str:
        code = self.uri_matcher.match(uri)
        if code in (MOVIE_WITH_RATING, MOVIE_WITH_POPULARITY):
            return MovieEntry.CONTENT_TYPE
        raise UnsupportedUriError(uri)

    def query(self, uri, projection=None, selection=None, selection_args=None, sort_order=None) -> Cursor:
        # selection / selection_args from the caller are not used: the route decides the filter
        code = self.uri_matcher.match(uri)
        if code == MOVIE_WITH_RATING:
            cursor = self._get_movie_by_rating(uri, projection, sort_order)
        elif code == MOVIE_WITH_POPULARITY:
            cursor = self._get_movie_by_popularity(uri, projection, sort_order)
        else:
            raise UnsupportedUriError(uri)
        cursor.set_notification_uri(self.resolver, uri)
        return cursor

    def insert(self, uri, values) -> str:
        db = self.open_helper.get_writable_database()
        _id = db.insert(MovieEntry.TABLE_NAME, values)
        if _id > 0:
            return_uri = MovieEntry.build_movie_uri(_id)
        else:
            raise WriteFailureError(f"Failed to insert row into {uri}")
        self.resolver.notify_change(uri)
        return return_uri

    def delete(self, uri, selection=None, selection_args=None) -> int:
        db = self.open_helper.get_writable_database()
        if selection is None:
            selection = "1"
        rows_deleted = db.delete(MovieEntry.TABLE_NAME, selection, selection_args)
        if rows_deleted != 0:
            self.resolver.notify_change(uri)
        return rows_deleted

    def update(self, uri, values, selection=None, selection_args=None) -> int:
        db = self.open_helper.get_writable_database()
        rows_updated = db.update(MovieEntry.TABLE_NAME, values, selection, selection_args)
        if rows_updated != 0:
            self.resolver.notify_change(uri)
        return rows_updated

    def bulk_insert(self, uri, values) -> int:
        """
        Insert every item inside one transaction.

        Items the table rejects are skipped and not counted. An engine error
        propagates and rolls the whole batch back. The count is what this call
        saw succeed; if an enclosing transaction is rolled back later, none of
        those rows persist.
        """
        db = self.open_helper.get_writable_database()
        db.begin_transaction()
        return_count = 0
        try:
            for value in values:
                _id = db.insert(MovieEntry.TABLE_NAME, value)
                if _id != -1:
                    return_count += 1
            db.set_transaction_successful()
        finally:
            db.end_transaction()
        self.resolver.notify_change(uri)
        return return_count

    def shutdown(self) -> None:
        if self.open_helper is not None:
            self.open_helper.close()
        super().shutdown()
