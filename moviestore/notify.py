"""
Change notification: observers keyed by URI and the cursors that listen on them.

Matching only looks at authority + path segments; query strings are ignored,
so a change on content://moviestore/movies reaches a cursor that was opened on
content://moviestore/movies?param=7.5.
"""
from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence, Tuple
from sqlite3 import Row

from .contract import authority_of, path_segments

logger = logging.getLogger(__name__)


def _uri_key(uri: str) -> Tuple[str, ...]:
    return (authority_of(uri), *path_segments(uri))


class ContentObserver:
    """Receives change callbacks. Subclass and override on_change."""

    def on_change(self, self_change: bool, uri: Optional[str] = None) -> None:
        pass

    def dispatch_change(self, self_change: bool, uri: Optional[str] = None) -> None:
        self.on_change(self_change, uri)


class ContentResolver:
    def __init__(self):
        # (key, notify_for_descendants, observer)
        self._observers: List[Tuple[Tuple[str, ...], bool, ContentObserver]] = []

    def register_content_observer(self, uri: str, notify_for_descendants: bool, observer: ContentObserver) -> None:
        self._observers.append((_uri_key(uri), bool(notify_for_descendants), observer))

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._observers = [o for o in self._observers if o[2] is not observer]

    def observer_count(self) -> int:
        return len(self._observers)

    def notify_change(self, uri: str, observer: Optional[ContentObserver] = None) -> int:
        """Dispatch a change on `uri`; returns how many observers were called."""
        changed = _uri_key(uri)
        targets = []
        for key, descendants, obs in list(self._observers):
            if key == changed:
                targets.append(obs)
            elif descendants and changed[: len(key)] == key:
                targets.append(obs)
            elif key[: len(changed)] == changed:
                targets.append(obs)
        for obs in targets:
            obs.dispatch_change(obs is observer, uri)
        logger.debug("notify_change %s -> %d observer(s)", uri, len(targets))
        return len(targets)


class _CursorSelfObserver(ContentObserver):
    def __init__(self, cursor: "Cursor"):
        self._cursor = cursor

    def on_change(self, self_change: bool, uri: Optional[str] = None) -> None:
        self._cursor._on_change(self_change, uri)


class Cursor:
    """Closeable, point-in-time snapshot of a query result."""

    def __init__(self, columns: Sequence[str], rows: Sequence[Row]):
        self.columns = list(columns)
        self._rows = list(rows)
        self._closed = False
        self._observers: List[ContentObserver] = []
        self._resolver: Optional[ContentResolver] = None
        self._notify_uri: Optional[str] = None
        self._self_observer: Optional[_CursorSelfObserver] = None

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        self._check_open()
        return iter(self._rows)

    def __getitem__(self, idx: int) -> Row:
        self._check_open()
        return self._rows[idx]

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def get_count(self) -> int:
        return len(self._rows)

    def fetchall(self) -> List[dict]:
        self._check_open()
        return [dict(r) for r in self._rows]

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unregister_self()
        self._observers.clear()

    def register_content_observer(self, observer: ContentObserver) -> None:
        self._observers.append(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._observers = [o for o in self._observers if o is not observer]

    def set_notification_uri(self, resolver: ContentResolver, uri: str) -> None:
        self._unregister_self()
        self._resolver = resolver
        self._notify_uri = uri
        self._self_observer = _CursorSelfObserver(self)
        resolver.register_content_observer(uri, True, self._self_observer)

    def get_notification_uri(self) -> Optional[str]:
        return self._notify_uri

    def _unregister_self(self) -> None:
        if self._resolver is not None and self._self_observer is not None:
            self._resolver.unregister_content_observer(self._self_observer)
        self._self_observer = None

    def _on_change(self, self_change: bool, uri: Optional[str]) -> None:
        for obs in list(self._observers):
            obs.dispatch_change(self_change, uri)

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("cursor is closed")
