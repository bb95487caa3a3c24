from __future__ import annotations

# moviestore/matcher.py
from typing import List, Optional

from .contract import authority_of, path_segments

NO_MATCH = -1

_EXACT = 0
_NUMBER = 1
_TEXT = 2


class UriMatcher:
    """
    Routing table from (authority, path pattern) to an integer code.

    Path segments may be literal text, `#` (digits only) or `*` (any single
    segment). Registering the same pattern twice keeps the last code.
    Children are tried in registration order; the first one that matches a
    segment is followed.
    """

    def __init__(self, code: int = NO_MATCH):
        self._code = code
        self._which = -1
        self._text: Optional[str] = None
        self._children: List[UriMatcher] = []

    def add_uri(self, authority: str, path: Optional[str], code: int) -> None:
        if code < 0:
            raise ValueError(f"code {code} is invalid: it must be positive")

        tokens = [authority] + [t for t in (path or "").split("/") if t]
        node = self
        for token in tokens:
            child = next((c for c in node._children if c._text == token), None)
            if child is None:
                child = UriMatcher()
                if token == "#":
                    child._which = _NUMBER
                elif token == "*":
                    child._which = _TEXT
                else:
                    child._which = _EXACT
                child._text = token
                node._children.append(child)
            node = child
        node._code = code

    def match(self, uri: str) -> int:
        try:
            segments = path_segments(uri)
            authority = authority_of(uri)
        except ValueError:
            return NO_MATCH

        if not authority and not segments:
            return self._code

        node: Optional[UriMatcher] = self
        for token in [authority] + segments:
            children = node._children
            node = None
            for child in children:
                if child._which == _EXACT:
                    if child._text == token:
                        node = child
                elif child._which == _NUMBER:
                    if token.isdigit():
                        node = child
                elif child._which == _TEXT:
                    node = child
                if node is not None:
                    break
            if node is None:
                return NO_MATCH
        return node._code
