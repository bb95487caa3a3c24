from __future__ import annotations

# moviestore/errors.py
import sqlite3


class UnsupportedUriError(NotImplementedError):
    """URI did not match any route registered on the provider."""

    def __init__(self, uri: str):
        super().__init__(f"Unknown uri: {uri}")
        self.uri = uri


class WriteFailureError(sqlite3.DatabaseError):
    pass


class TransactionStateError(RuntimeError):
    pass
