"""Repository layer: DB access helpers (SQLite).

Keep the SQL for the movies table here, so the provider only builds selections.
"""
from __future__ import annotations
