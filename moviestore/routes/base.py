from __future__ import annotations

from fastapi import APIRouter, Request

from ..db import MoviesDbHelper

router = APIRouter()


@router.get("/health")
def health(request: Request):
    helper = request.app.state.provider.open_helper
    db = helper.get_readable_database()
    version = db.connection.execute("PRAGMA user_version").fetchone()[0]
    return {"status": "ok", "schema_version": version, "expected_version": MoviesDbHelper.DATABASE_VERSION}


@router.get("/version")
def version():
    return {"app": "moviestore-api", "version": "0.1.0"}
