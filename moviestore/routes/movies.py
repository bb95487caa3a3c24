from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from ..contract import MovieEntry
from ..errors import UnsupportedUriError
from ..logs import LogContext
from ..provider import ContentProvider

router = APIRouter()


class InsertBody(BaseModel):
    uri: str
    values: dict[str, Any]


class UpdateBody(BaseModel):
    uri: str
    values: dict[str, Any]
    selection: str | None = None
    selection_args: list[Any] | None = None


class DeleteBody(BaseModel):
    uri: str
    selection: str | None = None
    selection_args: list[Any] | None = None


class BulkInsertBody(BaseModel):
    uri: str
    values: list[dict[str, Any]]


def _provider(request: Request) -> ContentProvider:
    return request.app.state.provider


@router.get("/api/provider/type")
def api_provider_type(request: Request, uri: str):
    try:
        return {"uri": uri, "type": _provider(request).get_type(uri)}
    except UnsupportedUriError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/provider/query")
def api_provider_query(
    request: Request,
    uri: str,
    projection: list[str] | None = Query(None),
    sort_order: str | None = None,
):
    try:
        with _provider(request).query(uri, projection, None, None, sort_order) as cursor:
            return {"uri": uri, "columns": cursor.columns, "items": cursor.fetchall()}
    except UnsupportedUriError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


_WRITABLE_COLUMNS = frozenset(MovieEntry.ALL_COLUMNS)


def _check_columns(values: dict[str, Any]):
    # keys become column names in the generated SQL
    unknown = sorted(k for k in values if k not in _WRITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"unknown_columns: {', '.join(unknown)}")


@router.post("/api/provider/insert", status_code=201)
def api_provider_insert(request: Request, body: InsertBody):
    try:
        with LogContext("MOVIE_INSERT", body.uri, body.values) as log:
            _check_columns(body.values)
            new_uri = _provider(request).insert(body.uri, body.values)
            log.record(rows=1, result_uri=new_uri)
        return {"message": "ok", "uri": new_uri}
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/provider/update")
def api_provider_update(request: Request, body: UpdateBody):
    try:
        with LogContext("MOVIE_UPDATE", body.uri, body.model_dump(exclude={"uri"})) as log:
            _check_columns(body.values)
            n = _provider(request).update(body.uri, body.values, body.selection, body.selection_args)
            log.record(rows=n)
        return {"message": "ok", "count": n}
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/provider/delete")
def api_provider_delete(request: Request, body: DeleteBody):
    try:
        with LogContext("MOVIE_DELETE", body.uri, body.model_dump(exclude={"uri"})) as log:
            n = _provider(request).delete(body.uri, body.selection, body.selection_args)
            log.record(rows=n)
        return {"message": "ok", "count": n}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/provider/bulk_insert")
def api_provider_bulk_insert(request: Request, body: BulkInsertBody):
    try:
        with LogContext("MOVIE_BULK_INSERT", body.uri, {"items": len(body.values)}) as log:
            for v in body.values:
                _check_columns(v)
            n = _provider(request).bulk_insert(body.uri, body.values)
            log.record(rows=n)
        return {"message": "ok", "count": n}
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
