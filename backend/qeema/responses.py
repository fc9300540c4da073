"""Uniform JSON envelope helpers.

Every route answers with one of these shapes:

- `{"success": true, "data": ..., "message": ...}`
- `{"success": true, "data": [...], "meta": {...}}` for paginated lists
- `{"success": false, "error": {"code", "message", "details"}}`
- an empty 204 for deletes
"""

from typing import Any, Optional

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .utils.pagination import Page


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_dump(d) for d in data]
    if isinstance(data, dict):
        return {k: _dump(v) for k, v in data.items()}
    return jsonable_encoder(data)


def success(data: Any, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    body = {"success": True, "data": _dump(data)}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def created(data: Any, message: Optional[str] = None) -> JSONResponse:
    return success(data, message, status_code=201)


def paginated(page: Page) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"success": True, "data": _dump(page.items), "meta": page.meta()},
    )


def error(status_code: int, code: str, message: str, details: Any = None, headers: Optional[dict] = None) -> JSONResponse:
    err = {"code": code, "message": message}
    if details:
        err["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"success": False, "error": err}, headers=headers)


def no_content() -> Response:
    return Response(status_code=204)
