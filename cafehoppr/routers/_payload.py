from __future__ import annotations

import json
from typing import TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_payload(request: Request, model: type[ModelT]) -> tuple[ModelT, list[UploadFile], dict[str, str]]:
    """Parse a JSON body, or a multipart form with a JSON ``payload`` field plus ``photos`` files.

    Returns the validated model, the uploaded files and any other plain form fields.
    """
    content_type = request.headers.get("content-type", "")
    uploads: list[UploadFile] = []
    extra: dict[str, str] = {}

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        raw = form.get("payload") or "{}"
        uploads = [f for f in form.getlist("photos") if isinstance(f, UploadFile)]
        extra = {k: v for k, v in form.items() if isinstance(v, str) and k != "payload"}
        try:
            data = json.loads(raw)
        except ValueError:
            raise RequestValidationError([{"loc": ("body", "payload"), "msg": "payload must be JSON", "type": "json_invalid"}])
    else:
        try:
            data = await request.json()
        except ValueError:
            raise RequestValidationError([{"loc": ("body",), "msg": "Body must be JSON", "type": "json_invalid"}])

    try:
        return model.model_validate(data), uploads, extra
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))
