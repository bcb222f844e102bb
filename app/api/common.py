"""
Response helpers shared by the resource routers.
"""

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse

from app.schemas import ApiEnvelope
from app.utils.query_parser import Projection


def envelope(
    message: str, data: Any = None, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiEnvelope(message=message, data=data).model_dump(mode="json"),
    )


def render_document(
    record: Any, document_cls: type, projection: Projection | None = None
) -> dict[str, Any]:
    document = document_cls.model_validate(record).to_json()
    return projection.apply(document) if projection else document


def render_documents(
    records: list[Any], document_cls: type, projection: Projection | None = None
) -> list[dict[str, Any]]:
    return [render_document(record, document_cls, projection) for record in records]
