import json
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse

from docvault.deps import get_document_service
from docvault.enums import DocumentStatus
from docvault.errors import ValidationError
from docvault.pagination import PageParams, page_params
from docvault.schemas import UpdateDocumentRequest
from docvault.security import CurrentActor
from docvault.serializers import document_detail
from docvault.services.documents import DocumentService

router = APIRouter(prefix="/documents", tags=["documents"])

DocumentServiceDep = Annotated[DocumentService, Depends(get_document_service)]


def _parse_tags(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _parse_metadata(raw: str | None) -> dict[str, Any] | None:
    if raw is None or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("metadata must be a JSON object") from exc
    if not isinstance(parsed, dict):
        raise ValidationError("metadata must be a JSON object")
    return parsed


@router.post("", status_code=201)
def upload_document(
    actor: CurrentActor,
    service: DocumentServiceDep,
    title: Annotated[str, Form(min_length=1, max_length=255)],
    file: Annotated[UploadFile | None, File()] = None,
    description: Annotated[str | None, Form(max_length=1000)] = None,
    status: Annotated[DocumentStatus | None, Form()] = None,
    tags: Annotated[str | None, Form()] = None,
    metadata: Annotated[str | None, Form()] = None,
) -> dict[str, Any]:
    document = service.create(
        stream=file.file if file is not None else None,
        original_name=file.filename if file is not None else None,
        mimetype=file.content_type if file is not None else None,
        title=title,
        actor=actor,
        description=description,
        status=status,
        tags=_parse_tags(tags),
        metadata=_parse_metadata(metadata),
    )
    return document_detail(document)


@router.get("")
def list_documents(
    actor: CurrentActor,
    service: DocumentServiceDep,
    params: Annotated[PageParams, Depends(page_params)],
    search: str | None = Query(default=None, max_length=100),
    status: DocumentStatus | None = Query(default=None),
) -> dict[str, Any]:
    page = service.list(actor, params, search=search, status=status)
    return page.to_dict(document_detail)


@router.get("/stats")
def document_stats(actor: CurrentActor, service: DocumentServiceDep) -> dict[str, Any]:
    return service.stats(actor)


@router.get("/{document_id}")
def get_document(
    document_id: UUID,
    actor: CurrentActor,
    service: DocumentServiceDep,
) -> dict[str, Any]:
    return document_detail(service.get(str(document_id), actor))


@router.get("/{document_id}/download")
def download_document(
    document_id: UUID,
    actor: CurrentActor,
    service: DocumentServiceDep,
) -> FileResponse:
    target = service.download(str(document_id), actor)
    return FileResponse(target.path, media_type=target.mimetype, filename=target.filename)


@router.patch("/{document_id}")
def update_document(
    document_id: UUID,
    request: UpdateDocumentRequest,
    actor: CurrentActor,
    service: DocumentServiceDep,
) -> dict[str, Any]:
    changes = request.model_dump(exclude_unset=True)
    return document_detail(service.update(str(document_id), changes, actor))


@router.delete("/{document_id}")
def delete_document(
    document_id: UUID,
    actor: CurrentActor,
    service: DocumentServiceDep,
) -> dict[str, str]:
    service.remove(str(document_id), actor)
    return {"id": str(document_id), "status": "deleted"}
