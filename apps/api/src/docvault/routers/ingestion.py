from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from docvault.enums import IngestionStatus, IngestionType, UserRole
from docvault.deps import get_ingestion_service
from docvault.pagination import PageParams, page_params
from docvault.schemas import (
    CompleteIngestionRequest,
    CreateIngestionRequest,
    FailIngestionRequest,
    UpdateIngestionRequest,
)
from docvault.security import Actor, CurrentActor, require_roles
from docvault.serializers import process_detail
from docvault.services.ingestion import IngestionService

router = APIRouter(prefix="/ingestion", tags=["ingestion"])

IngestionServiceDep = Annotated[IngestionService, Depends(get_ingestion_service)]
Operator = Annotated[Actor, Depends(require_roles(UserRole.ADMIN, UserRole.EDITOR))]


@router.post("", status_code=201)
def create_process(
    request: CreateIngestionRequest,
    actor: Operator,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    process = service.create(
        type=request.type,
        actor_id=actor.id,
        parameters=request.parameters,
        total_items=request.total_items,
    )
    return process_detail(process)


@router.get("")
def list_processes(
    actor: CurrentActor,
    service: IngestionServiceDep,
    params: Annotated[PageParams, Depends(page_params)],
    status: IngestionStatus | None = Query(default=None),
    type: IngestionType | None = Query(default=None),
) -> dict[str, Any]:
    page = service.list(actor, params, status=status, type=type)
    return page.to_dict(process_detail)


@router.get("/stats")
def process_stats(actor: CurrentActor, service: IngestionServiceDep) -> dict[str, Any]:
    return service.stats(actor).to_dict()


@router.get("/{process_id}")
def get_process(
    process_id: UUID,
    actor: CurrentActor,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    return process_detail(service.get_one(str(process_id), actor))


@router.post("/{process_id}/start")
def start_process(
    process_id: UUID,
    actor: CurrentActor,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    return process_detail(service.start(str(process_id), actor))


@router.post("/{process_id}/complete")
def complete_process(
    process_id: UUID,
    request: CompleteIngestionRequest,
    actor: Operator,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    return process_detail(service.complete(str(process_id), request.result, actor))


@router.post("/{process_id}/fail")
def fail_process(
    process_id: UUID,
    request: FailIngestionRequest,
    actor: Operator,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    return process_detail(service.fail(str(process_id), request.error_message, actor))


@router.patch("/{process_id}")
def update_process(
    process_id: UUID,
    request: UpdateIngestionRequest,
    actor: CurrentActor,
    service: IngestionServiceDep,
) -> dict[str, Any]:
    changes = request.model_dump(exclude_unset=True)
    return process_detail(service.update(str(process_id), changes, actor))


@router.delete("/{process_id}")
def delete_process(
    process_id: UUID,
    actor: CurrentActor,
    service: IngestionServiceDep,
) -> dict[str, str]:
    service.remove(str(process_id), actor)
    return {"id": str(process_id), "status": "deleted"}
