from datetime import datetime
from typing import Any

from docvault.models import DocumentRecord, IngestionProcessRecord, UserRecord, as_utc


def to_iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat()


def user_detail(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "role": user.role,
        "status": user.status,
        "last_login_at": to_iso(user.last_login_at),
        "created_at": to_iso(user.created_at),
        "updated_at": to_iso(user.updated_at),
    }


def user_summary(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
    }


def document_detail(document: DocumentRecord) -> dict[str, Any]:
    return {
        "id": document.id,
        "title": document.title,
        "description": document.description,
        "filename": document.filename,
        "original_name": document.original_name,
        "mimetype": document.mimetype,
        "size": document.size,
        "size_in_mb": document.size_in_mb,
        "status": document.status,
        "tags": document.tags or [],
        "metadata": document.metadata_json,
        "created_by_id": document.created_by_id,
        "updated_by_id": document.updated_by_id,
        "created_at": to_iso(document.created_at),
        "updated_at": to_iso(document.updated_at),
    }


def process_detail(process: IngestionProcessRecord) -> dict[str, Any]:
    return {
        "id": process.id,
        "type": process.type,
        "status": process.status,
        "parameters": process.parameters,
        "result": process.result,
        "error_message": process.error_message,
        "total_items": process.total_items,
        "processed_items": process.processed_items,
        "failed_items": process.failed_items,
        "progress": process.progress,
        "duration": process.duration(),
        "started_at": to_iso(process.started_at),
        "completed_at": to_iso(process.completed_at),
        "initiated_by_id": process.initiated_by_id,
        "created_at": to_iso(process.created_at),
        "updated_at": to_iso(process.updated_at),
    }
