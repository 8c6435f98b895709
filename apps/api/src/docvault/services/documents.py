"""Document uploads, local file storage and access rules.

Non-admin users see their own documents plus anything published. Files live
under the configured upload directory with a generated ``<uuid4><ext>`` name;
the original filename is only kept as metadata.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO
import uuid

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from docvault.enums import DocumentStatus, UserRole
from docvault.errors import ForbiddenError, NotFoundError, ValidationError
from docvault.models import DocumentRecord
from docvault.observability import get_logger
from docvault.pagination import Page, PageParams, paginate
from docvault.security import Actor

logger = get_logger(__name__)

TEXT_MIME_TYPES = frozenset({"text/plain", "text/csv"})
COPY_CHUNK_SIZE = 1024 * 1024

SORTABLE_COLUMNS = {
    "created_at": DocumentRecord.created_at,
    "updated_at": DocumentRecord.updated_at,
    "title": DocumentRecord.title,
    "status": DocumentRecord.status,
    "size": DocumentRecord.size,
    "mimetype": DocumentRecord.mimetype,
}


@dataclass(frozen=True)
class StoredFile:
    filename: str
    path: Path
    size: int


@dataclass(frozen=True)
class DownloadTarget:
    path: Path
    filename: str
    mimetype: str


class LocalFileStorage:
    def __init__(self, root: Path, *, max_size: int) -> None:
        self._root = root
        self._max_size = max_size

    def save(self, stream: BinaryIO, original_name: str) -> StoredFile:
        self._root.mkdir(parents=True, exist_ok=True)
        filename = f"{uuid.uuid4()}{Path(original_name).suffix.lower()}"
        target = self._root / filename

        size = 0
        try:
            with target.open("wb") as handle:
                while chunk := stream.read(COPY_CHUNK_SIZE):
                    size += len(chunk)
                    if size > self._max_size:
                        raise ValidationError(
                            f"File size too large. Maximum size is {self._max_size} bytes"
                        )
                    handle.write(chunk)
        except BaseException:
            target.unlink(missing_ok=True)
            raise

        return StoredFile(filename=filename, path=target, size=size)

    def delete(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("file delete failed", path=str(path), error=str(exc))


class DocumentService:
    def __init__(
        self,
        session_factory: sessionmaker,
        storage: LocalFileStorage,
        *,
        allowed_mime_types: tuple[str, ...],
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._allowed_mime_types = frozenset(allowed_mime_types)

    def create(
        self,
        *,
        stream: BinaryIO | None,
        original_name: str | None,
        mimetype: str | None,
        title: str,
        actor: Actor,
        description: str | None = None,
        status: DocumentStatus | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        if stream is None or not original_name:
            raise ValidationError("File is required")
        if mimetype not in self._allowed_mime_types:
            raise ValidationError("File type not supported")

        stored = self._storage.save(stream, original_name)
        record = DocumentRecord(
            title=title,
            description=description,
            filename=stored.filename,
            original_name=original_name,
            mimetype=mimetype,
            size=stored.size,
            file_path=str(stored.path),
            status=(status or DocumentStatus.DRAFT).value,
            tags=tags,
            metadata_json=metadata,
            content=_extract_text(stored.path, mimetype),
            created_by_id=actor.id,
        )
        try:
            with self._session_factory() as session:
                session.add(record)
                session.commit()
        except Exception:
            self._storage.delete(stored.path)
            raise

        logger.info(
            "document created",
            document_id=record.id,
            actor_id=actor.id,
            mimetype=mimetype,
            size=stored.size,
        )
        return record

    def list(
        self,
        actor: Actor,
        params: PageParams,
        *,
        search: str | None = None,
        status: DocumentStatus | None = None,
    ) -> Page:
        stmt = self._visible(select(DocumentRecord), actor)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    DocumentRecord.title.ilike(pattern),
                    DocumentRecord.description.ilike(pattern),
                    DocumentRecord.content.ilike(pattern),
                )
            )
        if status is not None:
            stmt = stmt.where(DocumentRecord.status == DocumentStatus(status).value)

        with self._session_factory() as session:
            return paginate(session, stmt, params, sortable=SORTABLE_COLUMNS)

    def get(self, document_id: str, actor: Actor) -> DocumentRecord:
        with self._session_factory() as session:
            return self._load_visible(session, document_id, actor)

    def update(self, document_id: str, changes: dict[str, Any], actor: Actor) -> DocumentRecord:
        with self._session_factory() as session:
            document = self._load_visible(session, document_id, actor)
            if document.created_by_id != actor.id and not actor.is_admin:
                raise ForbiddenError("You can only update your own documents")
            if changes.get("status") == DocumentStatus.PUBLISHED and actor.role == UserRole.VIEWER:
                raise ForbiddenError("Viewers cannot publish documents")

            for name, value in changes.items():
                if name == "status" and value is not None:
                    value = DocumentStatus(value).value
                if name == "metadata":
                    name = "metadata_json"
                setattr(document, name, value)
            document.updated_by_id = actor.id
            session.commit()

        logger.info(
            "document updated",
            document_id=document_id,
            actor_id=actor.id,
            fields=sorted(changes),
        )
        return document

    def remove(self, document_id: str, actor: Actor) -> None:
        with self._session_factory() as session:
            document = self._load_visible(session, document_id, actor)
            if document.created_by_id != actor.id and not actor.is_admin:
                raise ForbiddenError("You can only delete your own documents")

            self._storage.delete(Path(document.file_path))
            session.delete(document)
            session.commit()

        logger.info("document removed", document_id=document_id, actor_id=actor.id)

    def download(self, document_id: str, actor: Actor) -> DownloadTarget:
        document = self.get(document_id, actor)
        path = Path(document.file_path)
        if not path.is_file():
            raise NotFoundError("File not found on disk")
        return DownloadTarget(path=path, filename=document.original_name, mimetype=document.mimetype)

    def stats(self, actor: Actor | None = None) -> dict[str, Any]:
        scoped = actor is not None and not actor.is_admin

        def scope(stmt: Select) -> Select:
            if scoped:
                return stmt.where(DocumentRecord.created_by_id == actor.id)
            return stmt

        with self._session_factory() as session:
            by_status = dict(
                session.execute(
                    scope(select(DocumentRecord.status, func.count()).group_by(DocumentRecord.status))
                ).all()
            )
            by_mimetype = dict(
                session.execute(
                    scope(
                        select(DocumentRecord.mimetype, func.count()).group_by(
                            DocumentRecord.mimetype
                        )
                    )
                ).all()
            )
            total_size = session.scalar(
                scope(select(func.coalesce(func.sum(DocumentRecord.size), 0)))
            )

        return {
            "total": sum(by_status.values()),
            "draft": by_status.get(DocumentStatus.DRAFT.value, 0),
            "published": by_status.get(DocumentStatus.PUBLISHED.value, 0),
            "archived": by_status.get(DocumentStatus.ARCHIVED.value, 0),
            "by_mime_type": {str(key): int(value) for key, value in by_mimetype.items()},
            "total_size": int(total_size or 0),
        }

    @staticmethod
    def _visible(stmt: Select, actor: Actor) -> Select:
        if actor.is_admin:
            return stmt
        return stmt.where(
            or_(
                DocumentRecord.created_by_id == actor.id,
                DocumentRecord.status == DocumentStatus.PUBLISHED.value,
            )
        )

    def _load_visible(self, session: Session, document_id: str, actor: Actor) -> DocumentRecord:
        document = session.scalar(
            self._visible(select(DocumentRecord).where(DocumentRecord.id == document_id), actor)
        )
        if document is None:
            raise NotFoundError("Document not found")
        return document


def _extract_text(path: Path, mimetype: str) -> str | None:
    if mimetype not in TEXT_MIME_TYPES:
        return None
    return path.read_text(encoding="utf-8", errors="ignore").replace("\x00", "")
