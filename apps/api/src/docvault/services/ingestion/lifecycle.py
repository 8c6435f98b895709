from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Any

from sqlalchemy import Select, delete, func, literal, select, update
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.orm import Session, sessionmaker

from docvault.enums import IngestionStatus, IngestionType
from docvault.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from docvault.models import IngestionProcessRecord, utcnow
from docvault.observability import get_logger
from docvault.pagination import Page, PageParams, paginate
from docvault.security import Actor
from docvault.services.ingestion.simulator import ProgressSimulator, SimulationTimings

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("parameters", "result", "processed_items", "failed_items")

SORTABLE_COLUMNS = {
    "created_at": IngestionProcessRecord.created_at,
    "updated_at": IngestionProcessRecord.updated_at,
    "started_at": IngestionProcessRecord.started_at,
    "completed_at": IngestionProcessRecord.completed_at,
    "status": IngestionProcessRecord.status,
    "type": IngestionProcessRecord.type,
    "total_items": IngestionProcessRecord.total_items,
    "processed_items": IngestionProcessRecord.processed_items,
}


def duration_seconds(dialect_name: str) -> ColumnElement[Any]:
    """Seconds between ``started_at`` and ``completed_at`` as a SQL expression."""
    started_at = IngestionProcessRecord.started_at
    completed_at = IngestionProcessRecord.completed_at
    if dialect_name == "sqlite":
        return (func.julianday(completed_at) - func.julianday(started_at)) * literal(86400.0)
    return func.extract("epoch", completed_at - started_at)


@dataclass(frozen=True)
class IngestionStats:
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    by_type: dict[str, int] = field(default_factory=dict)
    average_duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "by_type": dict(self.by_type),
            "average_duration": self.average_duration,
        }


class IngestionService:
    """Owns the ingestion process state machine.

    ``pending -> processing -> completed | failed``. Every status change is a
    compare-and-set on the current status, so concurrent callers (an operator
    and the progress simulator) cannot overwrite each other's terminal state.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        simulator_enabled: bool = True,
        timings: SimulationTimings | None = None,
        rng: Random | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._simulator_enabled = simulator_enabled
        self.simulator = ProgressSimulator(
            advance=self._advance_progress,
            finish=self._finish_simulation,
            fail=self._fail_simulation,
            timings=timings,
            rng=rng,
        )

    def create(
        self,
        *,
        type: IngestionType,
        actor_id: str,
        parameters: dict[str, Any] | None = None,
        total_items: int | None = None,
    ) -> IngestionProcessRecord:
        if total_items is not None and total_items < 0:
            raise ValidationError("total_items must be >= 0")

        record = IngestionProcessRecord(
            type=IngestionType(type).value,
            status=IngestionStatus.PENDING.value,
            parameters=parameters,
            total_items=total_items or 0,
            processed_items=0,
            failed_items=0,
            initiated_by_id=actor_id,
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()

        logger.info(
            "ingestion created",
            process_id=record.id,
            type=record.type,
            initiated_by=actor_id,
        )
        return record

    def list(
        self,
        actor: Actor,
        params: PageParams,
        *,
        status: IngestionStatus | None = None,
        type: IngestionType | None = None,
    ) -> Page:
        stmt = self._visible(select(IngestionProcessRecord), actor)
        if status is not None:
            stmt = stmt.where(IngestionProcessRecord.status == IngestionStatus(status).value)
        if type is not None:
            stmt = stmt.where(IngestionProcessRecord.type == IngestionType(type).value)

        with self._session_factory() as session:
            return paginate(session, stmt, params, sortable=SORTABLE_COLUMNS)

    def get_one(self, process_id: str, actor: Actor) -> IngestionProcessRecord:
        with self._session_factory() as session:
            return self._load_visible(session, process_id, actor)

    def start(self, process_id: str, actor: Actor) -> IngestionProcessRecord:
        with self._session_factory() as session:
            record = self._load(session, process_id)
            if record.status != IngestionStatus.PENDING:
                raise InvalidStateError("Ingestion process is not in pending status")
            self._ensure_owner(record, actor, "You can only start your own ingestion processes")

            started = self._compare_and_set(
                session,
                process_id,
                expected=IngestionStatus.PENDING,
                status=IngestionStatus.PROCESSING.value,
                started_at=utcnow(),
            )
            if not started:
                session.rollback()
                raise InvalidStateError("Ingestion process is not in pending status")
            session.commit()
            record = self._load(session, process_id)

        logger.info("ingestion started", process_id=process_id, actor_id=actor.id)
        if self._simulator_enabled:
            self.simulator.submit(process_id)
        return record

    def complete(
        self,
        process_id: str,
        result: dict[str, Any] | None,
        actor: Actor,
    ) -> IngestionProcessRecord:
        # Ownership is not checked beyond visibility, unlike start/update/remove.
        record = self._finish(
            process_id,
            actor,
            status=IngestionStatus.COMPLETED,
            result=result,
        )
        logger.info("ingestion completed", process_id=process_id, actor_id=actor.id)
        return record

    def fail(self, process_id: str, error_message: str, actor: Actor) -> IngestionProcessRecord:
        record = self._finish(
            process_id,
            actor,
            status=IngestionStatus.FAILED,
            error_message=error_message,
        )
        logger.info(
            "ingestion failed",
            process_id=process_id,
            actor_id=actor.id,
            error=error_message,
        )
        return record

    def update(
        self,
        process_id: str,
        changes: dict[str, Any],
        actor: Actor,
    ) -> IngestionProcessRecord:
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        with self._session_factory() as session:
            record = self._load(session, process_id)
            self._ensure_owner(record, actor, "You can only update your own ingestion processes")

            for counter in ("processed_items", "failed_items"):
                value = changes.get(counter)
                if value is not None and value < 0:
                    raise ValidationError(f"{counter} must be >= 0")
            processed = changes.get("processed_items")
            if processed is not None and 0 < record.total_items < processed:
                raise ValidationError("processed_items cannot exceed total_items")

            for name, value in changes.items():
                if name in ("processed_items", "failed_items") and value is None:
                    continue
                setattr(record, name, value)
            session.commit()

        logger.info(
            "ingestion updated",
            process_id=process_id,
            actor_id=actor.id,
            fields=sorted(changes),
        )
        return record

    def remove(self, process_id: str, actor: Actor) -> None:
        with self._session_factory() as session:
            record = self._load(session, process_id)
            self._ensure_owner(record, actor, "You can only delete your own ingestion processes")
            if record.status == IngestionStatus.PROCESSING:
                raise InvalidStateError("Cannot delete a running ingestion process")

            deleted = session.execute(
                delete(IngestionProcessRecord)
                .where(IngestionProcessRecord.id == process_id)
                .where(IngestionProcessRecord.status != IngestionStatus.PROCESSING.value)
                .execution_options(synchronize_session=False)
            )
            if deleted.rowcount != 1:
                session.rollback()
                raise InvalidStateError("Cannot delete a running ingestion process")
            session.commit()

        self.simulator.cancel(process_id)
        logger.info("ingestion removed", process_id=process_id, actor_id=actor.id)

    def stats(self, actor: Actor | None = None) -> IngestionStats:
        scoped = actor is not None and not actor.is_admin

        def scope(stmt: Select) -> Select:
            if scoped:
                return stmt.where(IngestionProcessRecord.initiated_by_id == actor.id)
            return stmt

        with self._session_factory() as session:
            by_status = dict(
                session.execute(
                    scope(
                        select(IngestionProcessRecord.status, func.count()).group_by(
                            IngestionProcessRecord.status
                        )
                    )
                ).all()
            )
            by_type = dict(
                session.execute(
                    scope(
                        select(IngestionProcessRecord.type, func.count()).group_by(
                            IngestionProcessRecord.type
                        )
                    )
                ).all()
            )
            duration = duration_seconds(session.get_bind().dialect.name)
            average = session.scalar(
                scope(
                    select(func.avg(duration))
                    .where(IngestionProcessRecord.status == IngestionStatus.COMPLETED.value)
                    .where(IngestionProcessRecord.started_at.is_not(None))
                    .where(IngestionProcessRecord.completed_at.is_not(None))
                )
            )

        return IngestionStats(
            total=sum(by_status.values()),
            pending=by_status.get(IngestionStatus.PENDING.value, 0),
            processing=by_status.get(IngestionStatus.PROCESSING.value, 0),
            completed=by_status.get(IngestionStatus.COMPLETED.value, 0),
            failed=by_status.get(IngestionStatus.FAILED.value, 0),
            by_type={str(key): int(value) for key, value in by_type.items()},
            average_duration=round(float(average or 0.0), 3),
        )

    def shutdown(self) -> None:
        self.simulator.shutdown()

    def _finish(
        self,
        process_id: str,
        actor: Actor,
        *,
        status: IngestionStatus,
        result: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> IngestionProcessRecord:
        with self._session_factory() as session:
            record = self._load_visible(session, process_id, actor)
            if record.status != IngestionStatus.PROCESSING:
                raise InvalidStateError("Ingestion process is not in processing status")

            values: dict[str, Any] = {"status": status.value, "completed_at": utcnow()}
            if status == IngestionStatus.COMPLETED:
                values["result"] = result
            else:
                values["error_message"] = error_message

            if not self._compare_and_set(
                session, process_id, expected=IngestionStatus.PROCESSING, **values
            ):
                session.rollback()
                raise InvalidStateError("Ingestion process is not in processing status")
            session.commit()
            record = self._load(session, process_id)

        self.simulator.cancel(process_id)
        return record

    def _advance_progress(self, process_id: str, step: int) -> bool:
        with self._session_factory() as session:
            record = session.get(IngestionProcessRecord, process_id)
            if record is None or record.status != IngestionStatus.PROCESSING:
                return False
            if record.total_items <= 0 or step <= 0:
                return True

            processed = min(record.processed_items + step, record.total_items)
            if processed <= record.processed_items:
                return True
            advanced = self._compare_and_set(
                session,
                process_id,
                expected=IngestionStatus.PROCESSING,
                processed_items=processed,
            )
            session.commit()
        return advanced

    def _finish_simulation(self, process_id: str) -> bool:
        with self._session_factory() as session:
            record = session.get(IngestionProcessRecord, process_id)
            if record is None or record.status != IngestionStatus.PROCESSING:
                return False

            total = record.total_items
            finished = self._compare_and_set(
                session,
                process_id,
                expected=IngestionStatus.PROCESSING,
                status=IngestionStatus.COMPLETED.value,
                completed_at=utcnow(),
                processed_items=total,
                result={
                    "success": True,
                    "message": "Ingestion completed successfully",
                    "processed_items": total,
                },
            )
            session.commit()
        return finished

    def _fail_simulation(self, process_id: str, error_message: str) -> bool:
        with self._session_factory() as session:
            failed = self._compare_and_set(
                session,
                process_id,
                expected=IngestionStatus.PROCESSING,
                status=IngestionStatus.FAILED.value,
                completed_at=utcnow(),
                error_message=error_message,
            )
            session.commit()
        return failed

    @staticmethod
    def _compare_and_set(
        session: Session,
        process_id: str,
        *,
        expected: IngestionStatus,
        **values: Any,
    ) -> bool:
        result = session.execute(
            update(IngestionProcessRecord)
            .where(IngestionProcessRecord.id == process_id)
            .where(IngestionProcessRecord.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _visible(stmt: Select, actor: Actor) -> Select:
        if actor.is_admin:
            return stmt
        return stmt.where(IngestionProcessRecord.initiated_by_id == actor.id)

    @staticmethod
    def _load(session: Session, process_id: str) -> IngestionProcessRecord:
        record = session.get(IngestionProcessRecord, process_id, populate_existing=True)
        if record is None:
            raise NotFoundError("Ingestion process not found")
        return record

    def _load_visible(
        self, session: Session, process_id: str, actor: Actor
    ) -> IngestionProcessRecord:
        record = session.scalar(
            self._visible(
                select(IngestionProcessRecord).where(IngestionProcessRecord.id == process_id),
                actor,
            )
        )
        if record is None:
            raise NotFoundError("Ingestion process not found")
        return record

    @staticmethod
    def _ensure_owner(record: IngestionProcessRecord, actor: Actor, message: str) -> None:
        if record.initiated_by_id != actor.id and not actor.is_admin:
            raise ForbiddenError(message)
