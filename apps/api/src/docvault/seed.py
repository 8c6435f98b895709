from __future__ import annotations

import argparse
from collections.abc import Iterable, Iterator
from datetime import timedelta
from pathlib import Path
from random import Random
import sys
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.orm import sessionmaker

from docvault.config import get_settings
from docvault.db import Base, get_engine, get_session_factory
from docvault.enums import DocumentStatus, IngestionStatus, IngestionType, UserRole, UserStatus
from docvault.errors import ConflictError
from docvault.models import DocumentRecord, IngestionProcessRecord, UserRecord, utcnow
from docvault.security import hash_password
from docvault.services.users import UserService

DEFAULT_BATCH_SIZE = 500

DEFAULT_ACCOUNTS: tuple[dict[str, object], ...] = (
    {
        "username": "admin",
        "email": "admin@example.com",
        "first_name": "Admin",
        "last_name": "User",
        "role": UserRole.ADMIN,
    },
    {
        "username": "editor",
        "email": "editor@example.com",
        "first_name": "Editor",
        "last_name": "User",
        "role": UserRole.EDITOR,
    },
    {
        "username": "viewer",
        "email": "viewer@example.com",
        "first_name": "Viewer",
        "last_name": "User",
        "role": UserRole.VIEWER,
    },
)

FIRST_NAMES = ("John", "Jane", "Michael", "Sarah", "David", "Emily", "Robert", "Lisa", "James", "Maria")
LAST_NAMES = (
    "Smith",
    "Johnson",
    "Williams",
    "Brown",
    "Jones",
    "Garcia",
    "Miller",
    "Davis",
    "Rodriguez",
    "Martinez",
)
DOCUMENT_TITLES = (
    "Annual Report",
    "Project Proposal",
    "Meeting Notes",
    "User Manual",
    "Technical Specification",
    "Budget Analysis",
    "Marketing Plan",
    "Research Data",
    "Training Material",
    "Policy Document",
)
# (extension, mimetype, min KiB, max KiB)
FILE_TYPES = (
    ("pdf", "application/pdf", 100, 5000),
    (
        "docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        50,
        2000,
    ),
    ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", 30, 1500),
    ("txt", "text/plain", 1, 100),
    ("csv", "text/csv", 1, 500),
)


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docvault-seed",
        description="Create default accounts and optionally generate sample users, documents and ingestion processes",
    )
    parser.add_argument(
        "--password",
        default="ChangeMe123!",
        help="Password assigned to every seeded account",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before seeding (local development only)",
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete all ingestion processes, documents and users before seeding",
    )
    parser.add_argument("--users", type=_non_negative_int, default=0, help="Extra users to generate")
    parser.add_argument(
        "--documents", type=_non_negative_int, default=0, help="Document records to generate"
    )
    parser.add_argument(
        "--ingestion-processes",
        type=_non_negative_int,
        default=0,
        help="Ingestion processes to generate",
    )
    parser.add_argument("--batch-size", type=_non_negative_int, default=DEFAULT_BATCH_SIZE)
    parser.add_argument("--random-seed", type=int, default=None, help="Seed for reproducible data")
    return parser


def _insert_in_batches(
    session_factory: sessionmaker, records: Iterable[Base], batch_size: int
) -> int:
    inserted = 0
    batch: list[Base] = []
    with session_factory() as session:
        for record in records:
            batch.append(record)
            if len(batch) >= max(batch_size, 1):
                session.add_all(batch)
                session.commit()
                inserted += len(batch)
                batch = []
        if batch:
            session.add_all(batch)
            session.commit()
            inserted += len(batch)
    return inserted


def clear_tables(session_factory: sessionmaker) -> None:
    with session_factory() as session:
        for model in (IngestionProcessRecord, DocumentRecord, UserRecord):
            session.execute(delete(model))
        session.commit()


def seed_users(service: UserService, *, password: str) -> tuple[list[str], list[str]]:
    created: list[str] = []
    skipped: list[str] = []
    for account in DEFAULT_ACCOUNTS:
        try:
            service.create(password=password, **account)
        except ConflictError:
            skipped.append(str(account["username"]))
            continue
        created.append(str(account["username"]))
    return created, skipped


def role_distribution(count: int) -> dict[UserRole, int]:
    """At least one admin, roughly 5% admins and 20% editors, the rest viewers."""
    if count <= 0:
        return {role: 0 for role in UserRole}
    admins = max(1, count * 5 // 100)
    editors = min(count - admins, count * 20 // 100)
    return {
        UserRole.ADMIN: admins,
        UserRole.EDITOR: editors,
        UserRole.VIEWER: count - admins - editors,
    }


def _user_records(count: int, *, password_hash: str, rng: Random) -> Iterator[UserRecord]:
    for role, role_count in role_distribution(count).items():
        for _ in range(role_count):
            first_name = rng.choice(FIRST_NAMES)
            last_name = rng.choice(LAST_NAMES)
            username = f"{first_name.lower()}_{last_name.lower()}_{uuid.uuid4().hex[:8]}"
            yield UserRecord(
                username=username,
                email=f"{username}@example.com",
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=role.value,
                status=UserStatus.ACTIVE.value,
            )


def generate_users(
    session_factory: sessionmaker,
    count: int,
    *,
    password: str,
    rng: Random,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    if count <= 0:
        return 0
    records = _user_records(count, password_hash=hash_password(password), rng=rng)
    return _insert_in_batches(session_factory, records, batch_size)


def _document_records(
    count: int, *, owner_ids: list[str], upload_dir: Path, rng: Random
) -> Iterator[DocumentRecord]:
    for index in range(1, count + 1):
        extension, mimetype, min_kib, max_kib = rng.choice(FILE_TYPES)
        title = rng.choice(DOCUMENT_TITLES)
        filename = f"{uuid.uuid4()}.{extension}"
        yield DocumentRecord(
            title=f"{title} {index}",
            filename=filename,
            original_name=f"{title.lower().replace(' ', '_')}_{index}.{extension}",
            mimetype=mimetype,
            size=rng.randint(min_kib, max_kib) * 1024,
            file_path=str(upload_dir / filename),
            status=rng.choice(list(DocumentStatus)).value,
            content=f"Sample content for {title} {index}",
            tags=["generated"],
            created_by_id=rng.choice(owner_ids),
        )


def generate_documents(
    session_factory: sessionmaker,
    count: int,
    *,
    upload_dir: Path,
    rng: Random,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    if count <= 0:
        return 0
    with session_factory() as session:
        owner_ids = list(session.scalars(select(UserRecord.id)))
    if not owner_ids:
        return 0
    records = _document_records(count, owner_ids=owner_ids, upload_dir=upload_dir, rng=rng)
    return _insert_in_batches(session_factory, records, batch_size)


def _process_record(owner_id: str, rng: Random) -> IngestionProcessRecord:
    status = rng.choice(list(IngestionStatus))
    total = rng.randint(100, 1099)
    record = IngestionProcessRecord(
        type=rng.choice(list(IngestionType)).value,
        status=status.value,
        parameters={"batch_size": 100, "source": "automated_generation"},
        total_items=total,
        processed_items=0,
        failed_items=0,
        initiated_by_id=owner_id,
    )
    if status == IngestionStatus.PENDING:
        return record

    started_at = utcnow() - timedelta(minutes=rng.randint(1, 7 * 24 * 60))
    record.started_at = started_at
    record.failed_items = rng.randint(0, 9)
    if status == IngestionStatus.PROCESSING:
        record.processed_items = rng.randint(0, total - 1)
    elif status == IngestionStatus.COMPLETED:
        record.processed_items = total
        record.completed_at = started_at + timedelta(seconds=rng.randint(1, 3600))
        record.result = {
            "success": True,
            "message": "Ingestion completed successfully",
            "processed_items": total,
        }
    else:
        record.processed_items = rng.randint(0, total - 1)
        record.completed_at = started_at + timedelta(seconds=rng.randint(1, 3600))
        record.error_message = "Generated failure"
    return record


def generate_ingestion_processes(
    session_factory: sessionmaker,
    count: int,
    *,
    rng: Random,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    if count <= 0:
        return 0
    with session_factory() as session:
        owner_ids = list(
            session.scalars(
                select(UserRecord.id).where(
                    UserRecord.role.in_([UserRole.ADMIN.value, UserRole.EDITOR.value])
                )
            )
        )
    if not owner_ids:
        return 0
    records = (_process_record(rng.choice(owner_ids), rng) for _ in range(count))
    return _insert_in_batches(session_factory, records, batch_size)


def collect_counts(session_factory: sessionmaker) -> dict[str, object]:
    with session_factory() as session:
        users = session.scalar(select(func.count()).select_from(UserRecord)) or 0
        documents = session.scalar(select(func.count()).select_from(DocumentRecord)) or 0
        processes = session.scalar(select(func.count()).select_from(IngestionProcessRecord)) or 0
        by_role = dict(
            session.execute(select(UserRecord.role, func.count()).group_by(UserRecord.role)).all()
        )
    return {
        "users": int(users),
        "documents": int(documents),
        "ingestion_processes": int(processes),
        "roles": {role.value: int(by_role.get(role.value, 0)) for role in UserRole},
    }


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    rng = Random(args.random_seed)

    try:
        if args.create_schema:
            Base.metadata.create_all(bind=get_engine())
        session_factory = get_session_factory()
        if args.clear:
            clear_tables(session_factory)
            print("[docvault-seed] cleared existing data", flush=True)

        created, skipped = seed_users(UserService(session_factory), password=args.password)
        generated_users = generate_users(
            session_factory,
            args.users,
            password=args.password,
            rng=rng,
            batch_size=args.batch_size,
        )
        generated_documents = generate_documents(
            session_factory,
            args.documents,
            upload_dir=Path(get_settings().upload_dir),
            rng=rng,
            batch_size=args.batch_size,
        )
        generated_processes = generate_ingestion_processes(
            session_factory,
            args.ingestion_processes,
            rng=rng,
            batch_size=args.batch_size,
        )
        counts = collect_counts(session_factory)
    except Exception as exc:
        print(f"[docvault-seed] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(
        "[docvault-seed] completed "
        f"created={','.join(created) or '-'} "
        f"skipped={','.join(skipped) or '-'} "
        f"generated_users={generated_users} "
        f"generated_documents={generated_documents} "
        f"generated_ingestion_processes={generated_processes}",
        flush=True,
    )
    roles = ",".join(f"{role}:{count}" for role, count in counts["roles"].items())
    print(
        "[docvault-seed] totals "
        f"users={counts['users']} "
        f"documents={counts['documents']} "
        f"ingestion_processes={counts['ingestion_processes']} "
        f"roles={roles}",
        flush=True,
    )


if __name__ == "__main__":
    main()
