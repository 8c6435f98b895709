from functools import lru_cache
from pathlib import Path

from docvault.config import get_settings
from docvault.db import get_session_factory
from docvault.services.auth import AuthService
from docvault.services.documents import DocumentService, LocalFileStorage
from docvault.services.ingestion import IngestionService, SimulationTimings
from docvault.services.users import UserService


@lru_cache
def get_ingestion_service() -> IngestionService:
    settings = get_settings()
    return IngestionService(
        get_session_factory(),
        simulator_enabled=settings.ingestion_simulator_enabled,
        timings=SimulationTimings(
            initial_delay_seconds=settings.ingestion_sim_initial_delay_seconds,
            tick_seconds=settings.ingestion_sim_tick_seconds,
            min_duration_seconds=settings.ingestion_sim_min_duration_seconds,
            max_duration_seconds=settings.ingestion_sim_max_duration_seconds,
            max_items_per_tick=settings.ingestion_sim_max_items_per_tick,
        ),
    )


def shutdown_ingestion_service() -> None:
    if get_ingestion_service.cache_info().currsize:
        get_ingestion_service().shutdown()


def get_user_service() -> UserService:
    return UserService(get_session_factory())


def get_auth_service() -> AuthService:
    return AuthService(get_session_factory())


def get_document_service() -> DocumentService:
    settings = get_settings()
    return DocumentService(
        get_session_factory(),
        LocalFileStorage(Path(settings.upload_dir), max_size=settings.max_file_size),
        allowed_mime_types=settings.allowed_file_types,
    )
