from datetime import datetime, timezone
from time import monotonic
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from docvault.config import Settings
from docvault.db import ping_database
from docvault.observability import get_logger

logger = get_logger(__name__)

_STARTED_AT = monotonic()


def health_status(settings: Settings) -> dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(monotonic() - _STARTED_AT, 3),
        "environment": settings.environment,
        "version": settings.version,
    }


def check_database(engine: Engine) -> dict[str, str]:
    try:
        ping_database(engine)
    except SQLAlchemyError as exc:
        logger.warning("database health check failed", error=str(exc))
        return {"status": "unhealthy", "error": str(exc)}
    return {"status": "healthy", "connection": "active"}


def detailed_health_status(settings: Settings, engine: Engine) -> dict[str, Any]:
    status = health_status(settings)
    status["checks"] = {"database": check_database(engine)}
    return status
