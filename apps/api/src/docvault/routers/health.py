from typing import Any

from fastapi import APIRouter

from docvault.config import get_settings
from docvault.db import get_engine
from docvault.services.health import detailed_health_status, health_status

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health() -> dict[str, Any]:
    return health_status(get_settings())


@router.get("/detailed")
def health_detailed() -> dict[str, Any]:
    return detailed_health_status(get_settings(), get_engine())
