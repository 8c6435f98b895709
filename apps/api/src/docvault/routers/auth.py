from typing import Annotated, Any

from fastapi import APIRouter, Depends

from docvault.deps import get_auth_service
from docvault.observability import get_logger
from docvault.schemas import LoginRequest, RefreshRequest, RegisterRequest
from docvault.security import CurrentActor
from docvault.serializers import user_detail, user_summary
from docvault.services.auth import AuthResult, AuthService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def _auth_payload(result: AuthResult) -> dict[str, Any]:
    return {
        "access_token": result.access_token,
        "refresh_token": result.refresh_token,
        "token_type": "bearer",
        "user": user_summary(result.user),
    }


@router.post("/login")
def login(request: LoginRequest, service: AuthServiceDep) -> dict[str, Any]:
    return _auth_payload(
        service.login(username_or_email=request.username_or_email, password=request.password)
    )


@router.post("/register", status_code=201)
def register(request: RegisterRequest, service: AuthServiceDep) -> dict[str, Any]:
    return _auth_payload(service.register(**request.model_dump()))


@router.post("/refresh")
def refresh(request: RefreshRequest, service: AuthServiceDep) -> dict[str, str]:
    return {"access_token": service.refresh(request.refresh_token), "token_type": "bearer"}


@router.post("/logout")
def logout(actor: CurrentActor) -> dict[str, str]:
    # Tokens are stateless; nothing is revoked server-side.
    logger.info("logout", user_id=actor.id)
    return {"message": "Logged out successfully"}


@router.post("/profile")
def profile(actor: CurrentActor, service: AuthServiceDep) -> dict[str, Any]:
    return user_detail(service.profile(actor.id))
