from fastapi import APIRouter, Depends

from ....application.services.session_service import SessionService
from ....core.dependencies import get_session_service
from ....domain.models import AccessClaims
from ...api.dependencies import require_identity
from ...api.schemas.users import UserResponse

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def me(
    identity: AccessClaims = Depends(require_identity),
    session_service: SessionService = Depends(get_session_service),
) -> UserResponse:
    """Get the profile of the authenticated user."""
    return UserResponse.from_user(session_service.current_user(identity))
