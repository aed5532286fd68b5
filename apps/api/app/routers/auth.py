"""Auth router - identity of the current session."""

from fastapi import APIRouter, Depends

from app.core.deps import get_current_user
from app.core.permissions import describe_capabilities
from app.db.models import User
from app.schemas.auth import CapabilityRead, MeResponse

router = APIRouter()


@router.get("/me", response_model=MeResponse)
def get_me(user: User = Depends(get_current_user)):
    """Return the authenticated user, their roles and what those roles allow."""
    return MeResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        roles=sorted(user.roles, key=lambda role: role.value),
        guardian_id=user.guardian_id,
        capabilities=[
            CapabilityRead(key=c.key, label=c.label, description=c.description)
            for c in describe_capabilities(user.roles)
        ],
    )
