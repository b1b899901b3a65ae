"""Request-scoped dependencies: the engine and the caller's identity."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from number_pool_service.exceptions import ForbiddenError
from number_pool_service.models.schemas import Identity
from number_pool_service.services.engine import NumberPoolEngine


def get_engine(request: Request) -> NumberPoolEngine:
    """Engine built by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Number pool engine not initialized"
        )
    return engine


def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_admin: Optional[str] = Header(default=None),
) -> Identity:
    """Identity asserted by the authenticating gateway, trusted verbatim."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no identity"
        )
    is_admin = (x_user_admin or "").strip().lower() in ("1", "true", "yes")
    return Identity(user_id=x_user_id.strip(), is_admin=is_admin)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise ForbiddenError("Not authorized as an admin", details={"user_id": identity.user_id})
    return identity
