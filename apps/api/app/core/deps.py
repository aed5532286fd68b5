"""FastAPI dependencies for identity context and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.permissions import Actor
from app.core.security import decode_session_token
from app.db.enums import Capability
from app.db.session import SessionLocal
from app.schemas.auth import TokenPayload


# Cookie and header names
COOKIE_NAME = "safespace_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    
    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request, 
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from session cookie.
    
    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)
    
    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    from app.db.models import User
    
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    
    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")
    
    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    
    # Token version check (revocation support)
    if user.token_version != payload.token_version:
        raise HTTPException(status_code=401, detail="Session revoked")
    
    return user


def get_current_actor(
    request: Request,
    db: Session = Depends(get_db),
) -> Actor:
    """
    Build the Actor for the current request.

    Roles are read from storage on every request rather than trusted from
    the token, so a revoked role takes effect immediately.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: User holds no known role
    """
    user = get_current_user(request, db)
    actor = Actor.from_user(user)
    if not actor.roles:
        raise HTTPException(status_code=403, detail="No platform role assigned")
    return actor


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.
    
    Apply to state-changing endpoints (POST, PATCH, DELETE).
    
    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403, 
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )


def get_clock() -> Clock:
    """Clock dependency (overridden in tests to pin time)."""
    return system_clock


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require the platform-wide view capability.

    Raises:
        HTTPException 403: Actor is not an administrator
    """
    if not actor.can(Capability.VIEW_ALL_CONNECTIONS):
        raise HTTPException(status_code=403, detail="Administrator access required")
    return actor
