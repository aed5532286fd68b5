"""User service - identity lookups and role checks used by the domain services."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.db.enums import Role
from app.db.models import User, UserRole


def get_user(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def require_user(db: Session, user_id: UUID) -> User:
    """Get user by ID or raise NotFoundError."""
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def require_user_with_role(db: Session, user_id: UUID, role: Role) -> User:
    """Get user and ensure it holds the given role."""
    user = require_user(db, user_id)
    if not user.has_role(role):
        raise ValidationError(f"User must have {role.value} role")
    return user


def lock_therapist(db: Session, therapist_id: UUID) -> None:
    """
    Serialize writers touching one therapist's connections or schedule.

    PostgreSQL takes a row lock on the therapist; SQLite transactions already
    start with BEGIN IMMEDIATE (see db.session).
    """
    if db.get_bind().dialect.name == "postgresql":
        db.query(User).filter(User.id == therapist_id).with_for_update().first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    email: str,
    display_name: str,
    roles: list[Role],
    guardian_id: UUID | None = None,
) -> User:
    """
    Create a user with the given roles.

    Child accounts must name an existing guardian.
    """
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ValidationError(f"User with email {email} already exists")
    if Role.CHILD in roles:
        if not guardian_id:
            raise ValidationError("Child accounts require a guardian")
        require_user_with_role(db, guardian_id, Role.GUARDIAN)

    user = User(
        email=email,
        display_name=display_name.strip(),
        guardian_id=guardian_id,
    )
    user.role_rows = [UserRole(role=role.value) for role in dict.fromkeys(roles)]
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def is_guardian_of(guardian: User, child: User) -> bool:
    """True when child is a child account owned by guardian."""
    return (
        guardian.has_role(Role.GUARDIAN)
        and child.has_role(Role.CHILD)
        and child.guardian_id == guardian.id
    )


def is_family_pair(user: User, other: User) -> bool:
    """Guardian and their own child, in either order."""
    return is_guardian_of(user, other) or is_guardian_of(other, user)


def revoke_all_sessions(db: Session, user_id: UUID) -> bool:
    """
    Revoke all sessions for a user by bumping token_version.
    
    Existing tokens with old version will fail validation.
    
    Returns:
        True if user found and sessions revoked, False if user not found
    """
    user = get_user(db, user_id)
    if not user:
        return False
    
    user.token_version += 1
    db.commit()
    return True
