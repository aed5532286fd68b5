"""CLI tools for platform administration."""

import click

from app.core.exceptions import DomainError
from app.core.permissions import Actor
from app.db.enums import Role
from app.db.session import SessionLocal
from app.services import connection_request_service, connection_service, user_service


@click.group()
def cli():
    """SafeSpace CLI tools."""
    pass


def _require_user(db, email: str):
    user = user_service.get_user_by_email(db, email)
    if not user:
        raise click.ClickException(f"User not found: {email}")
    return user


@cli.command()
@click.option("--email", required=True, help="Email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option(
    "--role",
    "roles",
    multiple=True,
    required=True,
    type=click.Choice([r.value for r in Role]),
    help="Role to grant (repeatable)",
)
@click.option("--guardian-email", default=None, help="Guardian email (required for child accounts)")
def create_user(email: str, display_name: str, roles: tuple[str, ...], guardian_email: str | None):
    """
    Create a user account.
    
    Example:
        python -m app.cli create-user --email "kid@example.com" --name "Sam" --role child --guardian-email "parent@example.com"
    """
    db = SessionLocal()
    try:
        guardian_id = _require_user(db, guardian_email).id if guardian_email else None
        user = user_service.create_user(
            db, email, display_name, [Role(r) for r in roles], guardian_id=guardian_id
        )
        click.echo(f"✓ Created user {user.email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Roles: {', '.join(sorted(r.value for r in user.roles))}")
    except DomainError as e:
        db.rollback()
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.
    
    Example:
        python -m app.cli revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = _require_user(db, email)
        old_version = user.token_version
        user_service.revoke_all_sessions(db, user.id)
        db.refresh(user)
        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


@cli.command()
@click.option("--admin-email", required=True, help="Administrator performing the assignment")
@click.option("--therapist-email", required=True, help="Therapist email")
@click.option("--guardian-email", required=True, help="Guardian email")
def assign_connection(admin_email: str, therapist_email: str, guardian_email: str):
    """
    Pair a therapist with a guardian.
    
    Example:
        python -m app.cli assign-connection --admin-email a@x.com --therapist-email t@x.com --guardian-email g@x.com
    """
    db = SessionLocal()
    try:
        admin = Actor.from_user(_require_user(db, admin_email))
        therapist = _require_user(db, therapist_email)
        guardian = _require_user(db, guardian_email)
        connection = connection_service.create_admin_assignment(db, therapist.id, guardian.id, admin)
        click.echo(f"✓ Connected {therapist_email} with {guardian_email}")
        click.echo(f"  Connection ID: {connection.id}")
    except DomainError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
@click.option("--admin-email", required=True, help="Administrator performing the termination")
@click.option("--connection-id", required=True, type=click.UUID, help="Connection to terminate")
@click.option("--reason", default=None, help="Termination reason")
def terminate_connection(admin_email: str, connection_id, reason: str | None):
    """End a connection and cancel its future appointments."""
    db = SessionLocal()
    try:
        admin = Actor.from_user(_require_user(db, admin_email))
        result = connection_service.terminate_connection(db, connection_id, admin, reason=reason)
        click.echo(f"✓ Terminated connection {connection_id}")
        click.echo(f"  Appointments cancelled: {len(result.cancelled_appointments)}")
    except DomainError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
def stats():
    """Print connection and request counts."""
    db = SessionLocal()
    try:
        for label, counts in (
            ("Connections", connection_service.get_connection_statistics(db)),
            ("Requests", connection_request_service.get_request_statistics(db)),
        ):
            click.echo(f"{label}:")
            for key, value in counts.items():
                click.echo(f"  {key}: {value}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
