"""CLI utilities for operating an Atelier deployment."""

# purpose: bootstrap schema, accounts, firm memberships and the material bank without going through the API
# status: active
# depends_on: atelier.database, atelier.models, atelier.auth, atelier.membership

from __future__ import annotations

import json
import re

import typer
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_password_hash, principal_for_user, token_for_user
from ..database import Base, SessionLocal, engine
from ..errors import AtelierError
from ..membership import add_firm_member, remove_firm_member
from ..services import materials

app = typer.Typer(help="Atelier maintenance commands")

_ROLES = [role.value for role in models.UserRole]


def _user_by_email(session: Session, email: str) -> models.User:
    user = session.query(models.User).filter(models.User.email == email.strip().lower()).first()
    if user is None:
        raise ValueError(f"No user with email {email}")
    return user


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-") or "firm"


def init_db() -> list[str]:
    """Create any missing tables and return the full table list."""

    Base.metadata.create_all(bind=engine)
    return sorted(Base.metadata.tables)


def create_user(
    email: str,
    password: str,
    *,
    role: str = models.UserRole.DESIGNER.value,
    display_name: str | None = None,
    admin: bool = False,
) -> dict[str, object]:
    if role not in _ROLES:
        raise ValueError(f"Unknown role {role}; expected one of {', '.join(_ROLES)}")
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")
    session = SessionLocal()
    try:
        normalized = email.strip().lower()
        if session.query(models.User).filter(models.User.email == normalized).first():
            raise ValueError(f"Email {normalized} already registered")
        user = models.User(
            email=normalized,
            hashed_password=get_password_hash(password),
            display_name=display_name,
            role=role,
            is_admin=admin,
        )
        session.add(user)
        session.commit()
        return {"user_id": user.id, "email": user.email, "role": user.role, "is_admin": user.is_admin}
    finally:
        session.close()


def issue_token(email: str) -> str:
    session = SessionLocal()
    try:
        return token_for_user(_user_by_email(session, email))
    finally:
        session.close()


def add_member(firm_name: str, email: str, *, role: str = "member") -> dict[str, object]:
    """Attach a user to a firm, creating the firm on first use."""

    session = SessionLocal()
    try:
        user = _user_by_email(session, email)
        slug = _slugify(firm_name)
        firm = session.query(models.Firm).filter(models.Firm.slug == slug).first()
        if firm is None:
            firm = models.Firm(name=firm_name.strip(), slug=slug, created_by_user_id=user.id)
            session.add(firm)
            session.flush()
        member = add_firm_member(session, firm_id=firm.id, user_id=user.id, role=role)
        session.commit()
        return {"firm_id": firm.id, "user_id": user.id, "member_id": member.id, "role": member.role}
    finally:
        session.close()


def remove_member(firm_name: str, email: str) -> dict[str, object]:
    session = SessionLocal()
    try:
        user = _user_by_email(session, email)
        firm = session.query(models.Firm).filter(models.Firm.slug == _slugify(firm_name)).first()
        if firm is None:
            raise ValueError(f"No firm named {firm_name}")
        removed = remove_firm_member(session, firm_id=firm.id, user_id=user.id)
        session.commit()
        return {"firm_id": firm.id, "user_id": user.id, "removed": removed}
    finally:
        session.close()


def add_material(name: str, admin_email: str, *, category: str | None = None, code: str | None = None) -> dict[str, object]:
    """Add a bank material on behalf of an administrator account."""

    session = SessionLocal()
    try:
        ctx = principal_for_user(_user_by_email(session, admin_email))
        try:
            material = materials.create_material(session, ctx, name, category=category, material_code=code)
        except AtelierError as exc:
            raise ValueError(exc.message) from exc
        return {"material_id": material.id, "name": material.name, "category": material.category}
    finally:
        session.close()


@app.command("init-db")
def init_db_command() -> None:
    """Create tables directly from the models (development databases)."""

    typer.echo(json.dumps({"tables": init_db()}))


@app.command("create-user")
def create_user_command(
    email: str,
    password: str = typer.Option(..., prompt=True, hide_input=True),
    role: str = typer.Option(models.UserRole.DESIGNER.value, help="designer, supplier, operator or team_member"),
    display_name: str = typer.Option(None, help="Optional display name"),
    admin: bool = typer.Option(False, help="Grant platform administrator rights"),
) -> None:
    try:
        summary = create_user(email, password, role=role, display_name=display_name, admin=admin)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(json.dumps(summary))


@app.command("issue-token")
def issue_token_command(email: str) -> None:
    """Print a bearer token for an existing account."""

    try:
        token = issue_token(email)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(token)


@app.command("add-firm-member")
def add_firm_member_command(
    firm_name: str,
    email: str,
    role: str = typer.Option("member", help="Role recorded on the membership"),
) -> None:
    try:
        summary = add_member(firm_name, email, role=role)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(json.dumps(summary))


@app.command("remove-firm-member")
def remove_firm_member_command(firm_name: str, email: str) -> None:
    try:
        summary = remove_member(firm_name, email)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(json.dumps(summary))


@app.command("create-material")
def create_material_command(
    name: str,
    admin_email: str,
    category: str = typer.Option(None, help="Bank category"),
    code: str = typer.Option(None, help="Supplier or catalogue code"),
) -> None:
    try:
        summary = add_material(name, admin_email, category=category, code=code)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(json.dumps(summary))


if __name__ == "__main__":
    app()
