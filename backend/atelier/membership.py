"""Firm membership and role lookups consumed by the authorization resolver."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Session

from . import models

# purpose: answer "is this user a view-only team member" and active firm membership questions
# inputs: session handle, user and firm identifiers
# outputs: booleans / firm ids; absent firm_members storage reads as "no membership"
# status: active

FIRM_MEMBERS_TABLE = models.FirmMember.__tablename__


def is_view_only_team_member(db: Session, user_id: int | None) -> bool:
    if not user_id:
        return False
    role = db.query(models.User.role).filter(models.User.id == user_id).scalar()
    return role == models.UserRole.TEAM_MEMBER.value


def firm_members_provisioned(db: Session) -> bool:
    """Return whether the firm membership table exists in the bound database."""

    return sa.inspect(db.get_bind()).has_table(FIRM_MEMBERS_TABLE)


def _active_membership_filter():
    return sa.and_(
        models.FirmMember.status == models.FirmMemberStatus.ACTIVE.value,
        models.FirmMember.left_at.is_(None),
    )


def active_firm_id_for_user(db: Session, user_id: int | None) -> int | None:
    """Firm id of any active membership the user holds, or None."""

    if not user_id or not firm_members_provisioned(db):
        return None
    return (
        db.query(models.FirmMember.firm_id)
        .filter(models.FirmMember.user_id == user_id, _active_membership_filter())
        .order_by(models.FirmMember.id.asc())
        .limit(1)
        .scalar()
    )


def active_firm_ids(db: Session, user_id: int | None) -> list[int]:
    """Every firm the user is an active member of, oldest membership first."""

    if not user_id or not firm_members_provisioned(db):
        return []
    rows = (
        db.query(models.FirmMember.firm_id)
        .filter(models.FirmMember.user_id == user_id, _active_membership_filter())
        .order_by(models.FirmMember.id.asc())
        .all()
    )
    return list(dict.fromkeys(row.firm_id for row in rows))


def firm_exists(db: Session, firm_id: int | None) -> bool:
    if not firm_id:
        return False
    found = db.query(models.Firm.id).filter(models.Firm.id == firm_id, models.Firm.deleted_at.is_(None)).first()
    return found is not None


def is_active_firm_member(db: Session, user_id: int | None, firm_id: int | None) -> bool:
    if not user_id or not firm_id or not firm_members_provisioned(db):
        return False
    found = (
        db.query(models.FirmMember.id)
        .filter(
            models.FirmMember.user_id == user_id,
            models.FirmMember.firm_id == firm_id,
            _active_membership_filter(),
        )
        .first()
    )
    return found is not None


def add_firm_member(
    db: Session,
    *,
    firm_id: int,
    user_id: int,
    role: str = "member",
    invited_by_user_id: int | None = None,
) -> models.FirmMember:
    member = models.FirmMember(
        firm_id=firm_id,
        user_id=user_id,
        role=role,
        status=models.FirmMemberStatus.ACTIVE.value,
        invited_by_user_id=invited_by_user_id,
    )
    db.add(member)
    db.flush()
    return member


def remove_firm_member(db: Session, *, firm_id: int, user_id: int) -> int:
    """Mark every active membership of ``user_id`` in ``firm_id`` as left."""

    rows = (
        db.query(models.FirmMember)
        .filter(
            models.FirmMember.firm_id == firm_id,
            models.FirmMember.user_id == user_id,
            _active_membership_filter(),
        )
        .all()
    )
    for row in rows:
        row.status = models.FirmMemberStatus.REMOVED.value
        row.left_at = models.utcnow()
    db.flush()
    return len(rows)
