"""
Profile service — lookup, first-login self-healing and profile edits.

Authentication itself happens upstream; by the time an identity reaches
this service it is trusted. If the profile row is missing (signup raced the
profile insert, or the row was never written) a minimal one is synthesized
from the identity claims instead of failing the login.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Profile, row_to_dict
from domain.enums import Role
from domain.errors import NotFoundError
from domain.records import Profile as ProfileRecord, parse_profile_row

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, profile_id: str) -> Optional[ProfileRecord]:
    res = await db.execute(select(Profile).where(Profile.id == profile_id))
    row = res.scalar_one_or_none()
    return parse_profile_row(row_to_dict(row)) if row else None


async def ensure_profile(
    db: AsyncSession,
    *,
    profile_id: str,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
    role: Optional[Role] = None,
) -> tuple[ProfileRecord, bool]:
    """
    Return the profile for `profile_id`, creating it when missing.

    Returns:
        (profile, created)
    """
    res = await db.execute(select(Profile).where(Profile.id == profile_id))
    row = res.scalar_one_or_none()
    if row:
        return parse_profile_row(row_to_dict(row)), False

    logger.warning(f"Profile {profile_id} missing; synthesizing a minimal one")
    row = Profile(
        id=profile_id,
        role=(role or Role.CUSTOMER).value,
        full_name=full_name or "User",
        phone_number=phone or "",
        email=email or "",
        address="",
    )
    db.add(row)
    await db.flush()
    return parse_profile_row(row_to_dict(row)), True


async def update_profile(
    db: AsyncSession,
    profile_id: str,
    *,
    full_name: Optional[str] = None,
    address: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> ProfileRecord:
    """Update provided fields only. Raises NotFoundError if the profile is gone."""
    res = await db.execute(select(Profile).where(Profile.id == profile_id))
    row = res.scalar_one_or_none()
    if not row:
        raise NotFoundError("Profile", profile_id)

    if full_name is not None:
        row.full_name = full_name
    if address is not None:
        row.address = address
    if email is not None:
        row.email = email
    if phone is not None:
        row.phone_number = phone

    await db.flush()
    return parse_profile_row(row_to_dict(row))


async def get_contacts(db: AsyncSession, profile_ids: list[str]) -> dict[str, dict]:
    """{id: {full_name, phone_number}} for the given profiles, for order listings."""
    if not profile_ids:
        return {}
    res = await db.execute(
        select(Profile.id, Profile.full_name, Profile.phone_number).where(Profile.id.in_(profile_ids))
    )
    return {
        pid: {"full_name": name, "phone_number": phone}
        for pid, name, phone in res.all()
    }
