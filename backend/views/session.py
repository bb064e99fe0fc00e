"""
Role sessions — one variant per role, picked once at login.

    session = await open_session(context, user_id, email=...)
    if isinstance(session, StoreOwnerSession):
        session.console ...
    else:
        session.view ...

The profile is self-healed if missing. A store owner without a linked store
cannot open a session (StoreNotLinkedError).
"""
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Union

from app_context import AppContext
from domain.enums import Role
from domain.records import Profile, Store
from services.backends import DataBackend
from views.customer import CustomerView
from views.store_owner import StoreOwnerConsole

logger = logging.getLogger(__name__)


@dataclass
class CustomerSession:
    profile: Profile
    backend: DataBackend
    view: CustomerView
    role: Literal[Role.CUSTOMER] = Role.CUSTOMER


@dataclass
class StoreOwnerSession:
    profile: Profile
    backend: DataBackend
    store: Store
    console: StoreOwnerConsole
    role: Literal[Role.STORE_OWNER] = Role.STORE_OWNER


Session = Union[CustomerSession, StoreOwnerSession]


async def open_session(
    context: AppContext,
    user_id: str,
    *,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
    role: Optional[Role] = None,
) -> Session:
    backend = context.backend_for(user_id)
    profile, created = await backend.ensure_profile(
        user_id, email=email, full_name=full_name, phone=phone, role=role
    )
    if created:
        logger.info(f"Created profile for {user_id} (role={profile.role.value})")

    if profile.role == Role.STORE_OWNER:
        store = await backend.get_owner_store(user_id)
        console = StoreOwnerConsole(backend, profile, store, context.settings)
        return StoreOwnerSession(profile=profile, backend=backend, store=store, console=console)

    view = CustomerView(backend, profile, context.settings)
    return CustomerSession(profile=profile, backend=backend, view=view)


def describe(session: Session) -> dict:
    """Summary for /auth/me and the login response."""
    data = {
        "role": session.role.value,
        "profile": session.profile,
        "demo": session.backend.is_demo,
    }
    if isinstance(session, StoreOwnerSession):
        data["store"] = session.store
    return data
