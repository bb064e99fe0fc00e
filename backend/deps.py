"""
Shared FastAPI dependencies.

Routers import the app context, the caller's role session and the role
guards from here.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from app_context import AppContext
from domain.errors import PermissionDeniedError
from middleware.auth import require_authenticated_user
from views.session import CustomerSession, Session, StoreOwnerSession, open_session


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service is starting up, try again shortly.")
    return context


async def get_session(
    user_id: str = Depends(require_authenticated_user),
    context: AppContext = Depends(get_context),
) -> Session:
    return await open_session(context, user_id)


async def require_customer(session: Session = Depends(get_session)) -> CustomerSession:
    if not isinstance(session, CustomerSession):
        raise PermissionDeniedError("Customer account required for this endpoint.")
    return session


async def require_store_owner(session: Session = Depends(get_session)) -> StoreOwnerSession:
    if not isinstance(session, StoreOwnerSession):
        raise PermissionDeniedError("Store owner account required for this endpoint.")
    return session
