"""
Auth endpoints — session exchange and demo login.

Flow:
  1) User signs in with the identity provider (outside this service)
  2) POST /auth/session  -> self-heals the profile, returns JWT access token
  3) Later calls send Authorization: Bearer <token>

POST /auth/demo logs into the demo store owner or demo customer (DEMO_MODE only).
"""

import logging

from fastapi import APIRouter, Depends

from app_context import AppContext
from config import settings
from deps import get_context, get_session
from domain.enums import Role
from domain.errors import PermissionDeniedError
from domain.responses import success_response
from middleware.auth import issue_access_token, require_authenticated_user
from models import DemoLoginRequest, SessionRequest
from views.session import Session, describe, open_session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _token_payload(session: Session) -> dict:
    data = describe(session)
    data["accessToken"] = issue_access_token(user_id=session.profile.id, role=session.role.value)
    data["tokenType"] = "Bearer"
    data["expiresInSeconds"] = settings.jwt_access_ttl_minutes * 60
    return data


@router.post("/session")
async def create_session(
    request: SessionRequest,
    user_id: str = Depends(require_authenticated_user),
    context: AppContext = Depends(get_context),
):
    session = await open_session(
        context,
        user_id,
        email=request.email,
        full_name=request.full_name,
        phone=request.phone,
        role=request.role,
    )
    logger.info(f"Session opened for {user_id} ({session.role.value})")
    return success_response(data=_token_payload(session))


@router.post("/demo")
async def demo_login(
    request: DemoLoginRequest,
    context: AppContext = Depends(get_context),
):
    demo = context.settings
    if not demo.demo_mode:
        raise PermissionDeniedError("Demo login is disabled.")
    user_id = demo.demo_user_id if request.role == Role.STORE_OWNER else demo.demo_customer_id
    session = await open_session(context, user_id)
    return success_response(data=_token_payload(session), meta={"mode": "demo"})


@router.get("/me")
async def who_am_i(session: Session = Depends(get_session)):
    return success_response(data=describe(session))
