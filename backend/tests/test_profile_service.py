"""
Tests for profile lookup, first-login self-healing and edits.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from domain.enums import Role
from domain.errors import NotFoundError
from services import profile_service


class TestEnsureProfile:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_profile_is_synthesized(self, db_session):
        profile, created = await profile_service.ensure_profile(
            db_session, profile_id="new-user", email="new@example.com",
        )
        await db_session.commit()
        assert created is True
        assert profile.role == Role.CUSTOMER
        assert profile.full_name == "User"
        assert profile.email == "new@example.com"
        assert (await profile_service.get_profile(db_session, "new-user")) == profile

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_existing_profile_is_returned_untouched(self, db_session, sample_owner):
        profile, created = await profile_service.ensure_profile(
            db_session, profile_id=sample_owner.id, full_name="Someone Else", role=Role.CUSTOMER,
        )
        assert created is False
        assert profile.full_name == "Asha Stores"
        assert profile.role == Role.STORE_OWNER

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_profile_lookup(self, db_session):
        assert await profile_service.get_profile(db_session, "ghost") is None


class TestUpdateProfile:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_only_given_fields_change(self, db_session, sample_customer):
        profile = await profile_service.update_profile(db_session, sample_customer.id, phone="9111111111")
        assert profile.phone == "9111111111"
        assert profile.full_name == "Meera"
        assert profile.address == "12th Main, Indiranagar"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_profile(self, db_session):
        with pytest.raises(NotFoundError):
            await profile_service.update_profile(db_session, "ghost", full_name="Nobody")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_contacts(self, db_session, sample_customer, sample_owner):
        contacts = await profile_service.get_contacts(db_session, [sample_customer.id, "ghost"])
        assert contacts == {sample_customer.id: {"full_name": "Meera", "phone_number": "9000000002"}}
