"""
Unit tests for authentication service.

Tests:
- Credential login (success, unknown email, wrong password, inactive account)
- Demo administrator login and its preference reset
- Registration (password rules, duplicates, admin role gating)
- Concurrent registration of the same address
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from api.schemas.auth import LoginRequest, RegisterRequest
from api.services.auth_service import DEMO_USER_ID, AuthService, password_problems
from core.config import SecuritySettings
from core.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    ValidationFailedError,
)
from core.security import decode_token, principal_from_claims, verify_password
from crud import settings_crud, user_crud
from db.enums import UserRole
from tests.factories import ADMIN_PASSWORD, USER_PASSWORD, UserFactory

DEMO_PASSWORD = "demo-Pass-2024!"


@pytest.fixture
def security() -> SecuritySettings:
    return SecuritySettings(
        secret_key="unit-test-secret-key-0123456789abcdef",
        bcrypt_rounds=4,
        demo_password=DEMO_PASSWORD,
        admin_registration_key="letmein",
    )


class TestPasswordRules:

    def test_strong_password_passes(self):
        assert password_problems("Str0ng!pass") == []

    def test_every_unmet_rule_is_reported(self):
        assert password_problems("abc") == [
            "Password must be at least 8 characters long",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one number",
            "Password must contain at least one special character",
        ]


class TestLogin:
    """Tests for email/password login."""

    @pytest.mark.asyncio
    async def test_login_success_issues_token(self, db_session, regular_user, security):
        token, principal = await AuthService.login(
            db_session,
            LoginRequest(email="  USER@compass.io ", password=USER_PASSWORD),
            security,
        )

        assert principal.user_id == str(regular_user.id)
        assert principal.email == "user@compass.io"
        assert principal.role == UserRole.USER
        assert principal_from_claims(decode_token(token, security)) == principal

        await db_session.refresh(regular_user)
        assert regular_user.last_login is not None

    @pytest.mark.asyncio
    async def test_admin_login_carries_admin_role(self, db_session, admin_user, security):
        _, principal = await AuthService.login(
            db_session,
            LoginRequest(email="admin@compass.io", password=ADMIN_PASSWORD),
            security,
        )

        assert principal.is_admin

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,password",
        [
            ("nobody@compass.io", USER_PASSWORD),
            ("user@compass.io", "Wrong-Pass-1!"),
        ],
    )
    async def test_bad_credentials_share_one_error(
        self, db_session, regular_user, security, email, password
    ):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await AuthService.login(
                db_session, LoginRequest(email=email, password=password), security
            )

        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_inactive_account_cannot_login(self, db_session, security):
        db_session.add(
            UserFactory.create(email="gone@compass.io", password=USER_PASSWORD, is_active=False)
        )
        await db_session.commit()

        with pytest.raises(InvalidCredentialsError):
            await AuthService.login(
                db_session,
                LoginRequest(email="gone@compass.io", password=USER_PASSWORD),
                security,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,password,message",
        [
            (None, "x", "Email and password are required"),
            ("user@compass.io", "", "Email and password are required"),
            ("not-an-email", "x", "Please enter a valid email address"),
        ],
    )
    async def test_malformed_input(self, db_session, security, email, password, message):
        with pytest.raises(ValidationFailedError) as exc_info:
            await AuthService.login(
                db_session, LoginRequest(email=email, password=password), security
            )

        assert exc_info.value.message == message

    @pytest.mark.asyncio
    async def test_missing_signing_key_is_a_configuration_error(
        self, db_session, regular_user
    ):
        keyless = SecuritySettings(secret_key="", bcrypt_rounds=4)

        with pytest.raises(ConfigurationError):
            await AuthService.login(
                db_session,
                LoginRequest(email="user@compass.io", password=USER_PASSWORD),
                keyless,
            )


class TestDemoLogin:
    """Tests for the fixed-password demo administrator."""

    @pytest.mark.asyncio
    async def test_demo_login_yields_demo_admin(self, db_session, security):
        token, principal = await AuthService.login(
            db_session,
            LoginRequest(email="Visitor@Compass.io", password=DEMO_PASSWORD, is_admin_login=True),
            security,
        )

        assert principal.user_id == DEMO_USER_ID
        assert principal.email == "visitor@compass.io"
        assert principal.role == UserRole.ADMIN
        assert principal_from_claims(decode_token(token, security)).user_id == DEMO_USER_ID

    @pytest.mark.asyncio
    async def test_demo_login_resets_notification_preferences(self, db_session, security):
        prefs = await settings_crud.get_or_create_user_settings(db_session, DEMO_USER_ID)
        await settings_crud.update_user_settings(
            db_session,
            prefs,
            {"notification_email": "old@compass.io", "receive_status_updates": False},
        )

        await AuthService.login(
            db_session,
            LoginRequest(email="visitor@compass.io", password=DEMO_PASSWORD, is_admin_login=True),
            security,
        )

        prefs = await settings_crud.get_user_settings(db_session, DEMO_USER_ID)
        assert prefs.notification_email == ""
        assert prefs.receive_status_updates is True

    @pytest.mark.asyncio
    async def test_demo_password_without_flag_is_a_normal_login(self, db_session, security):
        with pytest.raises(InvalidCredentialsError):
            await AuthService.login(
                db_session,
                LoginRequest(email="visitor@compass.io", password=DEMO_PASSWORD),
                security,
            )

    @pytest.mark.asyncio
    async def test_wrong_demo_password_falls_through_to_accounts(
        self, db_session, admin_user, security
    ):
        _, principal = await AuthService.login(
            db_session,
            LoginRequest(email="admin@compass.io", password=ADMIN_PASSWORD, is_admin_login=True),
            security,
        )

        assert principal.user_id == str(admin_user.id)

    def test_demo_path_can_be_disabled(self, security):
        disabled = security.model_copy(update={"demo_login_enabled": False})
        request = LoginRequest(email="a@compass.io", password=DEMO_PASSWORD, is_admin_login=True)

        assert AuthService.is_demo_login(request, security) is True
        assert AuthService.is_demo_login(request, disabled) is False

    def test_empty_demo_password_disables_the_path(self, security):
        unset = security.model_copy(update={"demo_password": ""})
        request = LoginRequest(email="a@compass.io", password="anything", is_admin_login=True)

        assert AuthService.is_demo_login(request, unset) is False


class TestRegister:
    """Tests for self-service registration."""

    @pytest.mark.asyncio
    async def test_register_creates_user_with_hashed_password(self, db_session, security):
        token, principal = await AuthService.register(
            db_session,
            RegisterRequest(email="New@Compass.io", password="Fresh-Pass-1!"),
            security,
        )

        user = await user_crud.get_by_email(db_session, "new@compass.io")
        assert user is not None
        assert user.email == "new@compass.io"
        assert user.password_hash != "Fresh-Pass-1!"
        assert verify_password("Fresh-Pass-1!", user.password_hash)
        assert principal.role == UserRole.USER
        assert principal_from_claims(decode_token(token, security)).user_id == str(user.id)

    @pytest.mark.asyncio
    async def test_weak_password_lists_every_problem(self, db_session, security):
        with pytest.raises(ValidationFailedError) as exc_info:
            await AuthService.register(
                db_session, RegisterRequest(email="new@compass.io", password="short"), security
            )

        assert exc_info.value.message == "Password does not meet requirements"
        assert {error["field"] for error in exc_info.value.errors} == {"password"}
        assert len(exc_info.value.errors) == 4

    @pytest.mark.asyncio
    async def test_duplicate_email_is_a_conflict(self, db_session, regular_user, security):
        with pytest.raises(ConflictError) as exc_info:
            await AuthService.register(
                db_session,
                RegisterRequest(email="USER@compass.io", password="Other-Pass-1!"),
                security,
            )

        assert exc_info.value.message == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_first_admin_needs_no_key(self, db_session, security):
        _, principal = await AuthService.register(
            db_session,
            RegisterRequest(email="first@compass.io", password="Admin-Pass-2!", role=UserRole.ADMIN),
            security,
        )

        assert principal.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_later_admin_without_key_becomes_user(self, db_session, admin_user, security):
        _, principal = await AuthService.register(
            db_session,
            RegisterRequest(email="second@compass.io", password="Admin-Pass-2!", role=UserRole.ADMIN),
            security,
            admin_key="wrong",
        )

        assert principal.role == UserRole.USER

    @pytest.mark.asyncio
    async def test_later_admin_with_key_is_admin(self, db_session, admin_user, security):
        _, principal = await AuthService.register(
            db_session,
            RegisterRequest(email="second@compass.io", password="Admin-Pass-2!", role=UserRole.ADMIN),
            security,
            admin_key="letmein",
        )

        assert principal.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_maps_to_conflict(self, db_session, security):
        """The unique index catches a race the pre-check missed."""
        with patch(
            "api.services.auth_service.user_crud.create_user",
            AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("UNIQUE"))),
        ):
            with pytest.raises(ConflictError):
                await AuthService.register(
                    db_session,
                    RegisterRequest(email="race@compass.io", password="Race-Pass-1!"),
                    security,
                )
