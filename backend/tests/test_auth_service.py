"""
Authentication and session tests.

Verifies:
- Password strength policy and bcrypt hashing
- Username uniqueness, rename and password change
- Session timeouts and revocation
"""

from datetime import timedelta

import pytest

from zes_pos.extensions import db
from zes_pos.models import SessionToken
from zes_pos.permissions import role_has_permission
from zes_pos.services import auth_service, session_service
from zes_pos.services.auth_service import AuthError, PasswordValidationError
from zes_pos.time_utils import utcnow
from zes_pos.validation import ConflictError, ValidationError

from conftest import TEST_PASSWORD


@pytest.mark.parametrize(
    "password",
    ["Sh0rt!", "alllower1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial1"],
)
def test_weak_passwords_rejected(password):
    with pytest.raises(PasswordValidationError):
        auth_service.validate_password_strength(password)


def test_hash_and_verify():
    hashed = auth_service.hash_password(TEST_PASSWORD)
    assert hashed != TEST_PASSWORD
    assert auth_service.verify_password(TEST_PASSWORD, hashed)
    assert not auth_service.verify_password("Wrong123!", hashed)
    assert not auth_service.verify_password(TEST_PASSWORD, "not-a-bcrypt-hash")


def test_role_permissions():
    assert role_has_permission("owner", "VIEW_COST")
    assert role_has_permission("shopkeeper", "CREATE_INVOICE")
    assert not role_has_permission("shopkeeper", "VIEW_COST")
    assert not role_has_permission("shopkeeper", "VIEW_REVENUE")
    assert not role_has_permission("shopkeeper", "MANAGE_USERS")
    assert not role_has_permission(None, "VIEW_PRODUCTS")


class TestUsers:

    def test_authenticate(self, owner):
        user = auth_service.authenticate("Owner", TEST_PASSWORD)
        assert user.id == owner.id
        assert user.last_login_at is not None

        with pytest.raises(AuthError):
            auth_service.authenticate("owner", "Wrong123!")
        with pytest.raises(AuthError):
            auth_service.authenticate("nobody", TEST_PASSWORD)

    def test_inactive_user_cannot_log_in(self, owner):
        owner.is_active = False
        db.session.commit()
        with pytest.raises(AuthError):
            auth_service.authenticate("owner", TEST_PASSWORD)

    def test_add_shopkeeper_and_duplicates(self, owner):
        user = auth_service.add_shopkeeper("counter2", TEST_PASSWORD, name="Counter Two")
        assert user.role == "shopkeeper"
        assert user.name == "Counter Two"

        with pytest.raises(ConflictError):
            auth_service.add_shopkeeper("COUNTER2", TEST_PASSWORD)
        with pytest.raises(ValidationError):
            auth_service.add_shopkeeper("x", TEST_PASSWORD)
        with pytest.raises(ValidationError):
            auth_service.create_user("manager1", TEST_PASSWORD, role="manager")

    def test_change_password(self, shopkeeper):
        with pytest.raises(AuthError):
            auth_service.change_password(shopkeeper.id, "Wrong123!", "N3w!Password")
        with pytest.raises(PasswordValidationError):
            auth_service.change_password(shopkeeper.id, TEST_PASSWORD, "weak")

        auth_service.change_password(shopkeeper.id, TEST_PASSWORD, "N3w!Password")
        assert auth_service.authenticate("shopkeeper", "N3w!Password").id == shopkeeper.id

    def test_rename(self, owner, shopkeeper):
        renamed = auth_service.rename_user(shopkeeper.id, "counter1")
        assert renamed.username == "counter1"
        with pytest.raises(ConflictError):
            auth_service.rename_user(shopkeeper.id, "owner")

    def test_default_users_are_idempotent(self, db_session):
        created = auth_service.create_default_users(TEST_PASSWORD, TEST_PASSWORD)
        assert sorted(u.role for u in created) == ["owner", "shopkeeper"]
        assert auth_service.create_default_users(TEST_PASSWORD, TEST_PASSWORD) == []
        assert len(auth_service.list_users()) == 2


class TestSessions:

    def test_create_validate_revoke(self, owner):
        session, token = session_service.create_session(owner.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

        context = session_service.validate_session(token)
        assert context.user.id == owner.id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("nope") is None

    def test_idle_timeout_revokes(self, owner):
        session, token = session_service.create_session(owner.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_absolute_timeout(self, owner):
        session, token = session_service.create_session(owner.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_revoke_all_keeps_current(self, owner):
        current, current_token = session_service.create_session(owner.id)
        _, other_token = session_service.create_session(owner.id)

        assert session_service.revoke_all_user_sessions(owner.id, keep_session_id=current.id) == 1
        assert session_service.validate_session(current_token) is not None
        assert session_service.validate_session(other_token) is None
