"""Tests for paydesk.services.auth: login, user provisioning, password update, admin actions."""

import unittest
import uuid
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from paydesk.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    RateLimitedError,
)
from paydesk.core.rate_limit import RateLimiter
from paydesk.core.security import HashScheme, PasswordDigest, legacy_hash
from paydesk.models import AppUser
from paydesk.schemas.auth import CreateUserRequest, LoginRequest, UpdatePasswordRequest
from paydesk.services import auth as auth_service
from paydesk.services.sessions import SessionStore
from tests.helpers import FAST_HASHER, add_user, identity, make_db


class AuthServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.limiter = RateLimiter(max_attempts=5, lockout_seconds=900)
        self.sessions = SessionStore(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def login(self, email: str = "a@b.com", password: str = "correct"):
        return auth_service.login(
            self.db,
            LoginRequest(email=email, password=password),
            rate_limiter=self.limiter,
            hasher=FAST_HASHER,
            sessions=self.sessions,
            failure_delay_seconds=0,
        )


class TestLogin(AuthServiceTestCase):
    def test_success_issues_valid_session(self) -> None:
        user = add_user(self.db, role="admin")
        result = self.login()
        self.assertEqual(len(result.session_token), 64)
        check = self.sessions.validate(result.session_token)
        self.assertTrue(check.valid)
        self.assertEqual(check.user_id, user.id)
        self.assertEqual(check.role, "admin")

    def test_response_user_has_no_hash(self) -> None:
        add_user(self.db)
        dumped = self.login().model_dump(by_alias=True)
        self.assertIn("sessionToken", dumped)
        self.assertNotIn("password_hash", dumped["user"])
        self.assertEqual(dumped["user"]["email"], "a@b.com")

    def test_sets_last_login(self) -> None:
        user = add_user(self.db)
        self.assertIsNone(user.last_login)
        self.login()
        self.db.refresh(user)
        self.assertIsNotNone(user.last_login)

    def test_email_is_case_insensitive(self) -> None:
        add_user(self.db)
        result = self.login(email="  A@B.COM ")
        self.assertEqual(result.user.email, "a@b.com")

    def test_wrong_password(self) -> None:
        add_user(self.db)
        with self.assertRaises(AuthenticationError) as ctx:
            self.login(password="wrong")
        self.assertEqual(ctx.exception.message, "Invalid credentials")

    def test_unknown_email_same_message_and_delays(self) -> None:
        with patch("paydesk.services.auth.time.sleep") as sleep:
            with self.assertRaises(AuthenticationError) as ctx:
                auth_service.login(
                    self.db,
                    LoginRequest(email="nobody@b.com", password="x"),
                    rate_limiter=self.limiter,
                    hasher=FAST_HASHER,
                    sessions=self.sessions,
                    failure_delay_seconds=0.3,
                )
        self.assertEqual(ctx.exception.message, "Invalid credentials")
        sleep.assert_called_once_with(0.3)

    def test_wrong_password_does_not_delay(self) -> None:
        add_user(self.db)
        with patch("paydesk.services.auth.time.sleep") as sleep:
            with self.assertRaises(AuthenticationError):
                auth_service.login(
                    self.db,
                    LoginRequest(email="a@b.com", password="wrong"),
                    rate_limiter=self.limiter,
                    hasher=FAST_HASHER,
                    sessions=self.sessions,
                    failure_delay_seconds=0.3,
                )
        sleep.assert_not_called()

    def test_inactive_user_rejected_even_with_correct_password(self) -> None:
        add_user(self.db, is_active=False)
        with self.assertRaises(AuthenticationError):
            self.login()

    def test_empty_hash_rejected(self) -> None:
        add_user(self.db, password_hash="")
        with self.assertRaises(AuthenticationError):
            self.login()

    def test_sixth_attempt_rate_limited_even_if_correct(self) -> None:
        add_user(self.db)
        for _ in range(5):
            with self.assertRaises(AuthenticationError):
                self.login(password="wrong")
        with self.assertRaises(RateLimitedError) as ctx:
            self.login()
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertGreater(ctx.exception.retry_after, 0)
        self.assertEqual(ctx.exception.headers["Retry-After"], str(ctx.exception.retry_after))
        self.assertIn("15 minutes", ctx.exception.message)

    def test_unknown_email_failures_count_too(self) -> None:
        for _ in range(5):
            with self.assertRaises(AuthenticationError):
                self.login(email="ghost@b.com", password="x")
        with self.assertRaises(RateLimitedError):
            self.login(email="ghost@b.com", password="x")

    def test_success_before_lockout_clears_counter(self) -> None:
        add_user(self.db)
        for _ in range(4):
            with self.assertRaises(AuthenticationError):
                self.login(password="wrong")
        self.login()
        for _ in range(4):
            with self.assertRaises(AuthenticationError):
                self.login(password="wrong")
        self.login()

    def test_legacy_digest_is_upgraded(self) -> None:
        user = add_user(self.db, password_hash=legacy_hash("oldpass"))
        self.login(password="oldpass")
        self.db.refresh(user)
        digest = PasswordDigest.parse(user.password_hash)
        self.assertIs(digest.scheme, HashScheme.BCRYPT)
        self.assertTrue(FAST_HASHER.verify("oldpass", digest))

    def test_second_login_after_upgrade_uses_bcrypt(self) -> None:
        user = add_user(self.db, password_hash=legacy_hash("oldpass"))
        self.login(password="oldpass")
        self.db.refresh(user)
        upgraded = user.password_hash
        with patch("paydesk.core.security.legacy_hash") as legacy:
            self.login(password="oldpass")
        legacy.assert_not_called()
        self.db.refresh(user)
        self.assertEqual(user.password_hash, upgraded)

    def test_legacy_digest_wrong_password_not_upgraded(self) -> None:
        stored = legacy_hash("oldpass")
        user = add_user(self.db, password_hash=stored)
        with self.assertRaises(AuthenticationError):
            self.login(password="newpass")
        self.db.refresh(user)
        self.assertEqual(user.password_hash, stored)

    def test_datastore_error_is_internal(self) -> None:
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("down"))
        with self.assertRaises(InternalError):
            auth_service.login(
                db,
                LoginRequest(email="a@b.com", password="x"),
                rate_limiter=self.limiter,
                hasher=FAST_HASHER,
                sessions=SessionStore(db),
                failure_delay_seconds=0,
            )


class TestCreateUser(AuthServiceTestCase):
    def _body(self, **overrides: object) -> CreateUserRequest:
        data = {
            "email": "New@Example.com",
            "password": "longenough",
            "full_name": "New Person",
            "role": "manager",
            "location": "Downtown",
        }
        data.update(overrides)
        return CreateUserRequest(**data)

    def test_creates_active_user_with_bcrypt_hash(self) -> None:
        created = auth_service.create_user(self.db, identity(role="admin"), self._body(), hasher=FAST_HASHER)
        self.assertEqual(created.email, "new@example.com")
        self.assertTrue(created.is_active)
        row = self.db.query(AppUser).filter(AppUser.id == created.id).one()
        self.assertTrue(FAST_HASHER.verify("longenough", row.password_hash))
        self.assertFalse(FAST_HASHER.needs_upgrade(row.password_hash))

    def test_created_user_can_log_in(self) -> None:
        auth_service.create_user(self.db, identity(role="admin"), self._body(), hasher=FAST_HASHER)
        result = self.login(email="new@example.com", password="longenough")
        self.assertEqual(result.user.role, "manager")

    def test_duplicate_email_conflicts_without_insert(self) -> None:
        add_user(self.db, email="new@example.com")
        with self.assertRaises(ConflictError) as ctx:
            auth_service.create_user(self.db, identity(role="admin"), self._body(), hasher=FAST_HASHER)
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(self.db.query(AppUser).filter(AppUser.email == "new@example.com").count(), 1)

    def test_duplicate_of_inactive_user_conflicts(self) -> None:
        add_user(self.db, email="new@example.com", is_active=False)
        with self.assertRaises(ConflictError):
            auth_service.create_user(self.db, identity(role="admin"), self._body(), hasher=FAST_HASHER)

    def test_manager_forbidden(self) -> None:
        with self.assertRaises(AuthorizationError):
            auth_service.create_user(self.db, identity(role="manager"), self._body(), hasher=FAST_HASHER)
        self.assertEqual(self.db.query(AppUser).count(), 0)

    def test_duplicate_check_datastore_error_is_internal(self) -> None:
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("down"))
        with self.assertRaises(InternalError) as ctx:
            auth_service.create_user(db, identity(role="admin"), self._body(), hasher=FAST_HASHER)
        self.assertEqual(ctx.exception.message, "Failed to create user")
        db.rollback.assert_called_once()
        db.add.assert_not_called()


class TestUpdatePassword(AuthServiceTestCase):
    def _body(self, user_id: uuid.UUID, password: str = "newpass123") -> UpdatePasswordRequest:
        return UpdatePasswordRequest(userId=str(user_id), newPassword=password)

    def test_self_update_invalidates_other_sessions(self) -> None:
        user = add_user(self.db)
        current = self.sessions.create(user.id, user.role)
        other1 = self.sessions.create(user.id, user.role)
        other2 = self.sessions.create(user.id, user.role)
        caller = identity(user.id, role="manager", token=current)

        invalidated = auth_service.update_password(
            self.db, caller, self._body(user.id), hasher=FAST_HASHER, sessions=self.sessions
        )

        self.assertEqual(invalidated, 2)
        self.assertTrue(self.sessions.validate(current).valid)
        self.assertFalse(self.sessions.validate(other1).valid)
        self.assertFalse(self.sessions.validate(other2).valid)
        self.db.refresh(user)
        self.assertTrue(FAST_HASHER.verify("newpass123", user.password_hash))
        self.assertIsNotNone(user.updated_at)

    def test_old_password_stops_working(self) -> None:
        user = add_user(self.db)
        caller = identity(user.id, role="manager")
        auth_service.update_password(
            self.db, caller, self._body(user.id), hasher=FAST_HASHER, sessions=self.sessions
        )
        with self.assertRaises(AuthenticationError):
            self.login(password="correct")
        self.login(password="newpass123")

    def test_admin_updates_other_user(self) -> None:
        admin = add_user(self.db, email="admin@b.com", role="admin")
        target = add_user(self.db)
        target_session = self.sessions.create(target.id, target.role)
        admin_token = self.sessions.create(admin.id, admin.role)
        caller = identity(admin.id, role="admin", token=admin_token)

        auth_service.update_password(
            self.db, caller, self._body(target.id), hasher=FAST_HASHER, sessions=self.sessions
        )

        self.assertFalse(self.sessions.validate(target_session).valid)
        self.assertTrue(self.sessions.validate(admin_token).valid)

    def test_manager_cannot_update_other_user(self) -> None:
        target = add_user(self.db)
        with self.assertRaises(AuthorizationError):
            auth_service.update_password(
                self.db,
                identity(role="manager"),
                self._body(target.id),
                hasher=FAST_HASHER,
                sessions=self.sessions,
            )

    def test_missing_target_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            auth_service.update_password(
                self.db,
                identity(role="admin"),
                self._body(uuid.uuid4()),
                hasher=FAST_HASHER,
                sessions=self.sessions,
            )

    def test_inactive_target_not_found(self) -> None:
        target = add_user(self.db, is_active=False)
        with self.assertRaises(NotFoundError):
            auth_service.update_password(
                self.db,
                identity(role="admin"),
                self._body(target.id),
                hasher=FAST_HASHER,
                sessions=self.sessions,
            )

    def test_failed_invalidation_keeps_old_password(self) -> None:
        user = add_user(self.db)
        current = self.sessions.create(user.id, user.role)
        elsewhere = self.sessions.create(user.id, user.role)
        caller = identity(user.id, role="manager", token=current)

        with patch(
            "sqlalchemy.orm.Query.update",
            side_effect=OperationalError("UPDATE", {}, Exception("down")),
        ):
            with self.assertRaises(InternalError):
                auth_service.update_password(
                    self.db, caller, self._body(user.id), hasher=FAST_HASHER, sessions=self.sessions
                )

        stored = self.db.query(AppUser).filter(AppUser.id == user.id).one()
        self.assertTrue(FAST_HASHER.verify("correct", stored.password_hash))
        self.assertFalse(FAST_HASHER.verify("newpass123", stored.password_hash))
        self.assertTrue(self.sessions.validate(elsewhere).valid)

    def test_failed_commit_rolls_back_both_writes(self) -> None:
        user = add_user(self.db)
        elsewhere = self.sessions.create(user.id, user.role)
        caller = identity(user.id, role="manager")

        with patch.object(
            self.db, "commit", side_effect=OperationalError("COMMIT", {}, Exception("down"))
        ):
            with self.assertRaises(InternalError) as ctx:
                auth_service.update_password(
                    self.db, caller, self._body(user.id), hasher=FAST_HASHER, sessions=self.sessions
                )

        self.assertEqual(ctx.exception.message, "Failed to update password")
        stored = self.db.query(AppUser).filter(AppUser.id == user.id).one()
        self.assertTrue(FAST_HASHER.verify("correct", stored.password_hash))
        self.assertTrue(self.sessions.validate(elsewhere).valid)


class TestAdminActions(AuthServiceTestCase):
    def test_regenerate_password(self) -> None:
        target = add_user(self.db)
        session = self.sessions.create(target.id, target.role)
        password = auth_service.regenerate_password(
            self.db, identity(role="admin"), target.id, hasher=FAST_HASHER, sessions=self.sessions
        )
        self.assertEqual(len(password), 10)
        self.assertFalse(self.sessions.validate(session).valid)
        self.login(password=password)

    def test_regenerate_password_requires_admin(self) -> None:
        target = add_user(self.db)
        with self.assertRaises(AuthorizationError):
            auth_service.regenerate_password(
                self.db,
                identity(target.id, role="manager"),
                target.id,
                hasher=FAST_HASHER,
                sessions=self.sessions,
            )

    def test_deactivate_user(self) -> None:
        target = add_user(self.db)
        session = self.sessions.create(target.id, target.role)
        auth_service.deactivate_user(self.db, identity(role="admin"), target.id, sessions=self.sessions)
        self.db.refresh(target)
        self.assertFalse(target.is_active)
        self.assertFalse(self.sessions.validate(session).valid)
        with self.assertRaises(AuthenticationError):
            self.login()

    def test_deactivate_twice_not_found(self) -> None:
        target = add_user(self.db)
        auth_service.deactivate_user(self.db, identity(role="admin"), target.id, sessions=self.sessions)
        with self.assertRaises(NotFoundError):
            auth_service.deactivate_user(self.db, identity(role="admin"), target.id, sessions=self.sessions)

    def test_deactivate_failure_leaves_user_and_sessions(self) -> None:
        target = add_user(self.db)
        session = self.sessions.create(target.id, target.role)

        with patch(
            "sqlalchemy.orm.Query.update",
            side_effect=OperationalError("UPDATE", {}, Exception("down")),
        ):
            with self.assertRaises(InternalError):
                auth_service.deactivate_user(
                    self.db, identity(role="admin"), target.id, sessions=self.sessions
                )

        stored = self.db.query(AppUser).filter(AppUser.id == target.id).one()
        self.assertTrue(stored.is_active)
        self.assertTrue(self.sessions.validate(session).valid)


if __name__ == "__main__":
    unittest.main()
