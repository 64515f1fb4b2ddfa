"""
Account lifecycle tests: registration, verification, authentication and
password reset against a real SQLite store and a frozen clock.
"""

import threading
from datetime import timedelta

import pytest

from passgate.application.services.account_service import AccountService
from passgate.domain.errors import AuthError, AuthErrorKind
from passgate.domain.models import RefreshToken, Role
from passgate.services.password_hasher import PasswordHasher


def _kind(excinfo) -> AuthErrorKind:
    return excinfo.value.kind


class HookedHasher(PasswordHasher):
    """Runs ``hook`` once, just before the next hash is computed."""

    def __init__(self) -> None:
        super().__init__(rounds=4)
        self.hook = None

    def hash(self, password: str) -> str:
        hook, self.hook = self.hook, None
        if hook is not None:
            hook()
        return super().hash(password)


class TestRegister:
    def test_creates_unverified_user_with_verification_token(self, accounts, persistence, clock, mail):
        user = accounts.register("  Alice@Example.COM ", "Passw0rd1")

        stored = persistence.get_user_by_id(user.id)
        assert stored.email == "alice@example.com"
        assert stored.is_verified is False
        assert stored.roles == {Role.USER}
        assert stored.email_verification_token
        assert stored.email_verification_expires_at == clock.now() + timedelta(hours=24)
        assert stored.password_hash != "Passw0rd1"
        assert mail.verification == ["alice@example.com"]

    def test_audit_timestamps_come_from_storage(self, accounts, clock):
        user = accounts.register("alice@example.com", "Passw0rd1")

        assert user.created_at == clock.now()
        assert user.updated_at == clock.now()

    def test_duplicate_email_is_rejected_case_insensitively(self, accounts, mail):
        accounts.register("alice@example.com", "Passw0rd1")

        with pytest.raises(AuthError) as excinfo:
            accounts.register("ALICE@example.com", "Different1")

        assert _kind(excinfo) is AuthErrorKind.EMAIL_ALREADY_EXISTS
        assert mail.verification == ["alice@example.com"]


class TestVerifyEmail:
    def test_marks_user_verified_and_clears_token(self, accounts, persistence):
        user = accounts.register("alice@example.com", "Passw0rd1")

        accounts.verify_email(user.email_verification_token)

        stored = persistence.get_user_by_id(user.id)
        assert stored.is_verified is True
        assert stored.email_verification_token is None
        assert stored.email_verification_expires_at is None

    def test_unknown_token_is_invalid(self, accounts):
        with pytest.raises(AuthError) as excinfo:
            accounts.verify_email("does-not-exist")

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN

    def test_expired_token_does_not_verify(self, accounts, persistence, clock):
        user = accounts.register("alice@example.com", "Passw0rd1")
        clock.advance(hours=24, seconds=1)

        with pytest.raises(AuthError) as excinfo:
            accounts.verify_email(user.email_verification_token)

        assert _kind(excinfo) is AuthErrorKind.TOKEN_EXPIRED
        stored = persistence.get_user_by_id(user.id)
        assert stored.is_verified is False
        assert stored.email_verification_token == user.email_verification_token

    def test_token_valid_at_exact_expiry(self, accounts, persistence, clock):
        user = accounts.register("alice@example.com", "Passw0rd1")
        clock.advance(hours=24)

        accounts.verify_email(user.email_verification_token)

        assert persistence.get_user_by_id(user.id).is_verified is True

    def test_token_without_expiry_is_invalid(self, accounts, persistence):
        user = accounts.register("alice@example.com", "Passw0rd1")
        user.email_verification_expires_at = None
        persistence.save_user(user)

        with pytest.raises(AuthError) as excinfo:
            accounts.verify_email(user.email_verification_token)

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN

    def test_already_verified_user_is_a_no_op(self, accounts, persistence, clock):
        user = accounts.register("alice@example.com", "Passw0rd1")
        # token kept around while the flag is already set
        user.is_verified = True
        persistence.save_user(user)
        before = persistence.get_user_by_id(user.id).updated_at
        clock.advance(days=3)

        accounts.verify_email(user.email_verification_token)

        stored = persistence.get_user_by_id(user.id)
        assert stored.updated_at == before
        assert stored.email_verification_token == user.email_verification_token


class TestAuthenticate:
    def test_returns_verified_user(self, accounts, verified_user):
        user = accounts.authenticate(" ALICE@example.com", "Passw0rd1")

        assert user.id == verified_user.id

    def test_unverified_account_is_rejected(self, accounts):
        accounts.register("bob@example.com", "Passw0rd1")

        with pytest.raises(AuthError) as excinfo:
            accounts.authenticate("bob@example.com", "Passw0rd1")

        assert _kind(excinfo) is AuthErrorKind.ACCOUNT_NOT_VERIFIED

    def test_unknown_user_and_wrong_password_look_the_same(self, accounts, verified_user):
        with pytest.raises(AuthError) as unknown:
            accounts.authenticate("nobody@example.com", "Passw0rd1")
        with pytest.raises(AuthError) as wrong:
            accounts.authenticate("alice@example.com", "WrongPass1")

        assert _kind(unknown) is _kind(wrong) is AuthErrorKind.BAD_CREDENTIALS
        assert unknown.value.message == wrong.value.message

    def test_wrong_password_on_unverified_account_is_bad_credentials(self, accounts):
        accounts.register("bob@example.com", "Passw0rd1")

        with pytest.raises(AuthError) as excinfo:
            accounts.authenticate("bob@example.com", "WrongPass1")

        assert _kind(excinfo) is AuthErrorKind.BAD_CREDENTIALS


class TestPasswordReset:
    def test_unknown_email_is_silent(self, accounts, mail):
        accounts.initiate_password_reset("nonexistent@x.test")

        assert mail.password_reset == []

    def test_initiate_sets_one_hour_token_and_sends_email(self, accounts, persistence, verified_user, clock, mail):
        accounts.initiate_password_reset("Alice@Example.com")

        stored = persistence.get_user_by_id(verified_user.id)
        assert stored.password_reset_token
        assert stored.password_reset_expires_at == clock.now() + timedelta(hours=1)
        assert mail.password_reset == ["alice@example.com"]

    def test_finalize_changes_password_and_revokes_refresh_tokens(
        self, accounts, persistence, refresh_tokens, verified_user
    ):
        refresh_tokens.create_refresh_token(verified_user)
        accounts.initiate_password_reset("alice@example.com")
        token = persistence.get_user_by_id(verified_user.id).password_reset_token

        accounts.finalize_password_reset(token, "NewPassw0rd")

        stored = persistence.get_user_by_id(verified_user.id)
        assert stored.password_reset_token is None
        assert stored.password_reset_expires_at is None
        assert persistence.get_refresh_token_for_user(verified_user.id) is None
        assert accounts.authenticate("alice@example.com", "NewPassw0rd").id == verified_user.id
        with pytest.raises(AuthError):
            accounts.authenticate("alice@example.com", "Passw0rd1")

    def test_finalize_with_unknown_token_is_invalid(self, accounts):
        with pytest.raises(AuthError) as excinfo:
            accounts.finalize_password_reset("nope", "NewPassw0rd")

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN

    def test_finalize_with_expired_token_leaves_state_untouched(
        self, accounts, persistence, refresh_tokens, verified_user, clock
    ):
        refresh_tokens.create_refresh_token(verified_user)
        accounts.initiate_password_reset("alice@example.com")
        token = persistence.get_user_by_id(verified_user.id).password_reset_token
        clock.advance(hours=1, seconds=1)

        with pytest.raises(AuthError) as excinfo:
            accounts.finalize_password_reset(token, "NewPassw0rd")

        assert _kind(excinfo) is AuthErrorKind.TOKEN_EXPIRED
        stored = persistence.get_user_by_id(verified_user.id)
        assert stored.password_reset_token == token
        assert isinstance(persistence.get_refresh_token_for_user(verified_user.id), RefreshToken)
        assert accounts.authenticate("alice@example.com", "Passw0rd1").id == verified_user.id

    def test_reset_token_is_single_use(self, accounts, persistence, verified_user):
        accounts.initiate_password_reset("alice@example.com")
        token = persistence.get_user_by_id(verified_user.id).password_reset_token
        accounts.finalize_password_reset(token, "NewPassw0rd")

        with pytest.raises(AuthError) as excinfo:
            accounts.finalize_password_reset(token, "Another0ne")

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN


class TestResolveIdentity:
    def test_unknown_subject_is_invalid_token(self, accounts, signer, clock):
        claims = signer.parse(signer.issue_access_token("ghost@example.com", ["USER"], clock.now()))

        with pytest.raises(AuthError) as excinfo:
            accounts.resolve_identity(claims)

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN


class TestDefaultAdmin:
    def test_creates_verified_admin_once(self, accounts, persistence):
        admin = accounts.ensure_default_admin("Root@Example.com", "Adm1nPass")
        again = accounts.ensure_default_admin("root@example.com", "Other1234")

        assert again.id == admin.id
        stored = persistence.get_user_by_email("root@example.com")
        assert stored.roles == {Role.USER, Role.ADMIN}
        assert stored.is_verified is True
        assert accounts.authenticate("root@example.com", "Adm1nPass").id == admin.id

    def test_missing_credentials_skip_creation(self, accounts, persistence):
        assert accounts.ensure_default_admin(None, "Adm1nPass") is None
        assert accounts.ensure_default_admin("root@example.com", "") is None
        assert persistence.get_user_by_email("root@example.com") is None


class TestConcurrentWrites:
    @pytest.fixture
    def hooked_hasher(self) -> HookedHasher:
        return HookedHasher()

    @pytest.fixture
    def hooked_accounts(self, persistence, hooked_hasher, mail, refresh_tokens, clock):
        return AccountService(persistence, hooked_hasher, mail, refresh_tokens, clock)

    def test_reset_request_keeps_verification_made_meanwhile(self, accounts, persistence, monkeypatch):
        user = accounts.register("alice@example.com", "Passw0rd1")
        verifier = threading.Thread(
            target=accounts.verify_email, args=(user.email_verification_token,)
        )
        lookup = persistence.get_user_by_email

        def lookup_then_verify(email):
            found = lookup(email)
            verifier.start()
            verifier.join(timeout=0.2)
            return found

        monkeypatch.setattr(persistence, "get_user_by_email", lookup_then_verify)
        accounts.initiate_password_reset("alice@example.com")
        verifier.join()

        stored = persistence.get_user_by_id(user.id)
        assert stored.is_verified is True
        assert stored.email_verification_token is None
        assert stored.password_reset_token is not None

    def test_verification_keeps_reset_token_issued_meanwhile(self, accounts, persistence, monkeypatch):
        user = accounts.register("alice@example.com", "Passw0rd1")
        requester = threading.Thread(
            target=accounts.initiate_password_reset, args=("alice@example.com",)
        )
        lookup = persistence.get_user_by_verification_token

        def lookup_then_request_reset(token):
            found = lookup(token)
            requester.start()
            requester.join(timeout=0.2)
            return found

        monkeypatch.setattr(persistence, "get_user_by_verification_token", lookup_then_request_reset)
        accounts.verify_email(user.email_verification_token)
        requester.join()

        stored = persistence.get_user_by_id(user.id)
        assert stored.is_verified is True
        assert stored.password_reset_token is not None

    def test_reset_token_is_consumed_once_under_contention(
        self, hooked_accounts, hooked_hasher, persistence
    ):
        user = hooked_accounts.register("alice@example.com", "Passw0rd1")
        hooked_accounts.verify_email(user.email_verification_token)
        hooked_accounts.initiate_password_reset("alice@example.com")
        token = persistence.get_user_by_id(user.id).password_reset_token
        hooked_hasher.hook = lambda: hooked_accounts.finalize_password_reset(token, "Competing9")

        with pytest.raises(AuthError) as excinfo:
            hooked_accounts.finalize_password_reset(token, "NewPassw0rd")

        assert _kind(excinfo) is AuthErrorKind.INVALID_TOKEN
        assert hooked_accounts.authenticate("alice@example.com", "Competing9").id == user.id
        with pytest.raises(AuthError):
            hooked_accounts.authenticate("alice@example.com", "NewPassw0rd")

    def test_simultaneous_registration_reports_existing_email(
        self, hooked_accounts, hooked_hasher, persistence, mail
    ):
        hooked_hasher.hook = lambda: hooked_accounts.register("alice@example.com", "Other1234")

        with pytest.raises(AuthError) as excinfo:
            hooked_accounts.register("Alice@example.com", "Passw0rd1")

        assert _kind(excinfo) is AuthErrorKind.EMAIL_ALREADY_EXISTS
        assert mail.verification == ["alice@example.com"]
        stored = persistence.get_user_by_email("alice@example.com")
        assert hooked_hasher.matches("Other1234", stored.password_hash)
