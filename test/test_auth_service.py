"""Tests for AuthService: registration, verification, sessions, password
reset and profile maintenance."""

from datetime import timedelta

import pytest

from auth.errors import (
    DepartmentInactiveError,
    DepartmentNotFoundError,
    DuplicateEmailError,
    DuplicateIdentifierError,
    ErrorKind,
    IdentifierExhaustedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidRefreshTokenError,
    NotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from auth.security import ACCESS, REFRESH
from core.utils import utcnow
from database.models import FacultyTitle, UserRole
from services.auth_service import FORGOT_PASSWORD_MESSAGE, AuthService


class TestRegister:
    """Tests for register()."""

    def test_register_student(self, auth_service, repository, hasher, gateway, student_data) -> None:
        """Test that a student registration creates an unverified identity and a CS24#### profile."""
        user = auth_service.register(student_data)

        assert user.email == "a@test.com"
        assert user.role == "student"
        assert user.is_email_verified is False
        assert user.is_active is True

        stored = repository.get_identity(user.id)
        assert stored.password != "password123"
        assert hasher.verify("password123", stored.password)
        assert stored.email_verification_token
        assert stored.email_verification_expires > utcnow() + timedelta(hours=23)

        profile = repository.get_student_profile(user.id)
        assert profile.student_number == "CS240001"
        assert profile.enrollment_year == 2024
        assert gateway.verifications == [("a@test.com", stored.email_verification_token)]

    def test_public_view_has_no_secrets(self, auth_service, student_data) -> None:
        """Test that the returned representation excludes password and token fields."""
        dumped = auth_service.register(student_data).model_dump(by_alias=True)

        for field in ("password", "refreshToken", "emailVerificationToken", "passwordResetToken"):
            assert field not in dumped

    def test_register_faculty(self, auth_service, repository, faculty_data) -> None:
        """Test that a faculty registration creates a CS##### employee number."""
        user = auth_service.register(faculty_data)

        profile = repository.get_faculty_profile(user.id)
        assert user.role == "faculty"
        assert profile.employee_number == "CS00001"
        assert profile.title == FacultyTitle.PROFESSOR

    def test_faculty_title_defaults_to_lecturer(self, auth_service, repository, faculty_data) -> None:
        """Test that an omitted title becomes lecturer."""
        del faculty_data["title"]

        user = auth_service.register(faculty_data)

        assert repository.get_faculty_profile(user.id).title == FacultyTitle.LECTURER

    def test_enrollment_year_defaults_to_current_year(self, auth_service, repository, student_data) -> None:
        """Test that an omitted enrollment year uses the current year."""
        del student_data["enrollmentYear"]
        year = utcnow().year

        user = auth_service.register(student_data)

        profile = repository.get_student_profile(user.id)
        assert profile.enrollment_year == year
        assert profile.student_number == f"CS{year % 100:02d}0001"

    def test_sequential_student_numbers(self, auth_service, repository, student_data) -> None:
        """Test that two students in the same department and year get consecutive numbers."""
        first = auth_service.register(student_data)
        second = auth_service.register({**student_data, "email": "b@test.com"})

        assert repository.get_student_profile(first.id).student_number == "CS240001"
        assert repository.get_student_profile(second.id).student_number == "CS240002"

    def test_email_is_normalized(self, auth_service, student_data) -> None:
        """Test that email is stored lower-cased and duplicates ignore case."""
        user = auth_service.register({**student_data, "email": "Mixed.Case@Test.com"})

        assert user.email == "mixed.case@test.com"
        with pytest.raises(DuplicateEmailError):
            auth_service.register({**student_data, "email": "MIXED.case@test.com"})

    def test_duplicate_email(self, auth_service, student_data) -> None:
        """Test that a second registration with the same email fails."""
        auth_service.register(student_data)

        with pytest.raises(DuplicateEmailError) as exc_info:
            auth_service.register(student_data)

        assert exc_info.value.message == "An account with this email already exists"

    def test_unknown_department(self, auth_service, student_data) -> None:
        """Test that a department id that resolves to nothing fails."""
        with pytest.raises(DepartmentNotFoundError) as exc_info:
            auth_service.register({**student_data, "departmentId": "missing"})

        assert exc_info.value.message == "Selected department not found"

    def test_inactive_department(self, auth_service, repository, departments, student_data) -> None:
        """Test that an inactive department is rejected and nothing is created."""
        with pytest.raises(DepartmentInactiveError):
            auth_service.register({**student_data, "departmentId": departments["OLD"].id})

        assert repository.find_identity_by_email("a@test.com") is None

    def test_duplicate_explicit_student_number_leaves_no_orphan(
        self, auth_service, repository, student_data
    ) -> None:
        """Test that a taken explicit student number fails and the new identity is removed."""
        auth_service.register({**student_data, "studentNumber": "CS249999"})

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            auth_service.register({**student_data, "email": "b@test.com", "studentNumber": "CS249999"})

        assert exc_info.value.message == "This student number is already in use"
        assert repository.find_identity_by_email("b@test.com") is None

    def test_duplicate_explicit_employee_number_leaves_no_orphan(
        self, auth_service, repository, faculty_data
    ) -> None:
        """Test the same compensation for faculty employee numbers."""
        auth_service.register({**faculty_data, "employeeNumber": "EMP1"})

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            auth_service.register({**faculty_data, "email": "other@test.com", "employeeNumber": "EMP1"})

        assert exc_info.value.message == "This employee number is already in use"
        assert repository.find_identity_by_email("other@test.com") is None

    def test_identifier_exhaustion_leaves_no_orphan(
        self, repository, hasher, tokens, notifier, student_data
    ) -> None:
        """Test that running out of identifier retries removes the identity too."""
        service = AuthService(repository, hasher, tokens, notifier, identifier_max_attempts=0)

        with pytest.raises(IdentifierExhaustedError):
            service.register(student_data)

        assert repository.find_identity_by_email("a@test.com") is None

    def test_names_are_stripped(self, auth_service, repository, student_data) -> None:
        """Test that surrounding whitespace is removed from names."""
        user = auth_service.register({**student_data, "firstName": "  Ada ", "lastName": " Lovelace  "})

        stored = repository.get_identity(user.id)
        assert (stored.first_name, stored.last_name) == ("Ada", "Lovelace")

    @pytest.mark.parametrize("field", ["firstName", "lastName"])
    def test_blank_name_rejected(self, auth_service, repository, student_data, field) -> None:
        """Test that a whitespace-only name fails like it does on profile update."""
        with pytest.raises(ValidationError):
            auth_service.register({**student_data, field: "   "})

        assert repository.find_identity_by_email("a@test.com") is None

    def test_blank_student_number_is_generated(self, auth_service, repository, student_data) -> None:
        """Test that a whitespace-only student number is treated as omitted."""
        first = auth_service.register({**student_data, "studentNumber": "   "})
        second = auth_service.register({**student_data, "email": "b@test.com", "studentNumber": ""})

        assert repository.get_student_profile(first.id).student_number == "CS240001"
        assert repository.get_student_profile(second.id).student_number == "CS240002"

    def test_blank_employee_number_is_generated(self, auth_service, repository, faculty_data) -> None:
        """Test that a whitespace-only employee number is treated as omitted."""
        user = auth_service.register({**faculty_data, "employeeNumber": " \t "})

        assert repository.get_faculty_profile(user.id).employee_number == "CS00001"

    def test_explicit_student_number_is_stripped(self, auth_service, repository, student_data) -> None:
        """Test that an explicit student number is stored without padding."""
        user = auth_service.register({**student_data, "studentNumber": " CS249999 "})

        assert repository.get_student_profile(user.id).student_number == "CS249999"

    def test_admin_cannot_self_register(self, auth_service, student_data) -> None:
        """Test that the admin role is not accepted at registration."""
        with pytest.raises(ValidationError):
            auth_service.register({**student_data, "role": "admin"})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"password": "12345"},
            {"email": "not-an-email"},
            {"firstName": ""},
            {"title": "emperor", "role": "faculty"},
        ],
    )
    def test_invalid_input(self, auth_service, student_data, overrides) -> None:
        """Test that malformed input surfaces as ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            auth_service.register({**student_data, **overrides})

        assert exc_info.value.kind == ErrorKind.VALIDATION_ERROR

    def test_email_failure_does_not_fail_registration(self, auth_service, repository, gateway, student_data) -> None:
        """Test that a raising email gateway is swallowed."""
        gateway.fail = True

        user = auth_service.register(student_data)

        assert repository.get_identity(user.id) is not None
        assert gateway.verifications == []


class TestVerifyEmail:
    """Tests for verify_email()."""

    def test_verify_once(self, auth_service, repository, gateway, student_data) -> None:
        """Test that a verification token works exactly once."""
        user = auth_service.register(student_data)
        token = gateway.verifications[0][1]

        verified = auth_service.verify_email(token)

        assert verified.is_email_verified is True
        stored = repository.get_identity(user.id)
        assert stored.email_verification_token is None
        assert stored.email_verification_expires is None

        with pytest.raises(InvalidOrExpiredTokenError) as exc_info:
            auth_service.verify_email(token)
        assert exc_info.value.message == "Invalid or expired verification token"

    def test_expired_token(self, auth_service, repository, gateway, student_data) -> None:
        """Test that an expired token is rejected with the same message as a wrong one."""
        user = auth_service.register(student_data)
        token = gateway.verifications[0][1]
        stored = repository.get_identity(user.id)
        stored.email_verification_expires = utcnow() - timedelta(minutes=1)
        repository.save(stored)

        with pytest.raises(InvalidOrExpiredTokenError) as expired:
            auth_service.verify_email(token)
        with pytest.raises(InvalidOrExpiredTokenError) as wrong:
            auth_service.verify_email("not-a-token")

        assert expired.value.message == wrong.value.message

    def test_empty_token(self, auth_service) -> None:
        """Test that an empty token never matches."""
        with pytest.raises(InvalidOrExpiredTokenError):
            auth_service.verify_email("")


class TestLogin:
    """Tests for login()."""

    def test_login_returns_pair_for_same_identity(self, auth_service, repository, tokens, student_data) -> None:
        """Test that both tokens decode to the logged-in identity and the refresh token is stored."""
        user = auth_service.register(student_data)

        result = auth_service.login("a@test.com", "password123")

        assert result.user.id == user.id
        assert tokens.verify(result.access_token, ACCESS) == user.id
        assert tokens.verify(result.refresh_token, REFRESH) == user.id
        assert repository.get_identity(user.id).refresh_token == result.refresh_token

    def test_login_does_not_require_verified_email(self, auth_service, student_data) -> None:
        """Test that an unverified account can log in."""
        auth_service.register(student_data)

        assert auth_service.login("a@test.com", "password123").user.is_email_verified is False

    def test_login_email_is_case_insensitive(self, auth_service, student_data) -> None:
        """Test login with differently-cased email."""
        auth_service.register(student_data)

        assert auth_service.login("A@Test.com", "password123")

    def test_failures_are_indistinguishable(self, auth_service, repository, student_data) -> None:
        """Test that wrong password, unknown email and inactive account share one message."""
        user = auth_service.register(student_data)
        messages = []

        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("a@test.com", "wrong-password")
        messages.append(exc_info.value.message)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("nobody@test.com", "password123")
        messages.append(exc_info.value.message)

        stored = repository.get_identity(user.id)
        stored.is_active = False
        repository.save(stored)
        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("a@test.com", "password123")
        messages.append(exc_info.value.message)

        assert messages == ["Invalid credentials"] * 3

    def test_new_login_replaces_previous_session(self, auth_service, student_data) -> None:
        """Test that a second login revokes the first refresh token."""
        auth_service.register(student_data)
        first = auth_service.login("a@test.com", "password123")
        auth_service.login("a@test.com", "password123")

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(first.refresh_token)


class TestRefreshToken:
    """Tests for refresh_token() rotation."""

    @pytest.fixture
    def session_tokens(self, auth_service, student_data):
        auth_service.register(student_data)
        return auth_service.login("a@test.com", "password123")

    def test_rotation(self, auth_service, repository, tokens, session_tokens) -> None:
        """Test that refresh returns a new pair and stores the new refresh token."""
        pair = auth_service.refresh_token(session_tokens.refresh_token)

        assert pair.refresh_token != session_tokens.refresh_token
        user_id = tokens.verify(pair.access_token, ACCESS)
        assert repository.get_identity(user_id).refresh_token == pair.refresh_token

    def test_reuse_of_rotated_token_fails(self, auth_service, session_tokens) -> None:
        """Test that the old refresh token stops working after one use."""
        auth_service.refresh_token(session_tokens.refresh_token)

        with pytest.raises(InvalidRefreshTokenError) as exc_info:
            auth_service.refresh_token(session_tokens.refresh_token)

        assert exc_info.value.message == "Invalid refresh token"

    def test_lost_compare_and_set_fails(self, auth_service, repository, session_tokens, monkeypatch) -> None:
        """Test that losing a concurrent rotation race fails even though the read matched."""
        monkeypatch.setattr(repository, "swap_refresh_token", lambda *args: False)

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(session_tokens.refresh_token)

    def test_access_token_is_not_a_refresh_token(self, auth_service, session_tokens) -> None:
        """Test that presenting an access token fails."""
        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(session_tokens.access_token)

    def test_expired_refresh_token(self, auth_service, repository, tokens, session_tokens) -> None:
        """Test that an expired refresh token fails even if stored."""
        user_id = tokens.verify(session_tokens.access_token, ACCESS)
        expired = tokens.issue_refresh_token(user_id, expires_delta=timedelta(seconds=-5))
        repository.set_refresh_token(user_id, expired)

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(expired)

    def test_inactive_identity(self, auth_service, repository, tokens, session_tokens) -> None:
        """Test that a deactivated account cannot refresh."""
        user = repository.get_identity(tokens.verify(session_tokens.access_token, ACCESS))
        user.is_active = False
        repository.save(user)

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(session_tokens.refresh_token)

    def test_garbage_token(self, auth_service) -> None:
        """Test that an undecodable token fails."""
        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token("garbage")

    def test_non_ascii_token(self, auth_service, session_tokens) -> None:
        """Test that a token with non-ASCII characters in its signature fails cleanly."""
        header, payload, signature = session_tokens.refresh_token.split(".")
        middle = len(signature) // 2
        tampered = f"{header}.{payload}.{signature[:middle]}éé{signature[middle:]}"

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(tampered)

        # The real token is untouched
        assert auth_service.refresh_token(session_tokens.refresh_token).refresh_token


class TestLogout:
    """Tests for logout()."""

    def test_logout_clears_refresh_token(self, auth_service, repository, student_data) -> None:
        """Test that logout revokes the session and is idempotent."""
        user = auth_service.register(student_data)
        result = auth_service.login("a@test.com", "password123")

        assert auth_service.logout(user.id) == {"message": "Logged out successfully"}
        assert auth_service.logout(user.id) == {"message": "Logged out successfully"}

        assert repository.get_identity(user.id).refresh_token is None
        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh_token(result.refresh_token)


class TestAuthenticate:
    """Tests for authenticate()."""

    def test_valid_access_token(self, auth_service, tokens, student_data) -> None:
        """Test that a valid access token resolves to the identity."""
        user = auth_service.register(student_data)

        assert auth_service.authenticate(tokens.issue_access_token(user.id)).id == user.id

    def test_expired_access_token(self, auth_service, tokens, student_data) -> None:
        """Test that an expired access token is reported as expired."""
        user = auth_service.register(student_data)
        token = tokens.issue_access_token(user.id, expires_delta=timedelta(seconds=-5))

        with pytest.raises(TokenExpiredError):
            auth_service.authenticate(token)

    def test_unknown_identity(self, auth_service, tokens) -> None:
        """Test that a token for a missing identity is invalid."""
        with pytest.raises(TokenInvalidError):
            auth_service.authenticate(tokens.issue_access_token("no-such-user"))


class TestPasswordReset:
    """Tests for forgot_password() and reset_password()."""

    def test_forgot_password_same_message(self, auth_service, gateway, student_data) -> None:
        """Test that existing and unknown emails get identical replies."""
        auth_service.register(student_data)

        existing = auth_service.forgot_password("a@test.com")
        unknown = auth_service.forgot_password("nobody@test.com")

        assert existing == unknown == {"message": FORGOT_PASSWORD_MESSAGE}
        assert [email for email, _ in gateway.resets] == ["a@test.com"]

    def test_forgot_password_writes_for_unknown_email(self, auth_service, repository, monkeypatch) -> None:
        """Test that an unknown email runs the same reset write as a known one."""
        calls = []
        original = repository.set_password_reset

        def record(email, token, expires):
            matched = original(email, token, expires)
            calls.append((email, matched))
            return matched

        monkeypatch.setattr(repository, "set_password_reset", record)

        auth_service.forgot_password(" Nobody@Test.com ")

        assert calls == [("nobody@test.com", 0)]

    def test_reset_token_expiry_is_one_hour(self, auth_service, repository, student_data) -> None:
        """Test that a reset token is stored with a one-hour expiry."""
        user = auth_service.register(student_data)

        auth_service.forgot_password("a@test.com")

        stored = repository.get_identity(user.id)
        assert stored.password_reset_token
        assert utcnow() + timedelta(minutes=55) < stored.password_reset_expires <= utcnow() + timedelta(hours=1)

    def test_reset_password(self, auth_service, repository, gateway, student_data) -> None:
        """Test that a reset sets the new password and clears the reset fields."""
        user = auth_service.register(student_data)
        auth_service.forgot_password("a@test.com")
        token = gateway.resets[0][1]

        assert auth_service.reset_password(token, "new-password") == {"message": "Password reset successfully"}

        stored = repository.get_identity(user.id)
        assert stored.password_reset_token is None
        assert stored.password_reset_expires is None
        assert auth_service.login("a@test.com", "new-password")
        with pytest.raises(InvalidCredentialsError):
            auth_service.login("a@test.com", "password123")
        with pytest.raises(InvalidOrExpiredTokenError):
            auth_service.reset_password(token, "another-password")

    def test_expired_reset_token(self, auth_service, repository, gateway, student_data) -> None:
        """Test that an exactly-matching but expired reset token fails."""
        user = auth_service.register(student_data)
        auth_service.forgot_password("a@test.com")
        token = gateway.resets[0][1]
        stored = repository.get_identity(user.id)
        stored.password_reset_expires = utcnow() - timedelta(seconds=1)
        repository.save(stored)

        with pytest.raises(InvalidOrExpiredTokenError) as exc_info:
            auth_service.reset_password(token, "new-password")

        assert exc_info.value.message == "Invalid or expired reset token"

    def test_reset_rejects_short_password(self, auth_service) -> None:
        """Test that the new password must be at least six characters."""
        with pytest.raises(ValidationError):
            auth_service.reset_password("any-token", "12345")

    def test_email_failure_is_swallowed(self, auth_service, gateway, student_data) -> None:
        """Test that a failing gateway does not change the reply."""
        auth_service.register(student_data)
        gateway.fail = True

        assert auth_service.forgot_password("a@test.com") == {"message": FORGOT_PASSWORD_MESSAGE}


class TestProfile:
    """Tests for get_profile(), update_profile() and update_profile_picture()."""

    def test_student_profile_view(self, auth_service, student_data) -> None:
        """Test that the profile includes the student profile and its department."""
        user = auth_service.register(student_data)

        profile = auth_service.get_profile(user.id)

        assert profile.faculty_profile is None
        assert profile.student_profile.student_number == "CS240001"
        assert profile.student_profile.department.code == "CS"

    def test_faculty_profile_view(self, auth_service, faculty_data) -> None:
        """Test that the profile includes the faculty profile."""
        user = auth_service.register(faculty_data)

        profile = auth_service.get_profile(user.id)

        assert profile.student_profile is None
        assert profile.faculty_profile.employee_number == "CS00001"
        assert profile.faculty_profile.title == "professor"

    def test_missing_identity(self, auth_service) -> None:
        """Test that an unknown id fails NotFound."""
        with pytest.raises(NotFoundError) as exc_info:
            auth_service.get_profile("missing")

        assert exc_info.value.message == "User not found"

    def test_update_profile_whitelist(self, auth_service, repository, hasher, student_data) -> None:
        """Test that email and password in the patch are ignored."""
        user = auth_service.register(student_data)

        updated = auth_service.update_profile(user.id, {
            "email": "new@x.com",
            "password": "hijacked",
            "role": "admin",
            "firstName": "Augusta",
            "phone": "555-0100",
        })

        stored = repository.get_identity(user.id)
        assert updated.email == "a@test.com"
        assert stored.email == "a@test.com"
        assert stored.role == UserRole.STUDENT
        assert hasher.verify("password123", stored.password)
        assert stored.first_name == "Augusta"
        assert stored.last_name == "Lovelace"
        assert stored.phone == "555-0100"

    def test_update_profile_rejects_blank_name(self, auth_service, student_data) -> None:
        """Test that a whitespace-only name is rejected."""
        user = auth_service.register(student_data)

        with pytest.raises(ValidationError):
            auth_service.update_profile(user.id, {"lastName": "   "})

    def test_update_missing_identity(self, auth_service) -> None:
        """Test that updating an unknown id fails NotFound."""
        with pytest.raises(NotFoundError):
            auth_service.update_profile("missing", {"firstName": "X"})

    def test_picture_replaces_and_removes_old_file(self, auth_service, file_store, student_data) -> None:
        """Test that a new picture removes the previous file."""
        user = auth_service.register(student_data)
        file_store.save("old.png", b"old")
        file_store.save("new.png", b"new")

        auth_service.update_profile_picture(user.id, "old.png")
        updated = auth_service.update_profile_picture(user.id, "new.png")

        assert updated.profile_picture == "new.png"
        assert not file_store.exists("old.png")
        assert file_store.exists("new.png")

    def test_picture_same_name_is_kept(self, auth_service, file_store, student_data) -> None:
        """Test that re-setting the same filename does not delete it."""
        user = auth_service.register(student_data)
        file_store.save("same.png", b"data")

        auth_service.update_profile_picture(user.id, "same.png")
        auth_service.update_profile_picture(user.id, "same.png")

        assert file_store.exists("same.png")

    def test_picture_missing_old_file_is_ignored(self, auth_service, student_data) -> None:
        """Test that a previous filename without a backing file does not block the update."""
        user = auth_service.register(student_data)
        auth_service.update_profile_picture(user.id, "gone.png")

        updated = auth_service.update_profile_picture(user.id, "fresh.png")

        assert updated.profile_picture == "fresh.png"

    def test_picture_delete_failure_is_ignored(self, auth_service, file_store, student_data, monkeypatch) -> None:
        """Test that a failing delete of the old file never blocks the update."""
        user = auth_service.register(student_data)
        file_store.save("old.png", b"old")
        auth_service.update_profile_picture(user.id, "old.png")

        def fail(filename):
            raise PermissionError("read-only filesystem")

        monkeypatch.setattr(file_store, "delete", fail)

        updated = auth_service.update_profile_picture(user.id, "new.png")

        assert updated.profile_picture == "new.png"
