"""
Repository over identities, role profiles and departments.

Every write commits immediately. Unique-constraint failures are rolled back
and surfaced as UniqueViolation naming the offending field, so callers can
tell a duplicate email apart from a duplicate student/employee number.
"""
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.models import User, Student, Faculty, Department


class UniqueViolation(Exception):
    """A write hit a unique constraint."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unique constraint violated on {field}")


def max_sequence(numbers: Iterable[str], prefix: str, width: int) -> int:
    """Highest numeric suffix of exactly `width` digits among numbers starting with `prefix`."""
    max_n = 0
    for number in numbers:
        if not number or not number.startswith(prefix):
            continue
        suffix = number[len(prefix):]
        if len(suffix) != width or not suffix.isdigit():
            continue
        max_n = max(max_n, int(suffix))
    return max_n


class IdentityRepository:
    """Transactional CRUD for User, Student, Faculty and Department rows."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, field: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise UniqueViolation(field)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def create_identity(self, **fields) -> User:
        user = User(**fields)
        self.db.add(user)
        self._commit("email")
        return user

    def get_identity(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.get(User, str(user_id))

    def find_identity_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def find_by_verification_token(self, token: str, now: datetime) -> Optional[User]:
        return self.db.query(User).filter(
            User.email_verification_token == token,
            User.email_verification_expires > now,
        ).first()

    def find_by_reset_token(self, token: str, now: datetime) -> Optional[User]:
        return self.db.query(User).filter(
            User.password_reset_token == token,
            User.password_reset_expires > now,
        ).first()

    def save(self, user: User) -> User:
        self.db.add(user)
        self._commit("email")
        return user

    def delete_identity(self, user: User) -> None:
        self.db.delete(user)
        self.db.commit()

    def set_refresh_token(self, user_id: str, token: Optional[str]) -> None:
        self.db.query(User).filter(User.id == user_id).update(
            {User.refresh_token: token}, synchronize_session="fetch"
        )
        self.db.commit()

    def set_password_reset(self, email: str, token: str, expires: datetime) -> int:
        """Store a reset token on the identity with `email`. Returns the matched row count."""
        updated = self.db.query(User).filter(User.email == email).update(
            {User.password_reset_token: token, User.password_reset_expires: expires},
            synchronize_session="fetch",
        )
        self.db.commit()
        return updated

    def swap_refresh_token(self, user_id: str, expected: str, replacement: str) -> bool:
        """
        Compare-and-set the stored refresh token.

        Returns:
            True if the stored token still equalled `expected` and was replaced
        """
        updated = self.db.query(User).filter(
            User.id == user_id,
            User.refresh_token == expected,
        ).update({User.refresh_token: replacement}, synchronize_session="fetch")
        self.db.commit()
        return updated == 1

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def create_student_profile(self, **fields) -> Student:
        student = Student(**fields)
        self.db.add(student)
        self._commit("student_number")
        return student

    def create_faculty_profile(self, **fields) -> Faculty:
        faculty = Faculty(**fields)
        self.db.add(faculty)
        self._commit("employee_number")
        return faculty

    def get_student_profile(self, user_id: str) -> Optional[Student]:
        return self.db.query(Student).filter(Student.user_id == user_id).first()

    def get_faculty_profile(self, user_id: str) -> Optional[Faculty]:
        return self.db.query(Faculty).filter(Faculty.user_id == user_id).first()

    def max_student_sequence(self, prefix: str, width: int) -> int:
        rows = self.db.query(Student.student_number).filter(
            Student.student_number.like(f"{prefix}%")
        ).all()
        return max_sequence((n for (n,) in rows), prefix, width)

    def max_employee_sequence(self, prefix: str, width: int) -> int:
        rows = self.db.query(Faculty.employee_number).filter(
            Faculty.employee_number.like(f"{prefix}%")
        ).all()
        return max_sequence((n for (n,) in rows), prefix, width)

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def get_department(self, department_id: str) -> Optional[Department]:
        if not department_id:
            return None
        return self.db.get(Department, str(department_id))

    def find_department_by_code(self, code: str) -> Optional[Department]:
        return self.db.query(Department).filter(Department.code == code).first()

    def list_active_departments(self) -> List[Department]:
        return (
            self.db.query(Department)
            .filter(Department.is_active.is_(True))
            .order_by(Department.name.asc())
            .all()
        )

    def add_department(self, **fields) -> Department:
        department = Department(**fields)
        self.db.add(department)
        self._commit("code")
        return department

    def save_department(self, department: Department) -> Department:
        self.db.add(department)
        self._commit("code")
        return department
