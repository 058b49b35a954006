"""
Database models for the campus management backend.
"""
import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric,
    ForeignKey, Index, TypeDecorator
)
from sqlalchemy.orm import declarative_base, relationship
import enum

from core.utils import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums - Must be defined before models that use them
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles for authorization."""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class FacultyTitle(str, enum.Enum):
    """Academic ranks for faculty members."""
    PROFESSOR = "professor"
    ASSOCIATE_PROFESSOR = "associate_professor"
    ASSISTANT_PROFESSOR = "assistant_professor"
    LECTURER = "lecturer"
    RESEARCH_ASSISTANT = "research_assistant"


# ============================================================================
# Models
# ============================================================================

class Department(Base):
    """Academic department (reference data, seeded externally)."""
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False)  # Prefix for student/employee numbers
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    students = relationship("Student", back_populates="department")
    faculty_members = relationship("Faculty", back_populates="department")

    __table_args__ = (
        Index('idx_department_active', 'is_active'),
    )


class User(Base):
    """Identity: one account per person (credential, role, status)."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)  # Stored lower-cased
    password = Column(String(255), nullable=False)  # bcrypt digest, never plaintext
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(EnumValue(UserRole, 20), nullable=False)
    phone = Column(String(50), nullable=True)
    profile_picture = Column(String(255), nullable=True)  # Stored filename

    # Status flags
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)

    # Token/expiry pairs are always set and cleared together
    email_verification_token = Column(String(255), nullable=True, index=True)
    email_verification_expires = Column(DateTime, nullable=True)
    password_reset_token = Column(String(255), nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)

    # At most one live refresh token per identity
    refresh_token = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student_profile = relationship(
        "Student", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    faculty_profile = relationship(
        "Faculty", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_user_role', 'role'),
    )


class Student(Base):
    """Student profile, exactly one per student identity."""
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    student_number = Column(String(50), unique=True, nullable=False)  # <DeptCode><YY><4-digit seq>
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=False)
    enrollment_year = Column(Integer, nullable=False)
    gpa = Column(Numeric(3, 2), default=0, nullable=False)
    is_scholarship = Column(Boolean, default=False, nullable=False)
    wallet_balance = Column(Numeric(10, 2), default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="student_profile")
    department = relationship("Department", back_populates="students")

    __table_args__ = (
        Index('idx_student_department', 'department_id'),
    )


class Faculty(Base):
    """Faculty profile, exactly one per faculty identity."""
    __tablename__ = "faculty"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    employee_number = Column(String(50), unique=True, nullable=False)  # <DeptCode><5-digit seq>
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=False)
    title = Column(EnumValue(FacultyTitle, 50), nullable=False)
    office_location = Column(String(255), nullable=True)
    office_hours = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="faculty_profile")
    department = relationship("Department", back_populates="faculty_members")

    __table_args__ = (
        Index('idx_faculty_department', 'department_id'),
    )
