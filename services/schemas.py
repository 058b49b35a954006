"""
Pydantic models for auth inputs and the sanitized views returned to callers.

Output models never declare password, token or expiry fields, so those
values cannot leak into a response even by accident. JSON uses camelCase.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


# ORM columns hold enum members; responses carry their plain values
EnumStr = Annotated[str, BeforeValidator(_enum_value)]

# Surrounding whitespace is dropped before the length check
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Inputs
# ============================================================================

class RegisterRequest(CamelModel):
    """Registration input for students and faculty."""
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: Name
    last_name: Name
    role: Literal["student", "faculty"]
    department_id: str
    phone: Optional[str] = None
    # Student
    enrollment_year: Optional[int] = Field(default=None, ge=1900, le=2999)
    student_number: Optional[str] = None
    # Faculty
    title: Optional[
        Literal["professor", "associate_professor", "assistant_professor", "lecturer", "research_assistant"]
    ] = None
    employee_number: Optional[str] = None
    office_location: Optional[str] = None
    office_hours: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenRequest(CamelModel):
    token: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


class ProfileUpdate(CamelModel):
    """Only these fields are mutable through the profile endpoint."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None


# ============================================================================
# Outputs
# ============================================================================

class DepartmentPublic(CamelModel):
    id: str
    name: str
    code: str
    description: Optional[str] = None


class UserPublic(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: EnumStr
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    is_active: bool
    is_email_verified: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StudentProfilePublic(CamelModel):
    id: str
    student_number: str
    department_id: str
    enrollment_year: int
    gpa: float
    is_scholarship: bool
    wallet_balance: float
    department: Optional[DepartmentPublic] = None


class FacultyProfilePublic(CamelModel):
    id: str
    employee_number: str
    department_id: str
    title: EnumStr
    office_location: Optional[str] = None
    office_hours: Optional[str] = None
    department: Optional[DepartmentPublic] = None


class ProfilePublic(UserPublic):
    student_profile: Optional[StudentProfilePublic] = None
    faculty_profile: Optional[FacultyProfilePublic] = None


class TokenPairPublic(CamelModel):
    access_token: str
    refresh_token: str


class LoginResult(TokenPairPublic):
    user: UserPublic
