"""Identity domain schemas - Pydantic models for validation"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import Account, AccountRole, AdminProfile, DoctorProfile
from ...shared.validators import validate_email, validate_phone


@dataclass(frozen=True)
class ResolvedRole:
    """
    Tagged view of an account: the role discriminant plus the matching profile.

    profile is None for plain users, a DoctorProfile for doctors and an
    AdminProfile for admins.
    """

    account: Account
    role: AccountRole
    profile: Optional[Union[DoctorProfile, AdminProfile]] = None


class AccountCreate(BaseModel):
    """Schema for creating an account (and its role profile)"""

    name: str = Field(min_length=2, max_length=255)
    email: str
    password: str = Field(min_length=8)
    role: AccountRole = AccountRole.USER
    # Doctor profile fields
    specialization: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    isAvailable: bool = True

    @field_validator("specialization", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("specialization")
    @classmethod
    def strip_specialization(cls, v):
        return v.strip() if v else v

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v):
        if v:
            return validate_phone(v)
        return v

    @model_validator(mode="after")
    def check_doctor_fields(self):
        if self.role == AccountRole.DOCTOR and not (self.specialization and self.phone):
            raise ValueError("Doctor accounts require specialization and phone")
        return self


class DoctorProfileUpdate(BaseModel):
    """Schema for updating a doctor profile"""

    specialization: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    isAvailable: Optional[bool] = None

    @field_validator("specialization")
    @classmethod
    def specialization_not_blank(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Specialization cannot be blank")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v):
        if v is not None:
            if not v.strip():
                raise ValueError("Phone cannot be blank")
            return validate_phone(v)
        return v


class AccountResponse(BaseModel):
    """Schema for account response"""

    id: str
    name: str
    email: str
    role: AccountRole
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            createdAt=account.created_at,
            updatedAt=account.updated_at,
        )


class DoctorResponse(BaseModel):
    """Schema for doctor response"""

    id: str
    name: str
    email: str
    specialization: str
    phone: str
    isAvailable: bool

    @classmethod
    def from_model(cls, profile: DoctorProfile) -> "DoctorResponse":
        return cls(
            id=profile.id,
            name=profile.account.name,
            email=profile.account.email,
            specialization=profile.specialization,
            phone=profile.phone,
            isAvailable=profile.is_available,
        )


class AccountMutationResponse(BaseModel):
    account: AccountResponse
    warnings: list[str] = []


class DoctorMutationResponse(BaseModel):
    doctor: DoctorResponse
    warnings: list[str] = []
