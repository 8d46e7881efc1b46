"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import Appointment, AppointmentStatus
from ...shared.validators import parse_clock_time


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    # Defaults to the acting user; admins book on a user's behalf by setting it
    userId: Optional[str] = None
    doctorId: str
    appointmentDate: date
    startTime: time
    endTime: time
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def validate_clock_time(cls, v):
        return parse_clock_time(v)


class AppointmentTransition(BaseModel):
    """Schema for moving an appointment to a new status"""

    status: AppointmentStatus
    # Optimistic-concurrency token: the updatedAt the caller last saw
    expectedUpdatedAt: Optional[datetime] = None

    @field_validator("expectedUpdatedAt")
    @classmethod
    def normalize_to_naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    userId: str
    doctorId: str
    appointmentDate: date
    startTime: time
    endTime: time
    status: AppointmentStatus
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            userId=appointment.user_id,
            doctorId=appointment.doctor_id,
            appointmentDate=appointment.appointment_date,
            startTime=appointment.start_time,
            endTime=appointment.end_time,
            status=appointment.status,
            notes=appointment.notes,
            createdAt=appointment.created_at,
            updatedAt=appointment.updated_at,
        )


class AppointmentMutationResponse(BaseModel):
    appointment: AppointmentResponse
    warnings: list[str] = []


class AppointmentPage(BaseModel):
    items: list[AppointmentResponse]
    nextCursor: Optional[str] = None


class OpenInterval(BaseModel):
    """A bookable half-open [startTime, endTime) gap"""

    startTime: time
    endTime: time
