"""Availability domain schemas - Pydantic models for validation"""

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import DayOfWeek, Schedule
from ...shared.validators import parse_clock_time


class ScheduleUpsert(BaseModel):
    """Schema for creating or replacing a doctor's window for one weekday"""

    dayOfWeek: DayOfWeek
    startTime: time
    endTime: time
    isAvailable: bool = True

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def validate_clock_time(cls, v):
        return parse_clock_time(v)


class ScheduleResponse(BaseModel):
    """Schema for schedule response"""

    id: str
    doctorId: str
    dayOfWeek: DayOfWeek
    startTime: time
    endTime: time
    isAvailable: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, schedule: Schedule) -> "ScheduleResponse":
        return cls(
            id=schedule.id,
            doctorId=schedule.doctor_id,
            dayOfWeek=schedule.day_of_week,
            startTime=schedule.start_time,
            endTime=schedule.end_time,
            isAvailable=schedule.is_available,
            createdAt=schedule.created_at,
            updatedAt=schedule.updated_at,
        )


class ScheduleMutationResponse(BaseModel):
    schedule: ScheduleResponse
    warnings: list[str] = []
