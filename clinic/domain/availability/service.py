"""Availability service - Weekly windows and the "is this doctor open" check"""

import logging
from datetime import date, time
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...models import DayOfWeek, Schedule
from ...shared.actor import Actor
from ...shared.errors import ForbiddenError, InvalidRangeError, NotFoundError
from ...shared.timeutils import interval_contains, weekday_name
from ..audit.service import AuditedService
from ..identity.service import IdentityService
from .repository import ScheduleRepository
from .schemas import ScheduleUpsert

logger = logging.getLogger(__name__)


class AvailabilityService(AuditedService):
    """Service layer for doctors' recurring availability"""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repo = ScheduleRepository()
        self.identity = IdentityService(db)

    def get_weekly_window(
        self, doctor_id: str, day_of_week: Union[DayOfWeek, str]
    ) -> Optional[Schedule]:
        """The doctor's window for a weekday, or None when none is defined"""
        return self.repo.get_schedule(self.db, doctor_id, DayOfWeek(day_of_week))

    def bookable_window(self, doctor_id: str, day: date) -> Optional[tuple[time, time]]:
        """
        The [start, end) window bookings on this date may use, or None when the
        doctor cannot be booked at all that day (no window, window switched off,
        or the doctor's global availability switch is off).
        """
        profile = self.repo.get_doctor_profile(self.db, doctor_id)
        if profile is None or not profile.is_available:
            return None

        schedule = self.get_weekly_window(doctor_id, weekday_name(day))
        if schedule is None or not schedule.is_available:
            return None

        return schedule.start_time, schedule.end_time

    def is_within_availability(self, doctor_id: str, day: date, start: time, end: time) -> bool:
        window = self.bookable_window(doctor_id, day)
        if window is None:
            return False
        return interval_contains(window[0], window[1], start, end)

    def list_schedules(self, doctor_id: str) -> list[Schedule]:
        self.identity.require_doctor(doctor_id)
        return self.repo.list_schedules(self.db, doctor_id)

    def upsert_schedule(self, doctor_id: str, data: ScheduleUpsert, actor: Actor) -> Schedule:
        """Create or replace the doctor's window for data.dayOfWeek"""
        self._check_can_manage(doctor_id, actor)
        self.identity.require_doctor(doctor_id)

        if not data.startTime < data.endTime:
            raise InvalidRangeError("Schedule start time must be before end time")

        try:
            schedule = self.repo.upsert_schedule(
                self.db,
                doctor_id,
                data.dayOfWeek,
                data.startTime,
                data.endTime,
                data.isAvailable,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"📅 Schedule for doctor {doctor_id} on {data.dayOfWeek.value}: "
            f"{data.startTime:%H:%M}-{data.endTime:%H:%M} (available={data.isAvailable})"
        )
        self._audit(
            actor,
            "schedule.upserted",
            {
                "doctor_id": doctor_id,
                "day_of_week": data.dayOfWeek.value,
                "start_time": data.startTime.isoformat(),
                "end_time": data.endTime.isoformat(),
                "is_available": data.isAvailable,
            },
        )
        return schedule

    def delete_schedule(self, doctor_id: str, day_of_week: Union[DayOfWeek, str], actor: Actor) -> None:
        self._check_can_manage(doctor_id, actor)
        day_of_week = DayOfWeek(day_of_week)

        schedule = self.get_weekly_window(doctor_id, day_of_week)
        if schedule is None:
            raise NotFoundError(f"No schedule for doctor {doctor_id} on {day_of_week.value}")

        self.repo.delete_schedule(self.db, schedule)
        self.db.commit()

        logger.info(f"🗑️ Removed {day_of_week.value} schedule for doctor {doctor_id}")
        self._audit(
            actor, "schedule.deleted", {"doctor_id": doctor_id, "day_of_week": day_of_week.value}
        )

    @staticmethod
    def _check_can_manage(doctor_id: str, actor: Actor) -> None:
        if not (actor.is_admin or (actor.is_doctor and actor.account_id == doctor_id)):
            raise ForbiddenError("Only the doctor or an administrator can manage this schedule")
