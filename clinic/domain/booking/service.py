"""Booking service - Appointment creation, lifecycle transitions and listings"""

import base64
import binascii
import json
import logging
from datetime import date, datetime, time
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import LISTING_MAX_PAGE_SIZE, LISTING_PAGE_SIZE
from ...database import is_lock_error, write_serialized
from ...models import Appointment, AppointmentStatus
from ...shared.actor import Actor
from ...shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidRangeError,
    NotFoundError,
    OutsideAvailabilityError,
    SlotConflictError,
    ValidationFailedError,
)
from ..audit.service import AuditedService
from ..availability.service import AvailabilityService
from ..identity.service import IdentityService
from . import state_machine
from .repository import BookingRepository, Position
from .schemas import AppointmentCreate

logger = logging.getLogger(__name__)

# Name of the PostgreSQL exclusion constraint (migrations/001_appointments_no_overlap.sql)
OVERLAP_CONSTRAINT = "appointments_no_overlap"


def encode_cursor(appointment: Appointment) -> str:
    payload = json.dumps(
        [
            appointment.appointment_date.isoformat(),
            appointment.start_time.isoformat(),
            appointment.id,
        ]
    )
    return base64.urlsafe_b64encode(payload.encode()).decode()


def decode_cursor(cursor: str) -> Position:
    try:
        day, start, appointment_id = json.loads(base64.urlsafe_b64decode(cursor.encode()))
        return date.fromisoformat(day), time.fromisoformat(start), str(appointment_id)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ValidationFailedError(f"Invalid cursor: {e}")


class AppointmentListing:
    """
    Lazy, date-ordered view over appointments matching fixed filters.

    Nothing is read until iteration starts. Each iteration re-runs the query
    from the beginning, page by page, so iterating again yields a fresh view
    rather than resuming a cursor.
    """

    def __init__(self, db: Session, page_size: int = LISTING_PAGE_SIZE, **filters):
        self.db = db
        self.page_size = max(1, min(page_size, LISTING_MAX_PAGE_SIZE))
        self.filters = filters
        self.repo = BookingRepository()

    def __iter__(self) -> Iterator[Appointment]:
        after = None
        while True:
            rows = self.repo.list_page(self.db, self.page_size, after=after, **self.filters)
            yield from rows
            if len(rows) < self.page_size:
                return
            last = rows[-1]
            after = (last.appointment_date, last.start_time, last.id)

    def page(
        self, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> tuple[list[Appointment], Optional[str]]:
        """One page plus the cursor for the next one (None on the last page)"""
        limit = max(1, min(limit or self.page_size, LISTING_MAX_PAGE_SIZE))
        after = decode_cursor(cursor) if cursor else None

        # Fetch one extra row to know whether another page exists
        rows = self.repo.list_page(self.db, limit + 1, after=after, **self.filters)
        if len(rows) > limit:
            rows = rows[:limit]
            return rows, encode_cursor(rows[-1])
        return rows, None


class BookingService(AuditedService):
    """Service layer for the appointment booking engine"""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repo = BookingRepository()
        self.identity = IdentityService(db)
        self.availability = AvailabilityService(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_appointment(self, actor: Actor, data: AppointmentCreate) -> Appointment:
        """
        Book [startTime, endTime) with a doctor on appointmentDate.

        Preconditions, first failure wins: valid range, inside the doctor's
        availability, no overlap with a non-cancelled booking. The availability
        and overlap checks and the insert run in one write-serialized
        transaction.
        """
        user_id = data.userId or actor.account_id
        if actor.is_doctor:
            raise ForbiddenError("Doctors cannot book appointments")
        if actor.is_user and user_id != actor.account_id:
            raise ForbiddenError("Users can only book appointments for themselves")

        self.identity.require_user(user_id)
        self.identity.require_doctor(data.doctorId)

        if not data.startTime < data.endTime:
            raise InvalidRangeError("Appointment start time must be before end time")

        appointment = Appointment(
            user_id=user_id,
            doctor_id=data.doctorId,
            appointment_date=data.appointmentDate,
            start_time=data.startTime,
            end_time=data.endTime,
            status=state_machine.INITIAL_STATE,
            notes=data.notes,
        )

        try:
            with write_serialized(self.db):
                self.repo.lock_doctor(self.db, data.doctorId)

                if not self.availability.is_within_availability(
                    data.doctorId, data.appointmentDate, data.startTime, data.endTime
                ):
                    raise OutsideAvailabilityError(
                        f"Doctor {data.doctorId} is not available on {data.appointmentDate} "
                        f"between {data.startTime:%H:%M} and {data.endTime:%H:%M}"
                    )

                clash = self.repo.find_overlapping(
                    self.db, data.doctorId, data.appointmentDate, data.startTime, data.endTime
                )
                if clash:
                    raise SlotConflictError(
                        f"Slot overlaps appointment {clash.id} "
                        f"({clash.start_time:%H:%M}-{clash.end_time:%H:%M})"
                    )

                self.repo.add_appointment(self.db, appointment)
        except IntegrityError as e:
            if OVERLAP_CONSTRAINT in str(e.orig):
                raise SlotConflictError("Slot was booked concurrently")
            raise
        except OperationalError as e:
            if not is_lock_error(e):
                raise
            logger.warning(f"⚠️ Booking for doctor {data.doctorId} could not be serialized: {e}")
            raise ConflictError("Another booking for this doctor is in progress, please retry")

        logger.info(
            f"✅ Appointment {appointment.id} booked: doctor {data.doctorId} "
            f"{data.appointmentDate} {data.startTime:%H:%M}-{data.endTime:%H:%M}"
        )
        self._audit(
            actor,
            "appointment.created",
            {"appointment_id": appointment.id, "user_id": user_id, "doctor_id": data.doctorId},
        )
        return appointment

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: str, actor: Actor) -> Appointment:
        appointment = self._get_or_404(appointment_id)
        if not state_machine.is_party(appointment, actor):
            raise ForbiddenError("You do not have access to this appointment")
        return appointment

    def transition(
        self,
        appointment_id: str,
        target: AppointmentStatus,
        actor: Actor,
        expected_updated_at: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move an appointment along the lifecycle.

        The UPDATE is guarded by the row's updated_at version: if another
        request changed the appointment after it was read here, or after the
        caller read expected_updated_at, this fails with ConflictError instead
        of overwriting.
        """
        appointment = self._get_or_404(appointment_id)

        if expected_updated_at is not None and appointment.updated_at != expected_updated_at:
            raise ConflictError(
                f"Appointment {appointment_id} changed since it was read (now {appointment.status.value})"
            )

        state_machine.check_transition(appointment, target, actor)

        previous = appointment.status
        appointment.status = target
        try:
            self.db.commit()
        except (StaleDataError, OperationalError) as e:
            self.db.rollback()
            if isinstance(e, OperationalError) and not is_lock_error(e):
                raise
            logger.info(f"Lost transition race on appointment {appointment_id}: {e}")
            raise ConflictError(
                f"Appointment {appointment_id} is no longer {previous.value}; reload and retry"
            )

        logger.info(f"🔄 Appointment {appointment_id}: {previous.value} -> {target.value}")
        self._audit(
            actor,
            f"appointment.{target.value}",
            {"appointment_id": appointment_id, "from": previous.value},
        )
        return appointment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_doctor(
        self,
        doctor_id: str,
        actor: Actor,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
        page_size: int = LISTING_PAGE_SIZE,
    ) -> AppointmentListing:
        if not (actor.is_admin or (actor.is_doctor and actor.account_id == doctor_id)):
            raise ForbiddenError("Only the doctor or an administrator can list these appointments")
        self._check_range(date_from, date_to)
        return AppointmentListing(
            self.db,
            page_size,
            doctor_id=doctor_id,
            date_from=date_from,
            date_to=date_to,
            status=status,
        )

    def list_for_user(
        self,
        user_id: str,
        actor: Actor,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
        page_size: int = LISTING_PAGE_SIZE,
    ) -> AppointmentListing:
        if not (actor.is_admin or (actor.is_user and actor.account_id == user_id)):
            raise ForbiddenError("Only the patient or an administrator can list these appointments")
        self._check_range(date_from, date_to)
        return AppointmentListing(
            self.db,
            page_size,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            status=status,
        )

    def open_intervals(self, doctor_id: str, day: date) -> list[tuple[time, time]]:
        """Bookable [start, end) gaps left in the doctor's window on a date"""
        self.identity.require_doctor(doctor_id)

        window = self.availability.bookable_window(doctor_id, day)
        if window is None:
            return []

        gaps = []
        cursor, window_end = window
        for booked in self.repo.list_active_for_day(self.db, doctor_id, day):
            if booked.start_time > cursor:
                gaps.append((cursor, min(booked.start_time, window_end)))
            cursor = max(cursor, booked.end_time)
            if cursor >= window_end:
                break
        if cursor < window_end:
            gaps.append((cursor, window_end))

        return [(start, end) for start, end in gaps if start < end]

    def _get_or_404(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    @staticmethod
    def _check_range(date_from: Optional[date], date_to: Optional[date]) -> None:
        if date_from and date_to and date_from > date_to:
            raise InvalidRangeError("date_from must not be after date_to")
