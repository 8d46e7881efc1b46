"""Booking repository - Database operations for appointments"""

from datetime import date, time
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentStatus, DoctorProfile

# Keyset position: (appointment_date, start_time, id) of the last row already returned
Position = tuple[date, time, str]


class BookingRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def lock_doctor(db: Session, doctor_id: str) -> Optional[DoctorProfile]:
        """
        Row-lock the doctor's profile for the rest of the transaction so that
        concurrent bookings for the same doctor run one after another.
        SQLite has no row locks; there the transaction already holds the
        database write lock.
        """
        return (
            db.query(DoctorProfile)
            .filter(DoctorProfile.id == doctor_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def find_overlapping(
        db: Session, doctor_id: str, day: date, start: time, end: time
    ) -> Optional[Appointment]:
        """First non-cancelled booking of the doctor on that day intersecting [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == day,
                Appointment.status != AppointmentStatus.CANCELLED,
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .order_by(Appointment.start_time)
            .first()
        )

    @staticmethod
    def add_appointment(db: Session, appointment: Appointment) -> Appointment:
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.get(Appointment, appointment_id)

    @staticmethod
    def list_active_for_day(db: Session, doctor_id: str, day: date) -> list[Appointment]:
        """Non-cancelled bookings of a doctor on one date, by start time"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == day,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
            .order_by(Appointment.start_time)
            .all()
        )

    @staticmethod
    def list_page(
        db: Session,
        limit: int,
        doctor_id: Optional[str] = None,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
        after: Optional[Position] = None,
    ) -> list[Appointment]:
        """One keyset page ordered by (appointment_date, start_time, id)"""
        query = db.query(Appointment)

        if doctor_id:
            query = query.filter(Appointment.doctor_id == doctor_id)

        if user_id:
            query = query.filter(Appointment.user_id == user_id)

        if date_from:
            query = query.filter(Appointment.appointment_date >= date_from)

        if date_to:
            query = query.filter(Appointment.appointment_date <= date_to)

        if status:
            query = query.filter(Appointment.status == status)

        if after:
            after_date, after_start, after_id = after
            query = query.filter(
                or_(
                    Appointment.appointment_date > after_date,
                    and_(
                        Appointment.appointment_date == after_date,
                        Appointment.start_time > after_start,
                    ),
                    and_(
                        Appointment.appointment_date == after_date,
                        Appointment.start_time == after_start,
                        Appointment.id > after_id,
                    ),
                )
            )

        return (
            query.order_by(Appointment.appointment_date, Appointment.start_time, Appointment.id)
            .limit(limit)
            .all()
        )
