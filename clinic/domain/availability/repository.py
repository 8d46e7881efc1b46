"""Availability repository - Database operations for weekly schedules"""

from datetime import time
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ...models import DayOfWeek, DoctorProfile, Schedule, generate_id
from ...shared.timeutils import utcnow

UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class ScheduleRepository:
    """Repository for schedule database operations"""

    @staticmethod
    def get_doctor_profile(db: Session, doctor_id: str) -> Optional[DoctorProfile]:
        return db.query(DoctorProfile).filter(DoctorProfile.id == doctor_id).first()

    @staticmethod
    def get_schedule(db: Session, doctor_id: str, day_of_week: DayOfWeek) -> Optional[Schedule]:
        """Get the single window a doctor has for a weekday"""
        return (
            db.query(Schedule)
            .filter(Schedule.doctor_id == doctor_id, Schedule.day_of_week == day_of_week)
            .first()
        )

    @staticmethod
    def list_schedules(db: Session, doctor_id: str) -> list[Schedule]:
        """All windows of a doctor, Monday first"""
        schedules = db.query(Schedule).filter(Schedule.doctor_id == doctor_id).all()
        return sorted(schedules, key=lambda s: s.day_of_week.ordinal)

    @staticmethod
    def upsert_schedule(
        db: Session,
        doctor_id: str,
        day_of_week: DayOfWeek,
        start_time: time,
        end_time: time,
        is_available: bool,
    ) -> Schedule:
        """
        Insert or replace the (doctor, weekday) window with one conditional
        INSERT ... ON CONFLICT DO UPDATE statement.
        """
        dialect = db.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Schedule upsert is not supported on {dialect}")

        now = utcnow()
        stmt = insert(Schedule).values(
            id=generate_id(),
            doctor_id=doctor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_available=is_available,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Schedule.doctor_id, Schedule.day_of_week],
            set_={
                "start_time": stmt.excluded.start_time,
                "end_time": stmt.excluded.end_time,
                "is_available": stmt.excluded.is_available,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        db.execute(stmt)

        return (
            db.query(Schedule)
            .filter(Schedule.doctor_id == doctor_id, Schedule.day_of_week == day_of_week)
            .populate_existing()
            .one()
        )

    @staticmethod
    def delete_schedule(db: Session, schedule: Schedule) -> None:
        db.delete(schedule)
        db.flush()
