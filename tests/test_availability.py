"""Tests for weekly availability windows."""

from datetime import time

import pytest
from conftest import MONDAY, TUESDAY, actor_for
from pydantic import ValidationError

from clinic.domain.availability.schemas import ScheduleUpsert
from clinic.domain.availability.service import AvailabilityService
from clinic.models import AccountRole, DayOfWeek, Schedule
from clinic.shared.errors import ForbiddenError, InvalidRangeError, NotFoundError, RoleMismatchError


@pytest.fixture
def service(db) -> AvailabilityService:
    return AvailabilityService(db)


def window(day=DayOfWeek.MONDAY, start="09:00", end="12:00", available=True) -> ScheduleUpsert:
    return ScheduleUpsert(dayOfWeek=day, startTime=start, endTime=end, isAvailable=available)


class TestUpsert:
    def test_second_upsert_replaces_the_window(self, service, db, make_account):
        doctor = make_account(AccountRole.DOCTOR)
        actor = actor_for(doctor)

        first = service.upsert_schedule(doctor.id, window(start="09:00", end="12:00"), actor)
        second = service.upsert_schedule(doctor.id, window(start="13:00", end="18:00"), actor)

        rows = (
            db.query(Schedule)
            .filter(Schedule.doctor_id == doctor.id, Schedule.day_of_week == DayOfWeek.MONDAY)
            .all()
        )
        assert len(rows) == 1
        assert second.id == first.id
        assert (rows[0].start_time, rows[0].end_time) == (time(13, 0), time(18, 0))

    def test_windows_for_different_days_coexist(self, service, make_account):
        doctor = make_account(AccountRole.DOCTOR)
        actor = actor_for(doctor)

        service.upsert_schedule(doctor.id, window(day=DayOfWeek.FRIDAY), actor)
        service.upsert_schedule(doctor.id, window(day=DayOfWeek.MONDAY), actor)

        days = [s.day_of_week for s in service.list_schedules(doctor.id)]
        assert days == [DayOfWeek.MONDAY, DayOfWeek.FRIDAY]

    def test_start_must_be_before_end(self, service, doctor):
        with pytest.raises(InvalidRangeError):
            service.upsert_schedule(doctor.id, window(start="12:00", end="09:00"), actor_for(doctor))

    def test_only_the_doctor_or_admin(self, service, doctor, patient, make_account):
        colleague = make_account(AccountRole.DOCTOR)
        with pytest.raises(ForbiddenError):
            service.upsert_schedule(doctor.id, window(), actor_for(colleague))
        with pytest.raises(ForbiddenError):
            service.upsert_schedule(doctor.id, window(), actor_for(patient))

    def test_admin_manages_any_doctor(self, service, doctor, admin):
        schedule = service.upsert_schedule(doctor.id, window(day=DayOfWeek.SUNDAY), actor_for(admin))
        assert schedule.day_of_week == DayOfWeek.SUNDAY

    def test_target_must_be_a_doctor(self, service, patient, admin):
        with pytest.raises(RoleMismatchError):
            service.upsert_schedule(patient.id, window(), actor_for(admin))

    def test_bad_clock_time_rejected(self):
        with pytest.raises(ValidationError):
            window(start="25:00")
        with pytest.raises(ValidationError):
            window(day="Funday")


class TestLookups:
    def test_within_availability_uses_half_open_bounds(self, service, doctor):
        assert service.is_within_availability(doctor.id, MONDAY, time(9, 0), time(17, 0))
        assert service.is_within_availability(doctor.id, MONDAY, time(16, 0), time(17, 0))
        assert not service.is_within_availability(doctor.id, MONDAY, time(16, 30), time(17, 1))
        assert not service.is_within_availability(doctor.id, TUESDAY, time(9, 0), time(10, 0))

    def test_weekly_window_lookup(self, service, doctor):
        assert service.get_weekly_window(doctor.id, "Monday").start_time == time(9, 0)
        assert service.get_weekly_window(doctor.id, DayOfWeek.TUESDAY) is None

    def test_delete_schedule(self, service, doctor):
        service.delete_schedule(doctor.id, DayOfWeek.MONDAY, actor_for(doctor))

        assert service.get_weekly_window(doctor.id, DayOfWeek.MONDAY) is None
        with pytest.raises(NotFoundError):
            service.delete_schedule(doctor.id, DayOfWeek.MONDAY, actor_for(doctor))
