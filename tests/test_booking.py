"""Tests for the booking engine: creation rules, lifecycle and listings."""

from datetime import time

import pytest
from sqlalchemy.exc import OperationalError
from conftest import MONDAY, TUESDAY, actor_for

from clinic.domain.booking.schemas import AppointmentCreate
from clinic.domain.booking.service import BookingService
from clinic.models import AccountRole, Appointment, AppointmentStatus, DayOfWeek
from clinic.shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidRangeError,
    InvalidTransitionError,
    NotFoundError,
    OutsideAvailabilityError,
    RoleMismatchError,
    SlotConflictError,
    ValidationFailedError,
)


def booking(doctor, start, end, day=MONDAY, user=None, notes=None) -> AppointmentCreate:
    return AppointmentCreate(
        userId=user.id if user else None,
        doctorId=doctor.id,
        appointmentDate=day,
        startTime=start,
        endTime=end,
        notes=notes,
    )


@pytest.fixture
def service(db) -> BookingService:
    return BookingService(db)


def book(service, patient, doctor, start, end, day=MONDAY) -> Appointment:
    return service.create_appointment(actor_for(patient), booking(doctor, start, end, day))


class TestCreate:
    def test_books_pending_appointment(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))

        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.user_id == patient.id
        assert appointment.doctor_id == doctor.id
        assert appointment.updated_at is not None

    def test_start_must_be_before_end(self, service, patient, doctor):
        with pytest.raises(InvalidRangeError):
            book(service, patient, doctor, time(10, 0), time(10, 0))
        with pytest.raises(InvalidRangeError):
            book(service, patient, doctor, time(11, 0), time(10, 0))

    def test_outside_weekly_window_fails_even_without_bookings(self, service, patient, doctor):
        with pytest.raises(OutsideAvailabilityError):
            book(service, patient, doctor, time(16, 30), time(17, 30))
        with pytest.raises(OutsideAvailabilityError):
            book(service, patient, doctor, time(8, 30), time(9, 30))

    def test_day_without_window_is_unavailable(self, service, patient, doctor):
        with pytest.raises(OutsideAvailabilityError):
            book(service, patient, doctor, time(9, 0), time(10, 0), day=TUESDAY)

    def test_window_switched_off_is_unavailable(self, make_account, make_schedule, service, patient):
        doctor = make_account(AccountRole.DOCTOR)
        make_schedule(doctor, DayOfWeek.MONDAY, is_available=False)

        with pytest.raises(OutsideAvailabilityError):
            book(service, patient, doctor, time(9, 0), time(10, 0))

    def test_doctor_global_switch_off_is_unavailable(self, make_account, make_schedule, service, patient):
        doctor = make_account(AccountRole.DOCTOR, is_available=False)
        make_schedule(doctor, DayOfWeek.MONDAY)

        with pytest.raises(OutsideAvailabilityError):
            book(service, patient, doctor, time(9, 0), time(10, 0))

    def test_booking_may_fill_the_whole_window(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(17, 0))
        assert appointment.id

    def test_overlap_fails_with_slot_conflict(self, service, patient, doctor, make_account):
        book(service, patient, doctor, time(9, 0), time(10, 0))
        other = make_account(AccountRole.USER)

        with pytest.raises(SlotConflictError):
            book(service, other, doctor, time(9, 30), time(10, 30))
        with pytest.raises(SlotConflictError):
            book(service, other, doctor, time(9, 15), time(9, 45))
        with pytest.raises(SlotConflictError):
            book(service, other, doctor, time(9, 0), time(16, 0))

    def test_touching_intervals_do_not_conflict(self, service, patient, doctor):
        book(service, patient, doctor, time(9, 0), time(10, 0))
        book(service, patient, doctor, time(10, 0), time(11, 0))

    def test_other_doctor_same_slot_is_fine(self, service, patient, doctor, make_account, make_schedule):
        second = make_account(AccountRole.DOCTOR)
        make_schedule(second)

        book(service, patient, doctor, time(9, 0), time(10, 0))
        book(service, patient, second, time(9, 0), time(10, 0))

    def test_cancelled_interval_is_reusable(self, service, patient, doctor, make_account):
        first = book(service, patient, doctor, time(9, 0), time(10, 0))
        service.transition(first.id, AppointmentStatus.CANCELLED, actor_for(patient))

        other = make_account(AccountRole.USER)
        second = book(service, other, doctor, time(9, 0), time(10, 0))

        assert second.status == AppointmentStatus.PENDING

    def test_completed_interval_still_blocks(self, service, patient, doctor):
        first = book(service, patient, doctor, time(9, 0), time(10, 0))
        service.transition(first.id, AppointmentStatus.CONFIRMED, actor_for(doctor))
        service.transition(first.id, AppointmentStatus.COMPLETED, actor_for(doctor))

        with pytest.raises(SlotConflictError):
            book(service, patient, doctor, time(9, 30), time(9, 45))

    def test_unknown_doctor(self, service, patient):
        data = AppointmentCreate(
            doctorId="missing", appointmentDate=MONDAY, startTime="09:00", endTime="10:00"
        )
        with pytest.raises(NotFoundError):
            service.create_appointment(actor_for(patient), data)

    def test_doctor_id_must_be_a_doctor(self, service, patient, make_account):
        not_a_doctor = make_account(AccountRole.USER)
        with pytest.raises(RoleMismatchError):
            book(service, patient, not_a_doctor, time(9, 0), time(10, 0))

    def test_admin_books_for_a_patient(self, service, patient, doctor, admin):
        appointment = service.create_appointment(
            actor_for(admin), booking(doctor, time(9, 0), time(10, 0), user=patient)
        )
        assert appointment.user_id == patient.id

    def test_admin_must_book_for_a_user_account(self, service, doctor, admin):
        with pytest.raises(RoleMismatchError):
            service.create_appointment(actor_for(admin), booking(doctor, time(9, 0), time(10, 0)))

    def test_patient_cannot_book_for_someone_else(self, service, patient, doctor, make_account):
        other = make_account(AccountRole.USER)
        with pytest.raises(ForbiddenError):
            service.create_appointment(
                actor_for(patient), booking(doctor, time(9, 0), time(10, 0), user=other)
            )

    def test_doctor_cannot_book(self, service, patient, doctor):
        with pytest.raises(ForbiddenError):
            service.create_appointment(
                actor_for(doctor), booking(doctor, time(9, 0), time(10, 0), user=patient)
            )

    def test_storage_failure_is_not_reported_as_conflict(self, engine, service, patient, doctor):
        """Only a lost lock race means "retry"; a broken store propagates as is."""
        request = booking(doctor, time(9, 0), time(10, 0))
        actor = actor_for(patient)
        service.db.commit()
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE appointments")

        with pytest.raises(OperationalError) as excinfo:
            service.create_appointment(actor, request)

        assert "no such table" in str(excinfo.value)


class TestTransition:
    def test_scenario_from_booking_to_confirmation(self, make_account, make_schedule, service):
        doctor = make_account(AccountRole.DOCTOR)
        make_schedule(doctor, DayOfWeek.MONDAY, time(9, 0), time(12, 0))
        u = make_account(AccountRole.USER)
        v = make_account(AccountRole.USER)

        first = book(service, u, doctor, time(9, 0), time(10, 0))
        assert first.status == AppointmentStatus.PENDING

        with pytest.raises(SlotConflictError):
            book(service, v, doctor, time(9, 30), time(10, 30))

        confirmed = service.transition(first.id, AppointmentStatus.CONFIRMED, actor_for(doctor))
        assert confirmed.status == AppointmentStatus.CONFIRMED

        with pytest.raises(InvalidTransitionError):
            service.transition(first.id, AppointmentStatus.PENDING, actor_for(doctor))

    def test_terminal_states_reject_everything(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))
        service.transition(appointment.id, AppointmentStatus.CANCELLED, actor_for(patient))

        for target in AppointmentStatus:
            with pytest.raises(InvalidTransitionError):
                service.transition(appointment.id, target, actor_for(doctor))

    def test_patient_cannot_confirm(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))
        with pytest.raises(ForbiddenError):
            service.transition(appointment.id, AppointmentStatus.CONFIRMED, actor_for(patient))

    def test_other_doctor_cannot_confirm(self, service, patient, doctor, make_account):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))
        other = make_account(AccountRole.DOCTOR)
        with pytest.raises(ForbiddenError):
            service.transition(appointment.id, AppointmentStatus.CONFIRMED, actor_for(other))

    def test_unknown_appointment(self, service, doctor):
        with pytest.raises(NotFoundError):
            service.transition("missing", AppointmentStatus.CONFIRMED, actor_for(doctor))

    def test_version_changes_on_every_transition(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))
        before = appointment.updated_at

        service.transition(appointment.id, AppointmentStatus.CONFIRMED, actor_for(doctor))

        assert appointment.updated_at != before

    def test_stale_expected_version_fails_with_conflict(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))
        seen = appointment.updated_at
        service.transition(appointment.id, AppointmentStatus.CONFIRMED, actor_for(doctor))

        with pytest.raises(ConflictError):
            service.transition(
                appointment.id, AppointmentStatus.CANCELLED, actor_for(patient), expected_updated_at=seen
            )

    def test_matching_expected_version_succeeds(self, service, patient, doctor):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))

        result = service.transition(
            appointment.id,
            AppointmentStatus.CANCELLED,
            actor_for(patient),
            expected_updated_at=appointment.updated_at,
        )
        assert result.status == AppointmentStatus.CANCELLED


class TestQueries:
    def test_get_appointment_visibility(self, service, patient, doctor, admin, make_account):
        appointment = book(service, patient, doctor, time(9, 0), time(10, 0))

        for reader in (patient, doctor, admin):
            assert service.get_appointment(appointment.id, actor_for(reader)).id == appointment.id

        stranger = make_account(AccountRole.USER)
        with pytest.raises(ForbiddenError):
            service.get_appointment(appointment.id, actor_for(stranger))

    def test_list_for_doctor_is_ordered_by_date_then_start(
        self, service, patient, doctor, make_schedule
    ):
        make_schedule(doctor, DayOfWeek.TUESDAY)
        book(service, patient, doctor, time(14, 0), time(15, 0), day=TUESDAY)
        book(service, patient, doctor, time(11, 0), time(12, 0))
        book(service, patient, doctor, time(9, 0), time(10, 0))

        listing = service.list_for_doctor(doctor.id, actor_for(doctor))
        keys = [(a.appointment_date, a.start_time) for a in listing]

        assert keys == [
            (MONDAY, time(9, 0)),
            (MONDAY, time(11, 0)),
            (TUESDAY, time(14, 0)),
        ]

    def test_listing_filters(self, service, patient, doctor, make_schedule):
        make_schedule(doctor, DayOfWeek.TUESDAY)
        first = book(service, patient, doctor, time(9, 0), time(10, 0))
        book(service, patient, doctor, time(9, 0), time(10, 0), day=TUESDAY)
        service.transition(first.id, AppointmentStatus.CANCELLED, actor_for(patient))

        actor = actor_for(doctor)
        by_date = list(service.list_for_doctor(doctor.id, actor, date_from=TUESDAY))
        by_status = list(
            service.list_for_doctor(doctor.id, actor, status=AppointmentStatus.CANCELLED)
        )

        assert [a.appointment_date for a in by_date] == [TUESDAY]
        assert [a.id for a in by_status] == [first.id]

    def test_listing_is_lazy_and_restartable(self, service, patient, doctor):
        listing = service.list_for_user(patient.id, actor_for(patient), page_size=2)
        book(service, patient, doctor, time(9, 0), time(10, 0))
        book(service, patient, doctor, time(10, 0), time(11, 0))
        book(service, patient, doctor, time(11, 0), time(12, 0))

        first_pass = [a.id for a in listing]
        book(service, patient, doctor, time(12, 0), time(13, 0))
        second_pass = [a.id for a in listing]

        assert len(first_pass) == 3
        assert len(second_pass) == 4
        assert second_pass[:3] == first_pass

    def test_page_cursor_walks_all_rows(self, service, patient, doctor):
        for hour in range(9, 14):
            book(service, patient, doctor, time(hour, 0), time(hour, 30))

        listing = service.list_for_user(patient.id, actor_for(patient))
        seen, cursor = [], None
        while True:
            items, cursor = listing.page(cursor, limit=2)
            seen.extend(a.start_time.hour for a in items)
            if cursor is None:
                break

        assert seen == [9, 10, 11, 12, 13]

    def test_bad_cursor_is_validation_failure(self, service, patient):
        listing = service.list_for_user(patient.id, actor_for(patient))
        with pytest.raises(ValidationFailedError):
            listing.page("not-a-cursor")

    def test_listing_permissions(self, service, patient, doctor, make_account):
        other_doctor = make_account(AccountRole.DOCTOR)
        other_patient = make_account(AccountRole.USER)

        with pytest.raises(ForbiddenError):
            service.list_for_doctor(doctor.id, actor_for(other_doctor))
        with pytest.raises(ForbiddenError):
            service.list_for_user(patient.id, actor_for(other_patient))
        with pytest.raises(ForbiddenError):
            service.list_for_user(patient.id, actor_for(doctor))

    def test_inverted_date_range(self, service, doctor):
        with pytest.raises(InvalidRangeError):
            service.list_for_doctor(doctor.id, actor_for(doctor), date_from=TUESDAY, date_to=MONDAY)

    def test_open_intervals(self, service, patient, doctor):
        first = book(service, patient, doctor, time(10, 0), time(11, 0))
        book(service, patient, doctor, time(11, 0), time(12, 0))
        book(service, patient, doctor, time(14, 0), time(15, 30))
        cancelled = book(service, patient, doctor, time(16, 0), time(16, 30))
        service.transition(cancelled.id, AppointmentStatus.CANCELLED, actor_for(patient))

        gaps = service.open_intervals(doctor.id, MONDAY)

        assert first.status == AppointmentStatus.PENDING
        assert gaps == [
            (time(9, 0), time(10, 0)),
            (time(12, 0), time(14, 0)),
            (time(15, 30), time(17, 0)),
        ]

    def test_open_intervals_on_closed_day(self, service, doctor):
        assert service.open_intervals(doctor.id, TUESDAY) == []
