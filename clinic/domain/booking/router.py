"""Booking router - FastAPI endpoints for appointments"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...models import AppointmentStatus
from ...shared.actor import Actor
from ...shared.errors import ValidationFailedError
from .schemas import (
    AppointmentCreate,
    AppointmentMutationResponse,
    AppointmentPage,
    AppointmentResponse,
    AppointmentTransition,
    OpenInterval,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
doctor_router = APIRouter(prefix="/doctors", tags=["Appointments"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.post("", response_model=AppointmentMutationResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Book an appointment; it starts out pending"""
    appointment = service.create_appointment(actor, data)
    return AppointmentMutationResponse(
        appointment=AppointmentResponse.from_model(appointment), warnings=service.warnings
    )


@router.get("", response_model=AppointmentPage)
async def list_appointments(
    doctorId: Optional[str] = Query(None),
    userId: Optional[str] = Query(None),
    dateFrom: Optional[date] = Query(None),
    dateTo: Optional[date] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    cursor: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """
    List appointments by date then start time, one page at a time.

    Doctors and users default to their own appointments; admins must pick a
    doctorId or userId.
    """
    if doctorId and userId:
        raise ValidationFailedError("Filter by doctorId or userId, not both")

    if not doctorId and not userId:
        if actor.is_doctor:
            doctorId = actor.account_id
        elif actor.is_user:
            userId = actor.account_id
        else:
            raise ValidationFailedError("doctorId or userId is required")

    if doctorId:
        listing = service.list_for_doctor(doctorId, actor, dateFrom, dateTo, status)
    else:
        listing = service.list_for_user(userId, actor, dateFrom, dateTo, status)

    items, next_cursor = listing.page(cursor, limit)
    return AppointmentPage(
        items=[AppointmentResponse.from_model(a) for a in items], nextCursor=next_cursor
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return AppointmentResponse.from_model(service.get_appointment(appointment_id, actor))


@router.post("/{appointment_id}/status", response_model=AppointmentMutationResponse)
async def transition_appointment(
    appointment_id: str,
    data: AppointmentTransition,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Confirm, complete or cancel an appointment"""
    appointment = service.transition(appointment_id, data.status, actor, data.expectedUpdatedAt)
    return AppointmentMutationResponse(
        appointment=AppointmentResponse.from_model(appointment), warnings=service.warnings
    )


@doctor_router.get("/{doctor_id}/open-intervals", response_model=list[OpenInterval])
async def get_open_intervals(
    doctor_id: str,
    day: date = Query(..., alias="date"),
    _actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Free [start, end) gaps in the doctor's window on a date"""
    return [
        OpenInterval(startTime=start, endTime=end)
        for start, end in service.open_intervals(doctor_id, day)
    ]
