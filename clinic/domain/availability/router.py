"""Availability router - FastAPI endpoints for doctors' weekly schedules"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...models import DayOfWeek
from ...shared.actor import Actor
from .schemas import ScheduleMutationResponse, ScheduleResponse, ScheduleUpsert
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors/{doctor_id}/schedules", tags=["Schedules"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


@router.get("", response_model=list[ScheduleResponse])
async def list_schedules(
    doctor_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    """A doctor's weekly windows, Monday first"""
    return [ScheduleResponse.from_model(s) for s in service.list_schedules(doctor_id)]


@router.put("", response_model=ScheduleMutationResponse)
async def upsert_schedule(
    doctor_id: str,
    data: ScheduleUpsert,
    actor: Actor = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Create or replace the window for data.dayOfWeek"""
    schedule = service.upsert_schedule(doctor_id, data, actor)
    return ScheduleMutationResponse(
        schedule=ScheduleResponse.from_model(schedule), warnings=service.warnings
    )


@router.delete("/{day_of_week}")
async def delete_schedule(
    doctor_id: str,
    day_of_week: DayOfWeek,
    actor: Actor = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
):
    service.delete_schedule(doctor_id, day_of_week, actor)
    return {"message": f"{day_of_week.value} schedule removed", "warnings": service.warnings}
