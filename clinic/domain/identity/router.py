"""Identity router - FastAPI endpoints for accounts and doctor profiles"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_actor, get_optional_actor
from ...database import get_db
from ...shared.actor import Actor
from ...shared.errors import ForbiddenError
from .schemas import (
    AccountCreate,
    AccountMutationResponse,
    AccountResponse,
    DoctorMutationResponse,
    DoctorProfileUpdate,
    DoctorResponse,
)
from .service import IdentityService

logger = logging.getLogger(__name__)

account_router = APIRouter(prefix="/accounts", tags=["Accounts"])
doctor_router = APIRouter(prefix="/doctors", tags=["Doctors"])


def get_identity_service(db: Session = Depends(get_db)) -> IdentityService:
    """Dependency injection for IdentityService"""
    return IdentityService(db)


# ============================================================================
# ACCOUNTS
# ============================================================================


@account_router.post("", response_model=AccountMutationResponse, status_code=201)
async def create_account(
    data: AccountCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: IdentityService = Depends(get_identity_service),
):
    """Register a patient account, or (admins) a doctor or admin account"""
    account = service.create_account(data, actor)
    return AccountMutationResponse(
        account=AccountResponse.from_model(account), warnings=service.warnings
    )


@account_router.get("/me", response_model=AccountResponse)
async def get_me(
    actor: Actor = Depends(get_current_actor),
    service: IdentityService = Depends(get_identity_service),
):
    return AccountResponse.from_model(service.get_account(actor.account_id))


@account_router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: str,
    actor: Actor = Depends(get_current_actor),
    service: IdentityService = Depends(get_identity_service),
):
    if not actor.is_admin and actor.account_id != account_id:
        raise ForbiddenError("You can only view your own account")
    return AccountResponse.from_model(service.get_account(account_id))


@account_router.delete("/{account_id}")
async def delete_account(
    account_id: str,
    actor: Actor = Depends(get_current_actor),
    service: IdentityService = Depends(get_identity_service),
):
    service.delete_account(account_id, actor)
    return {"message": "Account deleted", "warnings": service.warnings}


# ============================================================================
# DOCTORS
# ============================================================================


@doctor_router.get("", response_model=list[DoctorResponse])
async def list_doctors(
    specialization: Optional[str] = Query(None),
    availableOnly: bool = Query(False),
    service: IdentityService = Depends(get_identity_service),
):
    """Public doctor directory"""
    doctors = service.list_doctors(specialization, availableOnly)
    return [DoctorResponse.from_model(d) for d in doctors]


@doctor_router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: str,
    service: IdentityService = Depends(get_identity_service),
):
    return DoctorResponse.from_model(service.get_doctor(doctor_id))


@doctor_router.patch("/{doctor_id}", response_model=DoctorMutationResponse)
async def update_doctor(
    doctor_id: str,
    data: DoctorProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    service: IdentityService = Depends(get_identity_service),
):
    profile = service.update_doctor_profile(doctor_id, data, actor)
    return DoctorMutationResponse(doctor=DoctorResponse.from_model(profile), warnings=service.warnings)
