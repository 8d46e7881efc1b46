"""Clinical router - FastAPI endpoints for prescriptions and symptoms"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...shared.actor import Actor
from ...shared.errors import ValidationFailedError
from .schemas import (
    PrescriptionCreate,
    PrescriptionMutationResponse,
    PrescriptionResponse,
    SymptomCreate,
    SymptomResponse,
)
from .service import ClinicalService

logger = logging.getLogger(__name__)

prescription_router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])
symptom_router = APIRouter(prefix="/symptoms", tags=["Symptoms"])


def get_clinical_service(db: Session = Depends(get_db)) -> ClinicalService:
    """Dependency injection for ClinicalService"""
    return ClinicalService(db)


# ============================================================================
# PRESCRIPTIONS
# ============================================================================


@prescription_router.post("", response_model=PrescriptionMutationResponse, status_code=201)
async def create_prescription(
    data: PrescriptionCreate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    prescription = service.create_prescription(actor, data)
    return PrescriptionMutationResponse(
        prescription=PrescriptionResponse.from_model(prescription), warnings=service.warnings
    )


@prescription_router.get("", response_model=list[PrescriptionResponse])
async def list_prescriptions(
    appointmentId: Optional[str] = Query(None),
    userId: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    """Prescriptions of one appointment or one patient (patients default to their own)"""
    if appointmentId:
        prescriptions = service.list_for_appointment(appointmentId, actor)
    else:
        userId = userId or (actor.account_id if actor.is_user else None)
        if not userId:
            raise ValidationFailedError("appointmentId or userId is required")
        prescriptions = service.list_for_user(userId, actor)
    return [PrescriptionResponse.from_model(p) for p in prescriptions]


@prescription_router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return PrescriptionResponse.from_model(service.get_prescription(prescription_id, actor))


# ============================================================================
# SYMPTOMS
# ============================================================================


@symptom_router.post("", response_model=SymptomResponse, status_code=201)
async def record_symptom(
    data: SymptomCreate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return SymptomResponse.from_model(service.record_symptom(actor, data))


@symptom_router.get("", response_model=list[SymptomResponse])
async def list_symptoms(
    userId: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    userId = userId or (actor.account_id if actor.is_user else None)
    if not userId:
        raise ValidationFailedError("userId is required")
    return [SymptomResponse.from_model(s) for s in service.list_symptoms(userId, actor)]
