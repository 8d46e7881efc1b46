"""Clinical service - Prescriptions and symptom reports"""

import logging
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...database import is_lock_error, write_serialized
from ...models import Appointment, AppointmentStatus, Prescription, Symptom
from ...shared.actor import Actor
from ...shared.errors import (
    AppointmentNotEligibleError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OwnershipMismatchError,
)
from ...shared.timeutils import utcnow
from ..audit.service import AuditedService
from ..booking.state_machine import is_party
from ..identity.service import IdentityService
from .repository import ClinicalRepository
from .schemas import PrescriptionCreate, SymptomCreate

logger = logging.getLogger(__name__)

# Appointment states a prescription may be attached to
PRESCRIBABLE_STATES = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED})


class ClinicalService(AuditedService):
    """Service layer for clinical records"""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repo = ClinicalRepository()
        self.identity = IdentityService(db)

    # ------------------------------------------------------------------
    # Prescriptions
    # ------------------------------------------------------------------

    def create_prescription(self, actor: Actor, data: PrescriptionCreate) -> Prescription:
        """
        Attach a prescription to a confirmed or completed appointment.

        doctorId and userId are copied from the appointment; if the caller
        supplies them anyway they must match.
        """
        try:
            with write_serialized(self.db):
                # The status must not change between the eligibility check and the insert
                appointment = self.repo.lock_appointment(self.db, data.appointmentId)
                prescription = self._build_prescription(actor, appointment, data)
                self.repo.add_prescription(self.db, prescription)
        except OperationalError as e:
            if not is_lock_error(e):
                raise
            logger.warning(f"⚠️ Prescription for appointment {data.appointmentId} lost a write race: {e}")
            raise ConflictError("Appointment is being updated, please retry")

        logger.info(f"💊 Prescription {prescription.id} for appointment {appointment.id}")
        self._audit(
            actor,
            "prescription.created",
            {"prescription_id": prescription.id, "appointment_id": appointment.id},
        )
        return prescription

    def _build_prescription(
        self, actor: Actor, appointment: Optional[Appointment], data: PrescriptionCreate
    ) -> Prescription:
        if not appointment:
            raise NotFoundError(f"Appointment {data.appointmentId} not found")

        if not (actor.is_admin or (actor.is_doctor and appointment.doctor_id == actor.account_id)):
            raise ForbiddenError("Only the appointment's doctor or an administrator can prescribe")

        if appointment.status not in PRESCRIBABLE_STATES:
            raise AppointmentNotEligibleError(
                f"Appointment {appointment.id} is {appointment.status.value}; "
                "prescriptions need a confirmed or completed appointment"
            )

        if data.doctorId is not None and data.doctorId != appointment.doctor_id:
            raise OwnershipMismatchError("doctorId does not match the appointment's doctor")
        if data.userId is not None and data.userId != appointment.user_id:
            raise OwnershipMismatchError("userId does not match the appointment's patient")

        return Prescription(
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            user_id=appointment.user_id,
            diagnosis=data.diagnosis,
            interaction_details=data.interactionDetails,
            medicines=data.medicines,
            dosage_instructions=data.dosageInstructions,
        )

    def get_prescription(self, prescription_id: str, actor: Actor) -> Prescription:
        prescription = self.repo.get_prescription(self.db, prescription_id)
        if not prescription:
            raise NotFoundError(f"Prescription {prescription_id} not found")
        if not self._can_see_prescription(prescription, actor):
            raise ForbiddenError("You do not have access to this prescription")
        return prescription

    def list_for_appointment(self, appointment_id: str, actor: Actor) -> list[Prescription]:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        if not is_party(appointment, actor):
            raise ForbiddenError("You do not have access to this appointment")
        return self.repo.list_prescriptions(self.db, appointment_id=appointment_id)

    def list_for_user(self, user_id: str, actor: Actor) -> list[Prescription]:
        """A patient's prescriptions; doctors only see the ones they wrote"""
        if actor.is_user and actor.account_id != user_id:
            raise ForbiddenError("Patients can only read their own prescriptions")

        self.identity.require_user(user_id)
        doctor_id: Optional[str] = actor.account_id if actor.is_doctor else None
        return self.repo.list_prescriptions(self.db, user_id=user_id, doctor_id=doctor_id)

    @staticmethod
    def _can_see_prescription(prescription: Prescription, actor: Actor) -> bool:
        if actor.is_admin:
            return True
        if actor.is_doctor:
            return prescription.doctor_id == actor.account_id
        return prescription.user_id == actor.account_id

    # ------------------------------------------------------------------
    # Symptoms
    # ------------------------------------------------------------------

    def record_symptom(self, actor: Actor, data: SymptomCreate) -> Symptom:
        """Patients report their own symptoms"""
        if not actor.is_user:
            raise ForbiddenError("Only patients can report symptoms")

        symptom = Symptom(
            user_id=actor.account_id,
            symptom_description=data.symptomDescription.strip(),
            severity=data.severity,
            date_reported=data.dateReported or utcnow(),
        )
        try:
            self.repo.add_symptom(self.db, symptom)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🩺 Symptom {symptom.id} reported by {actor.account_id} (severity {data.severity})")
        return symptom

    def list_symptoms(self, user_id: str, actor: Actor) -> list[Symptom]:
        """
        Symptoms of a patient, newest first. Visible to the patient, admins and
        doctors the patient has booked at least once.
        """
        self.identity.require_user(user_id)

        if actor.is_user and actor.account_id != user_id:
            raise ForbiddenError("Patients can only read their own symptoms")
        if actor.is_doctor and not self.repo.has_appointment_between(
            self.db, actor.account_id, user_id
        ):
            raise ForbiddenError("Doctors can only read symptoms of their own patients")

        return self.repo.list_symptoms(self.db, user_id)
