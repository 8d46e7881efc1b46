"""Clinical repository - Database operations for prescriptions and symptoms"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, Prescription, Symptom


class ClinicalRepository:
    """Repository for clinical record database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.get(Appointment, appointment_id)

    @staticmethod
    def lock_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        """Re-read the appointment with a row lock held until the transaction ends"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    @staticmethod
    def add_prescription(db: Session, prescription: Prescription) -> Prescription:
        db.add(prescription)
        db.flush()
        return prescription

    @staticmethod
    def get_prescription(db: Session, prescription_id: str) -> Optional[Prescription]:
        return db.get(Prescription, prescription_id)

    @staticmethod
    def list_prescriptions(
        db: Session,
        appointment_id: Optional[str] = None,
        user_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> list[Prescription]:
        """Prescriptions matching the filters, newest first"""
        query = db.query(Prescription)

        if appointment_id:
            query = query.filter(Prescription.appointment_id == appointment_id)

        if user_id:
            query = query.filter(Prescription.user_id == user_id)

        if doctor_id:
            query = query.filter(Prescription.doctor_id == doctor_id)

        return query.order_by(Prescription.created_at.desc(), Prescription.id).all()

    @staticmethod
    def add_symptom(db: Session, symptom: Symptom) -> Symptom:
        db.add(symptom)
        db.flush()
        return symptom

    @staticmethod
    def list_symptoms(db: Session, user_id: str) -> list[Symptom]:
        return (
            db.query(Symptom)
            .filter(Symptom.user_id == user_id)
            .order_by(Symptom.date_reported.desc(), Symptom.id)
            .all()
        )

    @staticmethod
    def has_appointment_between(db: Session, doctor_id: str, user_id: str) -> bool:
        """True when the doctor has ever been booked by the patient, in any status"""
        return (
            db.query(Appointment.id)
            .filter(Appointment.doctor_id == doctor_id, Appointment.user_id == user_id)
            .first()
            is not None
        )
