"""Clinical domain schemas - Pydantic models for validation"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import Prescription, Symptom


class PrescriptionCreate(BaseModel):
    """Schema for attaching a prescription to an appointment"""

    appointmentId: str
    diagnosis: str = Field(min_length=1)
    interactionDetails: str = Field(min_length=1)
    medicines: str = Field(min_length=1)
    dosageInstructions: str = Field(min_length=1)
    # Optional; when given they must match the appointment
    doctorId: Optional[str] = None
    userId: Optional[str] = None

    @field_validator("diagnosis", "interactionDetails", "medicines", "dosageInstructions")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v.strip()


class PrescriptionResponse(BaseModel):
    """Schema for prescription response"""

    id: str
    appointmentId: str
    doctorId: str
    userId: str
    diagnosis: str
    interactionDetails: str
    medicines: str
    dosageInstructions: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, prescription: Prescription) -> "PrescriptionResponse":
        return cls(
            id=prescription.id,
            appointmentId=prescription.appointment_id,
            doctorId=prescription.doctor_id,
            userId=prescription.user_id,
            diagnosis=prescription.diagnosis,
            interactionDetails=prescription.interaction_details,
            medicines=prescription.medicines,
            dosageInstructions=prescription.dosage_instructions,
            createdAt=prescription.created_at,
            updatedAt=prescription.updated_at,
        )


class PrescriptionMutationResponse(BaseModel):
    prescription: PrescriptionResponse
    warnings: list[str] = []


class SymptomCreate(BaseModel):
    """Schema for a patient reporting a symptom"""

    symptomDescription: str = Field(min_length=1, max_length=5000)
    severity: int = Field(ge=1, le=10)
    dateReported: Optional[datetime] = None

    @field_validator("dateReported")
    @classmethod
    def normalize_to_naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class SymptomResponse(BaseModel):
    id: str
    userId: str
    symptomDescription: str
    severity: int
    dateReported: datetime
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, symptom: Symptom) -> "SymptomResponse":
        return cls(
            id=symptom.id,
            userId=symptom.user_id,
            symptomDescription=symptom.symptom_description,
            severity=symptom.severity,
            dateReported=symptom.date_reported,
            createdAt=symptom.created_at,
        )
