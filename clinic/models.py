import enum
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .shared.timeutils import utcnow


def generate_id():
    """Generate an opaque unique identifier"""
    return str(uuid.uuid4())


class AccountRole(str, enum.Enum):
    USER = "user"
    DOCTOR = "doctor"
    ADMIN = "admin"


class DayOfWeek(str, enum.Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def ordinal(self) -> int:
        return list(DayOfWeek).index(self)


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def _enum_column_type(enum_cls, name):
    # Store the enum values ("doctor", "Monday", "pending"), not the member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
        length=20,
    )


class Account(Base):
    """One login identity; role selects which profile row extends it"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    # Immutable after creation
    role = Column(_enum_column_type(AccountRole, "account_role"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    doctor_profile = relationship(
        "DoctorProfile", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    admin_profile = relationship(
        "AdminProfile", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )


class DoctorProfile(Base):
    __tablename__ = "doctors"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    specialization = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    # Global on/off switch, ANDed with the weekly schedule windows
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    account = relationship("Account", back_populates="doctor_profile")
    schedules = relationship("Schedule", back_populates="doctor", cascade="all, delete-orphan")


class AdminProfile(Base):
    __tablename__ = "admins"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    account = relationship("Account", back_populates="admin_profile")


class Schedule(Base):
    """A doctor's recurring availability window for one weekday"""

    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="doctor_schedule_idx"),
        CheckConstraint("start_time < end_time", name="schedules_time_range_check"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(_enum_column_type(DayOfWeek, "day_of_week"), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    doctor = relationship("DoctorProfile", back_populates="schedules")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="appointments_time_range_check"),
        Index("appointments_doctor_date_idx", "doctor_id", "appointment_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False, index=True)
    appointment_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    # Lifecycle: pending -> confirmed -> completed, pending|confirmed -> cancelled
    status = Column(
        _enum_column_type(AppointmentStatus, "appointment_status"),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # Doubles as the optimistic-concurrency version (see __mapper_args__)
    updated_at = Column(DateTime, nullable=False)

    user = relationship("Account")
    doctor = relationship("DoctorProfile")

    __mapper_args__ = {
        "version_id_col": updated_at,
        "version_id_generator": lambda _previous: utcnow(),
    }


class Symptom(Base):
    """Self-reported symptom, informational only"""

    __tablename__ = "symptoms"
    __table_args__ = (
        CheckConstraint("severity BETWEEN 1 AND 10", name="symptoms_severity_check"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    symptom_description = Column(Text, nullable=False)
    severity = Column(Integer, nullable=False)
    date_reported = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Prescription(Base):
    """Append-only clinical record attached to a confirmed or completed appointment"""

    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    # Denormalized from the appointment at creation time
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    diagnosis = Column(Text, nullable=False)
    interaction_details = Column(Text, nullable=False)
    medicines = Column(Text, nullable=False)
    dosage_instructions = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    appointment = relationship("Appointment")


class AdminLog(Base):
    """Append-only audit entry for a privileged mutation"""

    __tablename__ = "admin_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    admin_id = Column(String(36), ForeignKey("admins.id"), nullable=False, index=True)
    action = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
