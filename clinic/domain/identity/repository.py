"""Identity repository - Database operations for accounts and role profiles"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Account,
    AdminLog,
    Appointment,
    DoctorProfile,
    Prescription,
    Symptom,
)


class IdentityRepository:
    """Repository for account database operations"""

    @staticmethod
    def get_account(db: Session, account_id: str) -> Optional[Account]:
        """Get an account with both optional profiles loaded"""
        return (
            db.query(Account)
            .options(joinedload(Account.doctor_profile), joinedload(Account.admin_profile))
            .filter(Account.id == account_id)
            .first()
        )

    @staticmethod
    def get_account_by_email(db: Session, email: str) -> Optional[Account]:
        return db.query(Account).filter(Account.email == email).first()

    @staticmethod
    def add_account(db: Session, account: Account) -> Account:
        """Stage an account (and any attached profile) in the current transaction"""
        db.add(account)
        db.flush()
        return account

    @staticmethod
    def list_doctors(
        db: Session,
        specialization: Optional[str] = None,
        available_only: bool = False,
    ) -> list[DoctorProfile]:
        """List doctor profiles ordered by name"""
        query = (
            db.query(DoctorProfile)
            .join(Account, Account.id == DoctorProfile.id)
            .options(joinedload(DoctorProfile.account))
        )

        if specialization:
            query = query.filter(DoctorProfile.specialization.ilike(f"%{specialization}%"))

        if available_only:
            query = query.filter(DoctorProfile.is_available.is_(True))

        return query.order_by(Account.name, DoctorProfile.id).all()

    @staticmethod
    def has_history(db: Session, account_id: str) -> bool:
        """True when any clinical or audit record still references the account"""
        checks = [
            db.query(Appointment.id).filter(
                or_(Appointment.user_id == account_id, Appointment.doctor_id == account_id)
            ),
            db.query(Prescription.id).filter(
                or_(Prescription.user_id == account_id, Prescription.doctor_id == account_id)
            ),
            db.query(Symptom.id).filter(Symptom.user_id == account_id),
            db.query(AdminLog.id).filter(AdminLog.admin_id == account_id),
        ]
        return any(query.first() is not None for query in checks)

    @staticmethod
    def delete_account(db: Session, account: Account) -> None:
        """Delete an account; its role profile and schedules cascade"""
        db.delete(account)
        db.flush()
