"""Identity service - Role resolution and account lifecycle"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Account, AccountRole, AdminProfile, DoctorProfile
from ...security_utils import hash_password
from ...shared.actor import Actor
from ...shared.errors import (
    ConflictError,
    EmailTakenError,
    ForbiddenError,
    NotFoundError,
    RoleMismatchError,
)
from ..audit.service import AuditedService
from .repository import IdentityRepository
from .schemas import AccountCreate, DoctorProfileUpdate, ResolvedRole

logger = logging.getLogger(__name__)


class IdentityService(AuditedService):
    """Service layer for account identity and role dispatch"""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repo = IdentityRepository()

    # ------------------------------------------------------------------
    # Role resolution
    # ------------------------------------------------------------------

    def get_account(self, account_id: str) -> Account:
        account = self.repo.get_account(self.db, account_id)
        if not account:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def resolve_role(self, account_id: str) -> ResolvedRole:
        """Resolve an account id to its role and, for doctors and admins, its profile"""
        account = self.get_account(account_id)

        if account.role == AccountRole.USER:
            return ResolvedRole(account=account, role=AccountRole.USER)

        profile = (
            account.doctor_profile if account.role == AccountRole.DOCTOR else account.admin_profile
        )
        if profile is None:
            # Account and profile are written together, so this means corrupted data
            logger.error(f"❌ Account {account_id} has role {account.role.value} but no profile")
            raise NotFoundError(f"{account.role.value.capitalize()} profile for {account_id} not found")

        return ResolvedRole(account=account, role=account.role, profile=profile)

    def require_role(self, account_id: str, role: AccountRole) -> ResolvedRole:
        resolved = self.resolve_role(account_id)
        if resolved.role != role:
            raise RoleMismatchError(
                f"Account {account_id} is a {resolved.role.value}, not a {role.value}"
            )
        return resolved

    def require_user(self, account_id: str) -> Account:
        return self.require_role(account_id, AccountRole.USER).account

    def require_doctor(self, account_id: str) -> DoctorProfile:
        return self.require_role(account_id, AccountRole.DOCTOR).profile

    def require_admin(self, account_id: str) -> AdminProfile:
        return self.require_role(account_id, AccountRole.ADMIN).profile

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def create_account(self, data: AccountCreate, actor: Optional[Actor] = None) -> Account:
        """
        Create an account and its role profile in a single transaction.

        Anyone may register a plain user account; doctor and admin accounts
        can only be created by an admin.
        """
        if data.role != AccountRole.USER and (actor is None or not actor.is_admin):
            raise ForbiddenError(f"Only administrators can create {data.role.value} accounts")

        if self.repo.get_account_by_email(self.db, data.email):
            raise EmailTakenError("Email already registered")

        account = Account(
            name=data.name.strip(),
            email=data.email,
            password_hash=hash_password(data.password),
            role=data.role,
        )
        if data.role == AccountRole.DOCTOR:
            account.doctor_profile = DoctorProfile(
                specialization=data.specialization.strip(),
                phone=data.phone,
                is_available=data.isAvailable,
            )
        elif data.role == AccountRole.ADMIN:
            account.admin_profile = AdminProfile()

        try:
            self.repo.add_account(self.db, account)
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration with the same email
            self.db.rollback()
            raise EmailTakenError("Email already registered")

        logger.info(f"✅ Created {account.role.value} account {account.id}")
        self._audit(
            actor, "account.created", {"account_id": account.id, "role": account.role.value}
        )
        return account

    def delete_account(self, account_id: str, actor: Actor) -> None:
        """Remove an account together with its role profile (admins only)"""
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can delete accounts")
        if actor.account_id == account_id:
            raise ForbiddenError("Administrators cannot delete their own account")

        account = self.get_account(account_id)
        if self.repo.has_history(self.db, account_id):
            raise ConflictError("Account is referenced by appointments or clinical records")

        role = account.role
        try:
            self.repo.delete_account(self.db, account)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Account is referenced by appointments or clinical records")

        logger.info(f"🗑️ Deleted {role.value} account {account_id}")
        self._audit(actor, "account.deleted", {"account_id": account_id, "role": role.value})

    # ------------------------------------------------------------------
    # Doctor profiles
    # ------------------------------------------------------------------

    def get_doctor(self, doctor_id: str) -> DoctorProfile:
        return self.require_doctor(doctor_id)

    def list_doctors(
        self, specialization: Optional[str] = None, available_only: bool = False
    ) -> list[DoctorProfile]:
        return self.repo.list_doctors(self.db, specialization, available_only)

    def update_doctor_profile(
        self, doctor_id: str, data: DoctorProfileUpdate, actor: Actor
    ) -> DoctorProfile:
        """Update specialization, phone or the global availability switch"""
        if not (actor.is_admin or (actor.is_doctor and actor.account_id == doctor_id)):
            raise ForbiddenError("Only the doctor or an administrator can update this profile")

        profile = self.require_doctor(doctor_id)

        changes = {}
        if data.specialization is not None:
            profile.specialization = data.specialization.strip()
            changes["specialization"] = profile.specialization
        if data.phone is not None:
            profile.phone = data.phone
            changes["phone"] = profile.phone
        if data.isAvailable is not None:
            profile.is_available = data.isAvailable
            changes["is_available"] = profile.is_available

        self.db.commit()
        self.db.refresh(profile)

        logger.info(f"✅ Updated doctor profile {doctor_id}: {sorted(changes)}")
        self._audit(actor, "doctor.updated", {"doctor_id": doctor_id, **changes})
        return profile
