"""The already-authenticated caller every domain operation acts on behalf of"""

from dataclasses import dataclass

from ..models import AccountRole


@dataclass(frozen=True)
class Actor:
    account_id: str
    role: AccountRole

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    @property
    def is_doctor(self) -> bool:
        return self.role == AccountRole.DOCTOR

    @property
    def is_user(self) -> bool:
        return self.role == AccountRole.USER
