"""Audit service - Best-effort recording of administrative actions"""

import json
import logging
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from ...config import LISTING_MAX_PAGE_SIZE, LISTING_PAGE_SIZE
from ...models import AdminLog
from ...shared.actor import Actor
from ...shared.errors import ForbiddenError
from .repository import AuditRepository
from .schemas import AuditResult

logger = logging.getLogger(__name__)


class AuditLogService:
    """
    Append-only audit sink.

    Every entry is written in its own session and transaction, after the
    mutation it describes has already committed, so an audit failure can never
    roll that mutation back. Failures are returned as a warning instead of
    being raised.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = AuditRepository()

    def record(
        self,
        admin_id: str,
        action: str,
        details: Optional[Union[str, dict[str, Any]]] = None,
    ) -> AuditResult:
        """Append an entry; never raises"""
        if isinstance(details, dict):
            details = json.dumps(details, sort_keys=True, default=str)

        try:
            with Session(bind=self.db.get_bind(), expire_on_commit=False) as audit_db:
                entry = self.repo.append(audit_db, admin_id, action, details)
                entry_id = entry.id
        except Exception as e:
            logger.warning(f"⚠️ Audit log write failed for admin {admin_id} ({action}): {e}")
            return AuditResult(warning=f"Audit log entry for '{action}' was not recorded")

        logger.info(f"📝 Audit: admin {admin_id} {action}")
        return AuditResult(entry_id=entry_id)

    def list_entries(
        self,
        actor: Actor,
        admin_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AdminLog]:
        """Read the audit trail (admins only)"""
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can read the audit log")

        limit = min(limit or LISTING_PAGE_SIZE, LISTING_MAX_PAGE_SIZE)
        return self.repo.list_entries(self.db, admin_id, action, limit)


class AuditedService:
    """Base for domain services whose mutations are audited when an admin acts"""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)
        # Audit failures surfaced to the caller for this request
        self.warnings: list[str] = []

    def _audit(self, actor: Optional[Actor], action: str, details: Optional[dict] = None) -> None:
        if actor is None or not actor.is_admin:
            return

        # The mutation is already committed; close the read snapshot that
        # reloading it opened, otherwise this session's next write would start
        # from a state older than the audit entry (SQLite WAL refuses that)
        self.db.commit()

        result = self.audit.record(actor.account_id, action, details)
        if result.warning:
            self.warnings.append(result.warning)
