"""Audit repository - Database operations for admin log entries"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AdminLog


class AuditRepository:
    """Repository for admin log database operations"""

    @staticmethod
    def append(db: Session, admin_id: str, action: str, details: Optional[str]) -> AdminLog:
        """Insert one audit entry and commit"""
        entry = AdminLog(admin_id=admin_id, action=action, details=details)
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def list_entries(
        db: Session,
        admin_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 50,
    ) -> list[AdminLog]:
        """Newest entries first, optionally filtered by admin or action"""
        query = db.query(AdminLog)

        if admin_id:
            query = query.filter(AdminLog.admin_id == admin_id)

        if action:
            query = query.filter(AdminLog.action == action)

        return query.order_by(AdminLog.timestamp.desc(), AdminLog.id).limit(limit).all()
