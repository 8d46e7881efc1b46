"""Audit router - Read access to the admin log"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from ...shared.actor import Actor
from .schemas import AdminLogResponse
from .service import AuditLogService

router = APIRouter(prefix="/admin/logs", tags=["Admin"])


def get_audit_service(db: Session = Depends(get_db)) -> AuditLogService:
    """Dependency injection for AuditLogService"""
    return AuditLogService(db)


@router.get("", response_model=list[AdminLogResponse])
async def list_admin_logs(
    adminId: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: AuditLogService = Depends(get_audit_service),
):
    """Newest audit entries first (admins only)"""
    entries = service.list_entries(actor, adminId, action, limit)
    return [AdminLogResponse.from_model(e) for e in entries]
