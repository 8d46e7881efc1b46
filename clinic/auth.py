import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .domain.identity.service import IdentityService
from .shared.actor import Actor

logger = logging.getLogger(__name__)

ACCOUNT_ID_HEADER = "X-Account-Id"


async def get_current_actor(
    x_account_id: Optional[str] = Header(None, alias=ACCOUNT_ID_HEADER),
    db: Session = Depends(get_db),
) -> Actor:
    """
    Resolve the caller from the account id the authentication gateway has
    already verified and forwarded in the X-Account-Id header.

    Missing header -> 401. Unknown account -> 404 (NotFoundError from the
    identity service, mapped by the app's error handler).
    """
    if not x_account_id or not x_account_id.strip():
        logger.warning(f"❌ Request without {ACCOUNT_ID_HEADER} header")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": ACCOUNT_ID_HEADER},
        )

    resolved = IdentityService(db).resolve_role(x_account_id.strip())
    logger.debug(f"✅ Authenticated {resolved.role.value} {resolved.account.id}")
    return Actor(account_id=resolved.account.id, role=resolved.role)


async def get_optional_actor(
    x_account_id: Optional[str] = Header(None, alias=ACCOUNT_ID_HEADER),
    db: Session = Depends(get_db),
) -> Optional[Actor]:
    """Like get_current_actor, but anonymous callers get None instead of a 401"""
    if not x_account_id or not x_account_id.strip():
        return None
    return await get_current_actor(x_account_id, db)
