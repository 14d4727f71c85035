"""
Request context dependencies.

Authentication happens upstream; the gateway forwards the caller's tenant and
user id as headers. Every payroll endpoint is scoped to the tenant header.
"""
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


def get_current_tenant(x_tenant_id: Optional[int] = Header(None, alias="X-Tenant-ID")) -> int:
    """Tenant id for the request; refuses the request when it is missing."""
    if x_tenant_id is None:
        logger.warning("Request rejected: missing tenant header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tenant context is required",
        )
    return x_tenant_id


def get_current_actor(x_user_id: Optional[int] = Header(None, alias="X-User-ID")) -> Optional[int]:
    """Acting user, recorded on audit entries and paid_by stamps."""
    return x_user_id
