"""
Field-force - Role gates
FastAPI dependencies restricting a route to a set of roles.
Data-level isolation (which MRs a caller may see) lives in services.scope.
"""

import logging
from fastapi import Depends, HTTPException

from models import Role

logger = logging.getLogger("permissions")

# ════════════════════════════════════════════════════════════════════════
# ROLE SETS
# ════════════════════════════════════════════════════════════════════════

PLAN_ADMINS = (Role.OWNER.value, Role.MANAGER.value)


def user_has_role(user: dict, roles) -> bool:
    return user.get("role") in roles


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_roles(*roles: str):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_roles("Owner", "Manager"))
    """
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if not user_has_role(user, roles):
            logger.warning(
                f"[PERMISSION_DENIED] user={user.get('email')} "
                f"role={user.get('role')} allowed={','.join(roles)}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"User role {user.get('role')} is not authorized. Allowed roles: {', '.join(roles)}"
            )
        return user

    return _check
