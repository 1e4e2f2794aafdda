"""
Field-force - Role scope resolution
Single rule applied by EVERY coverage / visit / beat-plan handler,
list views and aggregate views alike.

- Owner: unrestricted (or exactly the requested MR)
- Manager: MRs whose manager_id == manager.id; a requested MR outside -> 403
- MR: always self, a requested MR is ignored
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from config import db
from models import Role
from services.errors import AuthorizationError

logger = logging.getLogger("scope")


@dataclass
class MrScope:
    role: str
    mr_ids: Optional[List[str]] = None  # None = unrestricted

    @property
    def unrestricted(self) -> bool:
        return self.mr_ids is None

    def allows(self, mr_id: Optional[str]) -> bool:
        if self.mr_ids is None:
            return True
        return mr_id in self.mr_ids

    def as_filter(self, field: str = "mr_id") -> dict:
        """
        MongoDB filter for scope isolation.
        unrestricted -> no filter, one MR -> strict match, team -> $in
        """
        if self.mr_ids is None:
            return {}
        if len(self.mr_ids) == 1:
            return {field: self.mr_ids[0]}
        return {field: {"$in": self.mr_ids}}


async def get_manager_mr_ids(manager_id: str) -> List[str]:
    """MRs reporting to a manager (inactive ones included, history stays visible)"""
    mrs = await db.users.find(
        {"manager_id": manager_id, "role": Role.MR.value},
        {"_id": 0, "id": 1}
    ).to_list(None)
    return [mr["id"] for mr in mrs]


async def resolve_mr_scope(user: dict, requested_mr_id: Optional[str] = None) -> MrScope:
    role = user.get("role")

    if role == Role.MR.value:
        return MrScope(role=role, mr_ids=[user["id"]])

    if role == Role.MANAGER.value:
        team = await get_manager_mr_ids(user["id"])
        if requested_mr_id:
            if requested_mr_id not in team:
                logger.warning(
                    f"[SCOPE_DENIED] manager={user.get('id')} requested_mr={requested_mr_id}"
                )
                raise AuthorizationError("Not authorized to access data for this MR")
            return MrScope(role=role, mr_ids=[requested_mr_id])
        return MrScope(role=role, mr_ids=team)

    if role == Role.OWNER.value:
        if requested_mr_id:
            return MrScope(role=role, mr_ids=[requested_mr_id])
        return MrScope(role=role)

    raise AuthorizationError("Unknown role")


def ensure_in_scope(scope: MrScope, mr_id: Optional[str], message: str) -> None:
    if not scope.allows(mr_id):
        logger.warning(f"[SCOPE_DENIED] role={scope.role} mr={mr_id}")
        raise AuthorizationError(message)
