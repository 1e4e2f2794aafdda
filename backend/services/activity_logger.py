"""
Activity journal service
"""

import uuid

from config import db, now_iso


async def log_activity(
    user: dict,
    action: str,
    entity_type: str,
    entity_id: str = None,
    details: dict = None
):
    """
    Write one entry to the activity journal

    Actions: create, update, delete, login
    Entity types: coverage_plan, visit, beat_plan, user
    """
    log_entry = {
        "id": str(uuid.uuid4()),
        "user_id": user.get("id", "system"),
        "user_email": user.get("email", "system"),
        "user_name": user.get("name", "System"),
        "user_role": user.get("role"),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": details or {},
        "created_at": now_iso()
    }

    await db.activity_logs.insert_one(log_entry)
    log_entry.pop("_id", None)
    return log_entry
