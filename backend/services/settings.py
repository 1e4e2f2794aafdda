"""
Field-force - Settings service

Dynamic system parameters.
Collection: settings (each doc identified by key)

Available settings:
- visit_rules: max_visit_age_days + geo bounding box for visit coordinates
"""

import logging
from typing import Optional, Dict, Any

import config
from config import db, now_iso

logger = logging.getLogger("settings")


async def get_setting(key: str) -> Optional[Dict]:
    """Fetch a setting by key"""
    doc = await db.settings.find_one({"key": key}, {"_id": 0})
    return doc


async def upsert_setting(key: str, data: Dict[str, Any], updated_by: str = "system") -> Dict:
    """Create or update a setting"""
    data = {**data, "key": key, "updated_at": now_iso(), "updated_by": updated_by}

    existing = await db.settings.find_one({"key": key})
    if existing:
        await db.settings.update_one({"key": key}, {"$set": data})
    else:
        data["created_at"] = now_iso()
        await db.settings.insert_one(data)

    return await db.settings.find_one({"key": key}, {"_id": 0})


# ---- Visit rules ----

def default_visit_rules() -> Dict:
    return {
        "max_visit_age_days": config.VISIT_MAX_AGE_DAYS,
        "geo_bounds": dict(config.GEO_BOUNDS),
    }


async def get_visit_rules() -> Dict:
    """
    Visit validation rules (with defaults from env).
    A stored geo_bounds is merged key by key over the default box.
    """
    rules = default_visit_rules()
    doc = await get_setting("visit_rules")
    if not doc:
        return rules

    if doc.get("max_visit_age_days") is not None:
        rules["max_visit_age_days"] = int(doc["max_visit_age_days"])
    rules["geo_bounds"].update(doc.get("geo_bounds") or {})
    return rules
