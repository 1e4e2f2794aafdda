"""
Shared lookups: doctors, MRs, and display enrichment of plans / visits.
"""

from typing import Any, Dict, List, Optional

from config import db
from models import Role
from services.errors import NotFoundError, ValidationError

DOCTOR_DISPLAY = {"_id": 0, "id": 1, "name": 1, "specialization": 1, "clinic_name": 1, "city": 1}
MR_DISPLAY = {"_id": 0, "id": 1, "name": 1, "email": 1, "phone": 1, "employee_id": 1}


async def get_doctor_or_404(doctor_id: Optional[str], active_only: bool = False) -> Dict[str, Any]:
    doctor = await db.doctors.find_one({"id": doctor_id}, {"_id": 0}) if doctor_id else None
    if not doctor or (active_only and not doctor.get("is_active", True)):
        raise NotFoundError("Doctor not found")
    return doctor


async def get_active_mr(mr_id: str) -> Dict[str, Any]:
    """MR referenced by a write: must exist, be an MR, be active"""
    mr = await db.users.find_one({"id": mr_id}, {"_id": 0, "password": 0})
    if not mr or mr.get("role") != Role.MR.value or not mr.get("is_active", True):
        raise ValidationError("Invalid or inactive MR")
    return mr


async def attach(
    docs: List[Dict[str, Any]],
    field: str,
    collection: str,
    projection: Dict[str, int],
    as_key: str
) -> List[Dict[str, Any]]:
    """
    Populate docs[i][as_key] from docs[i][field] with one $in query.
    Missing references become None.
    """
    ids = list({d.get(field) for d in docs if d.get(field)})
    found = await db[collection].find({"id": {"$in": ids}}, projection).to_list(len(ids) or 1)
    by_id = {f["id"]: f for f in found}
    for d in docs:
        d[as_key] = by_id.get(d.get(field))
    return docs


async def enrich_plans(plans: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    await attach(plans, "doctor_id", "doctors", DOCTOR_DISPLAY, "doctor")
    await attach(plans, "assigned_mr", "users", MR_DISPLAY, "mr")
    return plans


async def enrich_visits(visits: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    await attach(visits, "doctor_id", "doctors", DOCTOR_DISPLAY, "doctor")
    await attach(visits, "mr_id", "users", MR_DISPLAY, "mr")
    return visits
