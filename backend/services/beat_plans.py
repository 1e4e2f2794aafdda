"""
Field-force - Beat plans (daily visit plans)

One plan per (mr, day), listing doctors assigned to that MR.
Comparison = planned doctors vs non-cancelled visits of the MR that day.
A deviation reason can only be recorded when a deviation exists.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from config import db, now_iso
from models import Role, VisitStatus
from services.activity_logger import log_activity
from services.errors import ConflictError, NotFoundError, ValidationError
from services.lookups import DOCTOR_DISPLAY, MR_DISPLAY, attach, get_active_mr
from services.periods import day_of, day_range, parse_datetime
from services.scope import ensure_in_scope, resolve_mr_scope

logger = logging.getLogger("beat_plans")

DUPLICATE_BEAT_PLAN_MESSAGE = "Beat plan already exists for this MR and date"


async def _get_beat_plan_doc(plan_id: str) -> Dict[str, Any]:
    plan = await db.beat_plans.find_one({"id": plan_id}, {"_id": 0})
    if not plan:
        raise NotFoundError("Beat plan not found")
    return plan


async def _ensure_plan_access(user: dict, plan: Dict[str, Any], action: str) -> None:
    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, plan.get("mr_id"), f"Not authorized to {action} this plan")


async def _check_planned_doctors(planned_doctors: Any, mr_id: str) -> List[str]:
    """All doctors exist, are active and assigned to the MR"""
    if not isinstance(planned_doctors, list) or not planned_doctors:
        raise ValidationError("plannedDoctors must be an array with at least one doctor")

    doctor_ids = list(dict.fromkeys(planned_doctors))
    doctors = await db.doctors.find(
        {"id": {"$in": doctor_ids}, "is_active": {"$ne": False}},
        {"_id": 0, "id": 1, "name": 1, "assigned_mr": 1}
    ).to_list(len(doctor_ids))

    if len(doctors) != len(doctor_ids):
        raise ValidationError("One or more doctors not found or inactive")

    unassigned = [d for d in doctors if d.get("assigned_mr") != mr_id]
    if unassigned:
        raise ValidationError(
            "One or more doctors are not assigned to this MR",
            {"unassigned_doctors": [{"id": d["id"], "name": d.get("name")} for d in unassigned]}
        )
    return doctor_ids


async def _populate(plans: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    await attach(plans, "mr_id", "users", MR_DISPLAY, "mr")

    doctor_ids = list({d for p in plans for d in p.get("planned_doctors", [])})
    doctors = await db.doctors.find(
        {"id": {"$in": doctor_ids}}, DOCTOR_DISPLAY
    ).to_list(len(doctor_ids) or 1)
    by_id = {d["id"]: d for d in doctors}
    for p in plans:
        p["doctors"] = [by_id[d] for d in p.get("planned_doctors", []) if d in by_id]
    return plans


async def _populated(plan_id: str) -> Dict[str, Any]:
    plan = await _get_beat_plan_doc(plan_id)
    await _populate([plan])
    return plan


async def create_beat_plan(
    user: dict,
    date: Optional[str],
    planned_doctors: Optional[List[str]],
    notes: Optional[str] = None,
    mr_id: Optional[str] = None
) -> Dict[str, Any]:
    if not date or not isinstance(planned_doctors, list) or not planned_doctors:
        raise ValidationError("date and plannedDoctors (array with at least one doctor) are required")

    mr_id = user["id"] if user.get("role") == Role.MR.value else mr_id
    if not mr_id:
        raise ValidationError("mrId is required for non-MR users")

    await get_active_mr(mr_id)
    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, mr_id, "Not authorized to create plans for this MR")

    plan_date = day_of(parse_datetime(date, "date"))
    existing = await db.beat_plans.find_one({"mr_id": mr_id, "plan_date": plan_date}, {"_id": 0, "id": 1})
    if existing:
        raise ConflictError(DUPLICATE_BEAT_PLAN_MESSAGE, {"existing_plan_id": existing["id"]})

    doctor_ids = await _check_planned_doctors(planned_doctors, mr_id)

    now = now_iso()
    plan = {
        "id": str(uuid.uuid4()),
        "mr_id": mr_id,
        "plan_date": plan_date,
        "planned_doctors": doctor_ids,
        "notes": notes,
        "deviation_reason": None,
        "created_by": user.get("id"),
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.beat_plans.insert_one(plan)
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_BEAT_PLAN_MESSAGE)

    logger.info(f"[BEAT_PLAN] Created mr={mr_id[:8]} date={plan_date} doctors={len(doctor_ids)}")
    await log_activity(
        user=user,
        action="create",
        entity_type="beat_plan",
        entity_id=plan["id"],
        details={"mr_id": mr_id, "plan_date": plan_date}
    )
    return await _populated(plan["id"])


async def list_beat_plans(
    user: dict,
    mr_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> List[Dict[str, Any]]:
    scope = await resolve_mr_scope(user, mr_id)
    query: Dict[str, Any] = scope.as_filter("mr_id")

    date_range: Dict[str, str] = {}
    if start_date:
        date_range["$gte"] = day_of(parse_datetime(start_date, "startDate"))
    if end_date:
        date_range["$lte"] = day_of(parse_datetime(end_date, "endDate"))
    if date_range:
        query["plan_date"] = date_range

    plans = await db.beat_plans.find(query, {"_id": 0}) \
        .sort([("plan_date", -1), ("created_at", -1)]) \
        .to_list(None)
    return await _populate(plans)


async def update_beat_plan(
    user: dict,
    plan_id: str,
    planned_doctors: Optional[List[str]] = None,
    notes: Optional[str] = None,
    deviation_reason: Optional[str] = None
) -> Dict[str, Any]:
    plan = await _get_beat_plan_doc(plan_id)
    await _ensure_plan_access(user, plan, "update")

    updates: Dict[str, Any] = {}
    if planned_doctors is not None:
        updates["planned_doctors"] = await _check_planned_doctors(planned_doctors, plan["mr_id"])
    if notes is not None:
        updates["notes"] = notes
    if deviation_reason is not None:
        updates["deviation_reason"] = deviation_reason

    updates["updated_at"] = now_iso()
    await db.beat_plans.update_one({"id": plan_id}, {"$set": updates})

    await log_activity(
        user=user,
        action="update",
        entity_type="beat_plan",
        entity_id=plan_id,
        details={"fields": sorted(k for k in updates if k != "updated_at")}
    )
    return await _populated(plan_id)


# ════════════════════════════════════════════════════════════════════════
# PLANNED vs ACTUAL
# ════════════════════════════════════════════════════════════════════════

async def _day_visits(plan: Dict[str, Any]) -> List[Dict[str, Any]]:
    start, end = day_range(parse_datetime(plan["plan_date"]))
    return await db.visits.find(
        {
            "mr_id": plan["mr_id"],
            "visit_date": {"$gte": start, "$lte": end},
            "status": {"$ne": VisitStatus.CANCELLED.value},
        },
        {"_id": 0, "id": 1, "doctor_id": 1, "visit_date": 1, "check_in_time": 1,
         "check_out_time": 1, "purpose": 1, "notes": 1, "visit_outcome": 1}
    ).sort("visit_date", 1).to_list(500)


def compare_plan(planned_doctor_ids: List[str], visits: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Pure diff of planned doctor ids against the day's visits"""
    planned = set(planned_doctor_ids)
    visited = {v["doctor_id"] for v in visits}

    as_planned = [v for v in visits if v["doctor_id"] in planned]
    not_planned = [v for v in visits if v["doctor_id"] not in planned]
    not_visited = [d for d in planned_doctor_ids if d not in visited]

    return {
        "visited_as_planned": as_planned,
        "visited_but_not_planned": not_planned,
        "planned_but_not_visited": not_visited,
        "has_deviation": bool(not_visited or not_planned),
    }


async def beat_plan_comparison(user: dict, plan_id: str) -> Dict[str, Any]:
    plan = await _get_beat_plan_doc(plan_id)
    await _ensure_plan_access(user, plan, "view")

    visits = await _day_visits(plan)
    await attach(visits, "doctor_id", "doctors", DOCTOR_DISPLAY, "doctor")
    diff = compare_plan(plan.get("planned_doctors", []), visits)

    await _populate([plan])
    doctors_by_id = {d["id"]: d for d in plan["doctors"]}

    return {
        "plan": plan,
        "comparison": {
            "planned_count": len(plan.get("planned_doctors", [])),
            "actual_count": len(visits),
            "visited_as_planned_count": len(diff["visited_as_planned"]),
            "planned_but_not_visited_count": len(diff["planned_but_not_visited"]),
            "visited_but_not_planned_count": len(diff["visited_but_not_planned"]),
            "has_deviation": diff["has_deviation"],
            "deviation_reason_required": diff["has_deviation"] and not plan.get("deviation_reason"),
        },
        "visited_as_planned": diff["visited_as_planned"],
        "visited_but_not_planned": diff["visited_but_not_planned"],
        "planned_but_not_visited": [
            doctors_by_id.get(d, {"id": d}) for d in diff["planned_but_not_visited"]
        ],
    }


async def set_deviation_reason(user: dict, plan_id: str, reason: Optional[str]) -> Dict[str, Any]:
    if not reason or not reason.strip():
        raise ValidationError("deviationReason is required")

    plan = await _get_beat_plan_doc(plan_id)
    await _ensure_plan_access(user, plan, "update")

    diff = compare_plan(plan.get("planned_doctors", []), await _day_visits(plan))
    if not diff["has_deviation"]:
        raise ValidationError(
            "No deviation found. Deviation reason is only required when there is a deviation."
        )

    await db.beat_plans.update_one(
        {"id": plan_id},
        {"$set": {"deviation_reason": reason.strip(), "updated_at": now_iso()}}
    )
    logger.info(f"[BEAT_PLAN] Deviation reason recorded plan={plan_id[:8]}")
    await log_activity(
        user=user,
        action="update",
        entity_type="beat_plan",
        entity_id=plan_id,
        details={"deviation_reason": reason.strip()}
    )
    return await _populated(plan_id)
