"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Doctor coverage plan store                                    ║
║                                                                              ║
║  UNIQUENESS: one ACTIVE plan per (doctor, month)                             ║
║    - checked before insert                                                   ║
║    - backstopped by the unique sparse index on active_key                    ║
║      ("<doctor_id>:<month>", present only while is_active)                   ║
║                                                                              ║
║  Plans are never hard-deleted: is_active=False keeps the history.            ║
║  Derived fields always come from services.coverage_engine.                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import math
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from config import db, now_iso
from models import CoverageStatus, SummaryGroupBy
from services.activity_logger import log_activity
from services.coverage_engine import (
    classify_compliance,
    compute_coverage_stats,
    derive_compliance,
    refresh_plan,
    round2,
)
from services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from services.lookups import (
    DOCTOR_DISPLAY,
    MR_DISPLAY,
    attach,
    enrich_plans,
    get_active_mr,
    get_doctor_or_404,
)
from services.periods import parse_month
from services.permissions import PLAN_ADMINS
from services.scope import ensure_in_scope, resolve_mr_scope

logger = logging.getLogger("coverage_plans")

PLAN_PROJECTION = {"_id": 0, "active_key": 0}
DUPLICATE_PLAN_MESSAGE = "Coverage plan already exists for this doctor and month"


def active_key(doctor_id: str, month: str) -> str:
    return f"{doctor_id}:{month}"


async def _active_key_conflict(key: str) -> ConflictError:
    """Conflict naming the plan that holds the active slot in storage"""
    holder = await db.doctor_coverage_plans.find_one({"active_key": key}, {"_id": 0, "id": 1})
    return ConflictError(DUPLICATE_PLAN_MESSAGE, {"existing_plan_id": holder["id"]} if holder else None)


def coerce_planned_visits(value: Any) -> float:
    """Non-negative number. '12' -> 12, 7.5 -> 7.5"""
    if value is None or isinstance(value, bool):
        raise ValidationError("plannedVisits must be a non-negative number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError("plannedVisits must be a non-negative number")
    if math.isnan(number) or math.isinf(number) or number < 0:
        raise ValidationError("plannedVisits must be a non-negative number")
    return int(number) if number.is_integer() else number


def _require_plan_manager(user: dict, action: str) -> None:
    if user.get("role") not in PLAN_ADMINS:
        raise AuthorizationError(f"Not authorized to {action} coverage plans")


async def get_plan_doc(plan_id: str) -> Dict[str, Any]:
    plan = await db.doctor_coverage_plans.find_one({"id": plan_id}, PLAN_PROJECTION)
    if not plan:
        raise NotFoundError("Doctor coverage plan not found")
    return plan


async def _populated(plan_id: str) -> Dict[str, Any]:
    plan = await get_plan_doc(plan_id)
    await enrich_plans([plan])
    return plan


# ════════════════════════════════════════════════════════════════════════
# CREATE / UPDATE
# ════════════════════════════════════════════════════════════════════════

async def create_plan(
    user: dict,
    doctor_id: Optional[str],
    month: Optional[str],
    planned_visits: Any,
    assigned_mr: Optional[str] = None
) -> Dict[str, Any]:
    _require_plan_manager(user, "create")

    if not doctor_id or not month or planned_visits is None:
        raise ValidationError("doctorId, month (YYYY-MM), and plannedVisits are required")

    planned = coerce_planned_visits(planned_visits)
    parse_month(month)

    doctor = await get_doctor_or_404(doctor_id, active_only=True)

    mr_id = assigned_mr or doctor.get("assigned_mr")
    if not mr_id:
        raise ValidationError(
            "Assigned MR is required. Assign the doctor to an MR or provide assignedMR."
        )

    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, mr_id, "Not authorized to create coverage plans for this MR")
    await get_active_mr(mr_id)

    existing = await db.doctor_coverage_plans.find_one(
        {"doctor_id": doctor_id, "month": month, "is_active": True},
        {"_id": 0, "id": 1}
    )
    if existing:
        raise ConflictError(DUPLICATE_PLAN_MESSAGE, {"existing_plan_id": existing["id"]})

    stats = await compute_coverage_stats(doctor_id, mr_id, month, planned)
    now = now_iso()
    plan = {
        "id": str(uuid.uuid4()),
        "doctor_id": doctor_id,
        "assigned_mr": mr_id,
        "month": month,
        "planned_visits": planned,
        **stats,
        "is_active": True,
        "active_key": active_key(doctor_id, month),
        "created_by": user.get("id"),
        "created_at": now,
        "updated_at": now,
    }

    try:
        await db.doctor_coverage_plans.insert_one(plan)
    except DuplicateKeyError:
        raise await _active_key_conflict(plan["active_key"])

    logger.info(
        f"[COVERAGE] Plan created doctor={doctor_id[:8]} mr={mr_id[:8]} month={month} "
        f"planned={planned} actual={stats['actual_visits']}"
    )
    await log_activity(
        user=user,
        action="create",
        entity_type="coverage_plan",
        entity_id=plan["id"],
        details={"doctor_id": doctor_id, "month": month, "planned_visits": planned}
    )

    return await _populated(plan["id"])


async def update_plan(
    user: dict,
    plan_id: str,
    planned_visits: Any = None,
    is_active: Optional[bool] = None
) -> Dict[str, Any]:
    """
    Recomputes actual visits fresh from the ledger (never incrementally),
    optionally flips is_active.
    """
    _require_plan_manager(user, "update")
    plan = await get_plan_doc(plan_id)

    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, plan.get("assigned_mr"), "Not authorized to update this coverage plan")

    new_planned = (
        coerce_planned_visits(planned_visits)
        if planned_visits is not None
        else plan.get("planned_visits", 0)
    )

    if is_active is not None and bool(is_active) != plan.get("is_active", True):
        await _set_active(plan, bool(is_active))
        plan["is_active"] = bool(is_active)

    await refresh_plan(plan, new_planned)

    await log_activity(
        user=user,
        action="update",
        entity_type="coverage_plan",
        entity_id=plan_id,
        details={"planned_visits": new_planned, "is_active": plan.get("is_active", True)}
    )

    return await _populated(plan_id)


async def _set_active(plan: Dict[str, Any], active: bool) -> None:
    if not active:
        await db.doctor_coverage_plans.update_one(
            {"id": plan["id"]},
            {"$set": {"is_active": False}, "$unset": {"active_key": ""}}
        )
        return

    other = await db.doctor_coverage_plans.find_one(
        {
            "id": {"$ne": plan["id"]},
            "doctor_id": plan["doctor_id"],
            "month": plan["month"],
            "is_active": True,
        },
        {"_id": 0, "id": 1}
    )
    if other:
        raise ConflictError(DUPLICATE_PLAN_MESSAGE, {"existing_plan_id": other["id"]})

    try:
        await db.doctor_coverage_plans.update_one(
            {"id": plan["id"]},
            {"$set": {"is_active": True, "active_key": active_key(plan["doctor_id"], plan["month"])}}
        )
    except DuplicateKeyError:
        raise await _active_key_conflict(active_key(plan["doctor_id"], plan["month"]))


# ════════════════════════════════════════════════════════════════════════
# READ: single / list / summary
# ════════════════════════════════════════════════════════════════════════

async def get_plan(user: dict, plan_id: str) -> Dict[str, Any]:
    plan = await get_plan_doc(plan_id)
    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, plan.get("assigned_mr"), "Not authorized to view this coverage plan")
    await enrich_plans([plan])
    return plan


async def _scoped_plans(
    user: dict,
    month: Optional[str] = None,
    doctor_id: Optional[str] = None,
    mr_id: Optional[str] = None,
    include_inactive: bool = False,
    refresh: bool = False
) -> List[Dict[str, Any]]:
    """Plans visible to the caller. Shared by list AND summary."""
    scope = await resolve_mr_scope(user, mr_id)

    query: Dict[str, Any] = scope.as_filter("assigned_mr")
    if not include_inactive:
        query["is_active"] = True
    if month:
        parse_month(month)
        query["month"] = month
    if doctor_id:
        query["doctor_id"] = doctor_id

    plans = await db.doctor_coverage_plans.find(query, PLAN_PROJECTION) \
        .sort([("month", -1), ("created_at", -1)]) \
        .to_list(None)

    if refresh:
        # Self-healing read: cached derived fields are re-derived from the ledger
        plans = [await refresh_plan(p) for p in plans]

    return plans


async def list_plans(
    user: dict,
    month: Optional[str] = None,
    doctor_id: Optional[str] = None,
    mr_id: Optional[str] = None,
    status: Optional[str] = None,
    include_inactive: bool = False,
    refresh: bool = False
) -> List[Dict[str, Any]]:
    if status and status not in [s.value for s in CoverageStatus]:
        raise ValidationError(f"Invalid status: {status}")

    plans = await _scoped_plans(user, month, doctor_id, mr_id, include_inactive, refresh)
    if status:
        plans = [p for p in plans if p.get("status") == status]

    return await enrich_plans(plans)


def _group_key(group_by: SummaryGroupBy) -> str:
    return {
        SummaryGroupBy.MR: "assigned_mr",
        SummaryGroupBy.DOCTOR: "doctor_id",
        SummaryGroupBy.MONTH: "month",
    }[group_by]


def summarize_plans(plans: List[Dict[str, Any]], group_by: SummaryGroupBy) -> List[Dict[str, Any]]:
    """
    Pure grouping step.
    MR / doctor rows get compliance + status recomputed from SUMMED totals,
    not from the average of per-plan percentages.
    """
    key_field = _group_key(group_by)
    groups = defaultdict(lambda: {"total_planned": 0, "total_actual": 0, "compliances": [], "plan_count": 0})

    for p in plans:
        g = groups[p.get(key_field)]
        g["total_planned"] += p.get("planned_visits", 0) or 0
        g["total_actual"] += p.get("actual_visits", 0) or 0
        g["compliances"].append(p.get("compliance_percentage", 0) or 0)
        g["plan_count"] += 1

    rows = []
    for key, g in groups.items():
        row = {
            key_field: key,
            "total_planned": g["total_planned"],
            "total_actual": g["total_actual"],
            "avg_compliance": round2(sum(g["compliances"]) / g["plan_count"]),
            "plan_count": g["plan_count"],
        }
        if group_by in (SummaryGroupBy.MR, SummaryGroupBy.DOCTOR):
            compliance = derive_compliance(g["total_actual"], g["total_planned"])
            row["compliance"] = compliance
            row["status"] = classify_compliance(compliance)
        rows.append(row)

    if group_by == SummaryGroupBy.MONTH:
        rows.sort(key=lambda r: r["month"] or "", reverse=True)
    else:
        rows.sort(key=lambda r: r[key_field] or "")
    return rows


async def coverage_summary(
    user: dict,
    group_by: str = SummaryGroupBy.MR.value,
    month: Optional[str] = None,
    doctor_id: Optional[str] = None,
    mr_id: Optional[str] = None,
    refresh: bool = False
) -> Dict[str, Any]:
    try:
        grouping = SummaryGroupBy(group_by or SummaryGroupBy.MR.value)
    except ValueError:
        raise ValidationError("groupBy must be one of: mr, doctor, month")

    plans = await _scoped_plans(user, month, doctor_id, mr_id, refresh=refresh)
    rows = summarize_plans(plans, grouping)

    if grouping == SummaryGroupBy.MR:
        await attach(rows, "assigned_mr", "users", MR_DISPLAY, "mr")
    elif grouping == SummaryGroupBy.DOCTOR:
        await attach(rows, "doctor_id", "doctors", DOCTOR_DISPLAY, "doctor")

    return {"group_by": grouping.value, "results": rows}
