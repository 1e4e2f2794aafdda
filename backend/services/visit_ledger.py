"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Visit ledger                                                  ║
║                                                                              ║
║  DUPLICATE GUARD: one non-cancelled visit per (mr, doctor, calendar day)     ║
║    - checked on create, on date move, on un-cancel                           ║
║    - backstopped by the unique sparse index on day_key                       ║
║      ("<mr_id>:<doctor_id>:<visit_day>", absent on cancelled visits)         ║
║                                                                              ║
║  Every write is followed by a coverage sync for the affected month(s).       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from config import db, now_iso, to_iso
from models import (
    NOT_MET_OUTCOMES,
    Role,
    VisitCreate,
    VisitOutcome,
    VisitStatus,
    VisitUpdate,
)
from services.activity_logger import log_activity
from services.coverage_engine import counts_toward_coverage
from services.coverage_sync import sync_coverage_for_visit
from services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from services.lookups import enrich_visits, get_active_mr, get_doctor_or_404
from services.periods import day_of, day_range, month_of, parse_datetime
from services.scope import ensure_in_scope, resolve_mr_scope
from services.settings import get_visit_rules
from services.visit_rules import (
    validate_location,
    validate_outcome,
    validate_visit_date,
    validate_visit_times,
)

logger = logging.getLogger("visit_ledger")

VISIT_PROJECTION = {"_id": 0, "day_key": 0}
DUPLICATE_VISIT_MESSAGE = "A visit for this doctor already exists on this day"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


def day_key(mr_id: str, doctor_id: str, visit_day: str) -> str:
    return f"{mr_id}:{doctor_id}:{visit_day}"


def _iso_or_none(value: Any, field: str) -> Optional[str]:
    return to_iso(parse_datetime(value, field)) if value else None


async def find_same_day_visit(
    mr_id: str,
    doctor_id: str,
    visit_dt: datetime,
    exclude_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    start, end = day_range(visit_dt)
    query: Dict[str, Any] = {
        "mr_id": mr_id,
        "doctor_id": doctor_id,
        "visit_date": {"$gte": start, "$lte": end},
        "status": {"$ne": VisitStatus.CANCELLED.value},
    }
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    return await db.visits.find_one(query, VISIT_PROJECTION)


def _duplicate(existing: Optional[Dict[str, Any]]) -> ConflictError:
    if not existing:
        return ConflictError(DUPLICATE_VISIT_MESSAGE)
    return ConflictError(
        DUPLICATE_VISIT_MESSAGE,
        {"existing_visit_id": existing["id"], "existing_visit": existing}
    )


async def _get_visit_doc(visit_id: str) -> Dict[str, Any]:
    visit = await db.visits.find_one({"id": visit_id}, VISIT_PROJECTION)
    if not visit:
        raise NotFoundError("Visit not found")
    return visit


async def _ensure_visit_access(user: dict, visit: Dict[str, Any], action: str) -> None:
    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, visit.get("mr_id"), f"Not authorized to {action} this visit")


async def _populated(visit_id: str) -> Dict[str, Any]:
    visit = await _get_visit_doc(visit_id)
    await enrich_visits([visit])
    return visit


async def _resolve_visit_mr(user: dict, requested_mr_id: Optional[str], doctor: Dict[str, Any]) -> str:
    if user.get("role") == Role.MR.value:
        # Payload mrId ignored: an MR records only their own visits
        if doctor.get("assigned_mr") != user["id"]:
            raise AuthorizationError("You can only record visits for doctors assigned to you")
        return user["id"]

    mr_id = requested_mr_id or doctor.get("assigned_mr")
    if not mr_id:
        raise ValidationError("mrId is required when the doctor has no assigned MR")

    scope = await resolve_mr_scope(user)
    ensure_in_scope(scope, mr_id, "Not authorized to record visits for this MR")
    await get_active_mr(mr_id)
    return mr_id


# ════════════════════════════════════════════════════════════════════════
# CREATE
# ════════════════════════════════════════════════════════════════════════

async def create_visit(user: dict, payload: VisitCreate) -> Dict[str, Any]:
    if not payload.doctor_id:
        raise ValidationError("doctorId is required")

    doctor = await get_doctor_or_404(payload.doctor_id)
    mr_id = await _resolve_visit_mr(user, payload.mr_id, doctor)

    outcome = payload.visit_outcome or VisitOutcome.MET_DOCTOR.value
    validate_outcome(outcome, payload.not_met_reason)

    rules = await get_visit_rules()
    visit_dt = (
        parse_datetime(payload.visit_date, "visit date")
        if payload.visit_date
        else datetime.now(timezone.utc)
    )
    validate_visit_date(visit_dt, rules["max_visit_age_days"])
    validate_visit_times(payload.check_in_time, payload.check_out_time)
    if payload.location is not None:
        validate_location(payload.location, rules["geo_bounds"])

    cancelled = payload.status == VisitStatus.CANCELLED.value
    if not cancelled:
        existing = await find_same_day_visit(mr_id, doctor["id"], visit_dt)
        if existing:
            logger.info(
                f"[VISIT] Duplicate rejected mr={mr_id[:8]} doctor={doctor['id'][:8]} "
                f"day={day_of(visit_dt)} existing={existing['id'][:8]}"
            )
            raise _duplicate(existing)

    met = outcome == VisitOutcome.MET_DOCTOR.value
    now = now_iso()
    visit = {
        "id": str(uuid.uuid4()),
        "mr_id": mr_id,
        "doctor_id": doctor["id"],
        "visit_date": to_iso(visit_dt),
        "visit_day": day_of(visit_dt),
        "status": payload.status,
        "visit_outcome": outcome,
        "not_met_reason": None if met else payload.not_met_reason.strip(),
        "attempt_remarks": None if met else payload.attempt_remarks,
        "purpose": payload.purpose,
        "products_discussed": [p.model_dump() for p in payload.products_discussed or []],
        "samples_given": [s.model_dump() for s in payload.samples_given or []],
        "orders": [o.model_dump() for o in payload.orders or []],
        "notes": payload.notes,
        "doctor_feedback": payload.doctor_feedback,
        "next_follow_up_date": _iso_or_none(payload.next_follow_up_date, "follow-up date"),
        "duration": payload.duration if payload.duration is not None else (None if met else 0),
        "location": payload.location,
        "check_in_time": _iso_or_none(payload.check_in_time, "check-in time"),
        "check_out_time": _iso_or_none(payload.check_out_time, "check-out time"),
        "created_by": user.get("id"),
        "created_at": now,
        "updated_at": now,
    }
    if not cancelled:
        visit["day_key"] = day_key(mr_id, doctor["id"], visit["visit_day"])

    try:
        await db.visits.insert_one(visit)
    except DuplicateKeyError:
        raise _duplicate(await db.visits.find_one({"day_key": visit["day_key"]}, VISIT_PROJECTION))

    logger.info(
        f"[VISIT] Recorded id={visit['id'][:8]} mr={mr_id[:8]} doctor={doctor['id'][:8]} "
        f"day={visit['visit_day']} outcome={outcome}"
    )
    await log_activity(
        user=user,
        action="create",
        entity_type="visit",
        entity_id=visit["id"],
        details={"doctor_id": doctor["id"], "mr_id": mr_id, "visit_outcome": outcome}
    )

    if counts_toward_coverage(visit["status"], outcome):
        await sync_coverage_for_visit(doctor["id"], mr_id, visit_dt)

    return await _populated(visit["id"])


# ════════════════════════════════════════════════════════════════════════
# UPDATE / DELETE
# ════════════════════════════════════════════════════════════════════════

async def update_visit(user: dict, visit_id: str, payload: VisitUpdate) -> Dict[str, Any]:
    visit = await _get_visit_doc(visit_id)
    await _ensure_visit_access(user, visit, "update")

    changes = payload.model_dump(exclude_none=True)
    rules = await get_visit_rules()

    old_dt = parse_datetime(visit["visit_date"])
    new_dt = old_dt
    if "visit_date" in changes:
        new_dt = parse_datetime(changes["visit_date"], "visit date")
        validate_visit_date(new_dt, rules["max_visit_age_days"])
        changes["visit_date"] = to_iso(new_dt)
        changes["visit_day"] = day_of(new_dt)

    old_status = visit.get("status", VisitStatus.COMPLETED.value)
    new_status = changes.get("status", old_status)
    cancelled = new_status == VisitStatus.CANCELLED.value

    moved = day_of(new_dt) != day_of(old_dt)
    reopened = old_status == VisitStatus.CANCELLED.value and not cancelled
    if not cancelled and (moved or reopened):
        existing = await find_same_day_visit(visit["mr_id"], visit["doctor_id"], new_dt, exclude_id=visit_id)
        if existing:
            raise _duplicate(existing)

    validate_visit_times(
        changes.get("check_in_time", visit.get("check_in_time")),
        changes.get("check_out_time", visit.get("check_out_time")),
    )
    for field, label in (
        ("check_in_time", "check-in time"),
        ("check_out_time", "check-out time"),
        ("next_follow_up_date", "follow-up date"),
    ):
        if field in changes:
            changes[field] = _iso_or_none(changes[field], label)

    if "location" in changes:
        validate_location(changes["location"], rules["geo_bounds"])

    outcome = changes.get("visit_outcome", visit.get("visit_outcome"))
    validate_outcome(outcome, changes.get("not_met_reason", visit.get("not_met_reason")))
    if outcome == VisitOutcome.MET_DOCTOR.value:
        for field in ("not_met_reason", "attempt_remarks"):
            if changes.get(field, visit.get(field)) is not None:
                changes[field] = None

    changes["updated_at"] = now_iso()
    update: Dict[str, Any] = {"$set": changes}
    if cancelled:
        update["$unset"] = {"day_key": ""}
    else:
        changes["day_key"] = day_key(visit["mr_id"], visit["doctor_id"], day_of(new_dt))

    try:
        await db.visits.update_one({"id": visit_id}, update)
    except DuplicateKeyError:
        raise _duplicate(await db.visits.find_one({"day_key": changes["day_key"]}, VISIT_PROJECTION))

    logger.info(
        f"[VISIT] Updated id={visit_id[:8]} status={new_status} outcome={outcome} "
        f"day={day_of(new_dt)}"
    )
    await log_activity(
        user=user,
        action="update",
        entity_type="visit",
        entity_id=visit_id,
        details={"fields": sorted(k for k in changes if k not in ("updated_at", "day_key", "visit_day"))}
    )

    # Re-sync regardless of counting status: cancellations must lower the count
    await sync_coverage_for_visit(visit["doctor_id"], visit["mr_id"], old_dt)
    if month_of(new_dt) != month_of(old_dt):
        await sync_coverage_for_visit(visit["doctor_id"], visit["mr_id"], new_dt)

    return await _populated(visit_id)


async def delete_visit(user: dict, visit_id: str) -> Dict[str, Any]:
    visit = await _get_visit_doc(visit_id)
    await _ensure_visit_access(user, visit, "delete")

    await db.visits.delete_one({"id": visit_id})

    logger.info(f"[VISIT] Deleted id={visit_id[:8]} mr={visit['mr_id'][:8]} day={visit.get('visit_day')}")
    await log_activity(
        user=user,
        action="delete",
        entity_type="visit",
        entity_id=visit_id,
        details={"doctor_id": visit["doctor_id"], "mr_id": visit["mr_id"]}
    )

    await sync_coverage_for_visit(
        visit["doctor_id"], visit["mr_id"], parse_datetime(visit["visit_date"])
    )
    return {"id": visit_id}


# ════════════════════════════════════════════════════════════════════════
# READ
# ════════════════════════════════════════════════════════════════════════

async def get_visit(user: dict, visit_id: str) -> Dict[str, Any]:
    visit = await _get_visit_doc(visit_id)
    await _ensure_visit_access(user, visit, "view")
    await enrich_visits([visit])
    return visit


def paginate(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """page >= 1, 1 <= limit <= 100 (default 10)"""
    page = max(1, page or 1)
    limit = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))
    return page, limit


def pagination_block(total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit)
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def _outcome_conditions(visit_outcome: Optional[str], outcome_filter: Optional[str]) -> List[Dict[str, Any]]:
    conditions: List[Dict[str, Any]] = []
    if visit_outcome:
        if visit_outcome not in [o.value for o in VisitOutcome]:
            raise ValidationError(f"Invalid visit outcome: {visit_outcome}")
        conditions.append({"visit_outcome": visit_outcome})

    if outcome_filter == "met":
        conditions.append({"$or": [
            {"visit_outcome": VisitOutcome.MET_DOCTOR.value},
            {"visit_outcome": {"$exists": False}},
            {"visit_outcome": None},
        ]})
    elif outcome_filter == "not_met":
        conditions.append({"visit_outcome": {"$in": NOT_MET_OUTCOMES}})
    elif outcome_filter:
        raise ValidationError("outcomeFilter must be one of: met, not_met")
    return conditions


async def list_visits(
    user: dict,
    mr_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    status: Optional[str] = None,
    visit_outcome: Optional[str] = None,
    outcome_filter: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    scope = await resolve_mr_scope(user, mr_id)
    query: Dict[str, Any] = scope.as_filter("mr_id")

    if doctor_id:
        query["doctor_id"] = doctor_id
    if status:
        if status not in [s.value for s in VisitStatus]:
            raise ValidationError(f"Invalid status: {status}")
        query["status"] = status

    date_range: Dict[str, str] = {}
    if start_date:
        date_range["$gte"] = day_range(parse_datetime(start_date, "startDate"))[0]
    if end_date:
        date_range["$lte"] = day_range(parse_datetime(end_date, "endDate"))[1]
    if date_range:
        query["visit_date"] = date_range

    conditions = _outcome_conditions(visit_outcome, outcome_filter)
    if conditions:
        query["$and"] = conditions

    page, limit = paginate(page, limit)
    total = await db.visits.count_documents(query)
    visits = await db.visits.find(query, VISIT_PROJECTION) \
        .sort([("visit_date", -1), ("created_at", -1)]) \
        .skip((page - 1) * limit) \
        .limit(limit) \
        .to_list(limit)

    await enrich_visits(visits)
    return visits, pagination_block(total, page, limit)
