"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Routes Coverage                                               ║
║                                                                              ║
║  Doctor coverage plans: planned visits per doctor per month, and their       ║
║  compliance against the visit ledger.                                        ║
║                                                                              ║
║  Writes, plan lists and summaries: Owner / Manager                           ║
║  MR: /my-coverage and /mr/{own id} only                                      ║
║  Every read is filtered through services.scope                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from models import CoveragePlanCreate, CoveragePlanUpdate, Role, SummaryGroupBy
from routes.auth import get_current_user
from services import coverage_plans
from services.errors import AuthorizationError
from services.permissions import PLAN_ADMINS, require_roles

router = APIRouter(prefix="/coverage", tags=["Coverage"])


# ==================== WRITES ====================

@router.post("/create", status_code=201)
@router.post("/admin/create", status_code=201)
async def create_coverage_plan(
    data: CoveragePlanCreate,
    user: dict = Depends(require_roles(*PLAN_ADMINS))
):
    plan = await coverage_plans.create_plan(
        user,
        doctor_id=data.doctor_id,
        month=data.month,
        planned_visits=data.planned_visits,
        assigned_mr=data.assigned_mr,
    )
    return {"success": True, "data": {"plan": plan}}


@router.put("/{plan_id}")
async def update_coverage_plan(
    plan_id: str,
    data: CoveragePlanUpdate,
    user: dict = Depends(require_roles(*PLAN_ADMINS))
):
    plan = await coverage_plans.update_plan(
        user,
        plan_id,
        planned_visits=data.planned_visits,
        is_active=data.is_active,
    )
    return {"success": True, "data": {"plan": plan}}


# ==================== LISTS / SUMMARIES ====================

@router.get("/plans")
@router.get("/admin/summary")
async def list_coverage_plans(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    mr_id: Optional[str] = Query(None, alias="mrId"),
    status: Optional[str] = Query(None, description="ON_TRACK|AT_RISK|MISSED"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    refresh: bool = Query(False, description="Recompute every plan from the visit ledger"),
    user: dict = Depends(require_roles(*PLAN_ADMINS))
):
    plans = await coverage_plans.list_plans(
        user,
        month=month,
        doctor_id=doctor_id,
        mr_id=mr_id,
        status=status,
        include_inactive=include_inactive,
        refresh=refresh,
    )
    return {"success": True, "count": len(plans), "data": {"plans": plans}}


@router.get("/summary")
async def coverage_summary(
    group_by: str = Query(SummaryGroupBy.MR.value, alias="groupBy", description="mr|doctor|month"),
    month: Optional[str] = Query(None),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    mr_id: Optional[str] = Query(None, alias="mrId"),
    refresh: bool = Query(False),
    user: dict = Depends(require_roles(*PLAN_ADMINS))
):
    summary = await coverage_plans.coverage_summary(
        user, group_by=group_by, month=month, doctor_id=doctor_id, mr_id=mr_id, refresh=refresh
    )
    return {"success": True, "count": len(summary["results"]), "data": summary}


@router.get("/my-coverage")
async def my_coverage(
    group_by: str = Query(SummaryGroupBy.DOCTOR.value, alias="groupBy"),
    month: Optional[str] = Query(None),
    refresh: bool = Query(False),
    user: dict = Depends(require_roles(Role.MR.value))
):
    summary = await coverage_plans.coverage_summary(
        user, group_by=group_by, month=month, mr_id=user["id"], refresh=refresh
    )
    return {"success": True, "count": len(summary["results"]), "data": summary}


@router.get("/mr/{mr_id}")
async def mr_coverage(
    mr_id: str,
    group_by: str = Query(SummaryGroupBy.DOCTOR.value, alias="groupBy"),
    month: Optional[str] = Query(None),
    refresh: bool = Query(False),
    user: dict = Depends(get_current_user)
):
    if user.get("role") == Role.MR.value and mr_id != user["id"]:
        raise AuthorizationError("Not authorized to access data for this MR")

    summary = await coverage_plans.coverage_summary(
        user, group_by=group_by, month=month, mr_id=mr_id, refresh=refresh
    )
    return {"success": True, "count": len(summary["results"]), "data": summary}


@router.get("/doctor/{doctor_id}")
async def doctor_coverage(
    doctor_id: str,
    group_by: str = Query(SummaryGroupBy.MR.value, alias="groupBy"),
    month: Optional[str] = Query(None),
    refresh: bool = Query(False),
    user: dict = Depends(require_roles(*PLAN_ADMINS))
):
    summary = await coverage_plans.coverage_summary(
        user, group_by=group_by, month=month, doctor_id=doctor_id, refresh=refresh
    )
    return {"success": True, "count": len(summary["results"]), "data": summary}


# ==================== SINGLE ====================

@router.get("/{plan_id}")
async def get_coverage_plan(
    plan_id: str,
    user: dict = Depends(get_current_user)
):
    plan = await coverage_plans.get_plan(user, plan_id)
    return {"success": True, "data": {"plan": plan}}
