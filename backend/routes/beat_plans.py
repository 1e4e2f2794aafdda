"""
Field-force - Routes Beat plans
Daily visit plans and planned-vs-actual comparison.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from models import BeatPlanCreate, BeatPlanUpdate, DeviationReasonUpdate
from routes.auth import get_current_user
from services import beat_plans

router = APIRouter(prefix="/beat-plans", tags=["Beat plans"])


@router.post("", status_code=201)
async def create_beat_plan(data: BeatPlanCreate, user: dict = Depends(get_current_user)):
    plan = await beat_plans.create_beat_plan(
        user,
        date=data.date,
        planned_doctors=data.planned_doctors,
        notes=data.notes,
        mr_id=data.mr_id,
    )
    return {"success": True, "data": {"plan": plan}}


@router.get("")
async def list_beat_plans(
    mr_id: Optional[str] = Query(None, alias="mrId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: dict = Depends(get_current_user)
):
    plans = await beat_plans.list_beat_plans(user, mr_id=mr_id, start_date=start_date, end_date=end_date)
    return {"success": True, "count": len(plans), "data": {"plans": plans}}


@router.put("/{plan_id}")
async def update_beat_plan(plan_id: str, data: BeatPlanUpdate, user: dict = Depends(get_current_user)):
    plan = await beat_plans.update_beat_plan(
        user,
        plan_id,
        planned_doctors=data.planned_doctors,
        notes=data.notes,
        deviation_reason=data.deviation_reason,
    )
    return {"success": True, "data": {"plan": plan}}


@router.get("/{plan_id}/comparison")
async def beat_plan_comparison(plan_id: str, user: dict = Depends(get_current_user)):
    comparison = await beat_plans.beat_plan_comparison(user, plan_id)
    return {"success": True, "data": comparison}


@router.put("/{plan_id}/deviation-reason")
async def set_deviation_reason(plan_id: str, data: DeviationReasonUpdate, user: dict = Depends(get_current_user)):
    plan = await beat_plans.set_deviation_reason(user, plan_id, data.deviation_reason)
    return {"success": True, "data": {"plan": plan}}
