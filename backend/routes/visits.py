"""
Field-force - Routes Visits
Visit ledger: record, edit, list, delete. All roles, scoped.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from models import VisitCreate, VisitUpdate
from routes.auth import get_current_user
from services import visit_ledger

router = APIRouter(prefix="/visits", tags=["Visits"])


@router.post("", status_code=201)
async def create_visit(data: VisitCreate, user: dict = Depends(get_current_user)):
    visit = await visit_ledger.create_visit(user, data)
    return {"success": True, "data": {"visit": visit}}


@router.get("")
async def list_visits(
    mr_id: Optional[str] = Query(None, alias="mrId"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    status: Optional[str] = Query(None),
    visit_outcome: Optional[str] = Query(None, alias="visitOutcome"),
    outcome_filter: Optional[str] = Query(None, alias="outcomeFilter", description="met|not_met"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    user: dict = Depends(get_current_user)
):
    visits, pagination = await visit_ledger.list_visits(
        user,
        mr_id=mr_id,
        doctor_id=doctor_id,
        start_date=start_date,
        end_date=end_date,
        status=status,
        visit_outcome=visit_outcome,
        outcome_filter=outcome_filter,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "count": len(visits),
        "pagination": pagination,
        "data": {"visits": visits},
    }


@router.get("/{visit_id}")
async def get_visit(visit_id: str, user: dict = Depends(get_current_user)):
    visit = await visit_ledger.get_visit(user, visit_id)
    return {"success": True, "data": {"visit": visit}}


@router.put("/{visit_id}")
async def update_visit(visit_id: str, data: VisitUpdate, user: dict = Depends(get_current_user)):
    visit = await visit_ledger.update_visit(user, visit_id, data)
    return {"success": True, "data": {"visit": visit}}


@router.delete("/{visit_id}")
async def delete_visit(visit_id: str, user: dict = Depends(get_current_user)):
    deleted = await visit_ledger.delete_visit(user, visit_id)
    return {"success": True, "data": deleted}
