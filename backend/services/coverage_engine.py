"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Coverage compliance engine                                    ║
║                                                                              ║
║  actual_visits = count of visits for (doctor, mr, month) where               ║
║    status != Cancelled AND (outcome == MET_DOCTOR OR outcome absent)         ║
║                                                                              ║
║  compliance = planned > 0 ? round2(actual / planned * 100) : 0               ║
║  status     = compliance > 80 -> ON_TRACK                                    ║
║               compliance >= 50 -> AT_RISK                                    ║
║               else -> MISSED                                                 ║
║                                                                              ║
║  ALWAYS recomputed from the ledger, never incremented: edits, cancellations  ║
║  and backfilled dates cannot make the plan drift.                            ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from config import db, now_iso
from models import CoverageStatus, VisitOutcome, VisitStatus
from services.periods import month_range

logger = logging.getLogger("coverage_engine")

ON_TRACK_ABOVE = 80
AT_RISK_FROM = 50
MAX_COMPLIANCE = 100.0


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def derive_compliance(actual_visits: int, planned_visits: float) -> float:
    if not planned_visits or planned_visits <= 0:
        return 0.0
    return min(round2(actual_visits / planned_visits * 100), MAX_COMPLIANCE)


def classify_compliance(compliance: float) -> str:
    # >80 is exclusive, >=50 inclusive: 80.0 is AT_RISK, 50.0 is AT_RISK
    if compliance > ON_TRACK_ABOVE:
        return CoverageStatus.ON_TRACK.value
    if compliance >= AT_RISK_FROM:
        return CoverageStatus.AT_RISK.value
    return CoverageStatus.MISSED.value


def counts_toward_coverage(status: Optional[str], outcome: Optional[str]) -> bool:
    """Doctor was actually met"""
    if status == VisitStatus.CANCELLED.value:
        return False
    return outcome in (None, VisitOutcome.MET_DOCTOR.value)


def met_visits_filter(doctor_id: str, mr_id: str, month: str) -> Dict[str, Any]:
    start, end = month_range(month)
    return {
        "doctor_id": doctor_id,
        "mr_id": mr_id,
        "visit_date": {"$gte": start, "$lte": end},
        "status": {"$ne": VisitStatus.CANCELLED.value},
        "$or": [
            {"visit_outcome": VisitOutcome.MET_DOCTOR.value},
            {"visit_outcome": {"$exists": False}},
            {"visit_outcome": None},
        ],
    }


async def compute_coverage_stats(
    doctor_id: str,
    mr_id: str,
    month: str,
    planned_visits: float
) -> Dict[str, Any]:
    """
    Side-effect free: same ledger state -> same result.
    Returns {actual_visits, compliance_percentage, status}
    """
    actual_visits = await db.visits.count_documents(met_visits_filter(doctor_id, mr_id, month))
    compliance = derive_compliance(actual_visits, planned_visits)
    return {
        "actual_visits": actual_visits,
        "compliance_percentage": compliance,
        "status": classify_compliance(compliance),
    }


async def refresh_plan(plan: Dict[str, Any], planned_visits: Optional[float] = None) -> Dict[str, Any]:
    """
    Recompute a plan's derived fields from the ledger and persist them.
    Returns the plan dict with the fresh values applied.
    """
    planned = plan.get("planned_visits", 0) if planned_visits is None else planned_visits
    stats = await compute_coverage_stats(
        plan["doctor_id"], plan["assigned_mr"], plan["month"], planned
    )
    update = {**stats, "planned_visits": planned, "updated_at": now_iso()}
    await db.doctor_coverage_plans.update_one({"id": plan["id"]}, {"$set": update})

    logger.info(
        f"[COVERAGE] plan={plan['id'][:8]} doctor={plan['doctor_id'][:8]} month={plan['month']} "
        f"actual={stats['actual_visits']}/{planned} compliance={stats['compliance_percentage']}%"
    )
    return {**plan, **update}
