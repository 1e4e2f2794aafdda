"""
Field-force - Visit -> coverage synchronizer
After a visit write, recompute the matching plan's actual visits.

FAIL-OPEN: any error is logged, never raised. The visit is the primary
record; a skipped sync self-heals on the next recompute of that plan.
NO PLAN: visit simply not tracked toward a target, not an error.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from config import db
from services.coverage_engine import refresh_plan
from services.periods import month_of

logger = logging.getLogger("coverage_sync")


async def find_active_plan(doctor_id: str, mr_id: str, month: str) -> Optional[Dict[str, Any]]:
    return await db.doctor_coverage_plans.find_one(
        {
            "doctor_id": doctor_id,
            "assigned_mr": mr_id,
            "month": month,
            "is_active": True,
        },
        {"_id": 0}
    )


async def sync_coverage_for_visit(
    doctor_id: str,
    mr_id: str,
    visit_date: datetime
) -> Optional[Dict[str, Any]]:
    """
    Returns the refreshed plan, or None (no plan / failure).
    """
    try:
        month = month_of(visit_date)
        plan = await find_active_plan(doctor_id, mr_id, month)
        if not plan:
            logger.info(
                f"[COVERAGE_SYNC] No coverage plan for doctor={doctor_id[:8]} "
                f"mr={mr_id[:8]} month={month}"
            )
            return None
        return await refresh_plan(plan)
    except Exception as e:
        logger.error(
            f"[COVERAGE_SYNC] Error updating coverage plan doctor={doctor_id} mr={mr_id}: {e}"
        )
        return None
