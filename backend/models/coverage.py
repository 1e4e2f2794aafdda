"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Doctor coverage plan model                                    ║
║                                                                              ║
║  One ACTIVE plan per (doctor, month YYYY-MM)                                 ║
║  actual_visits / compliance_percentage / status are DERIVED:                 ║
║  recomputed from the visit ledger, never set by clients                      ║
║                                                                              ║
║  > 80% = ON_TRACK, 50-80% = AT_RISK, < 50% = MISSED                          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from .visit import ApiModel


class CoverageStatus(str, Enum):
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    MISSED = "MISSED"


class SummaryGroupBy(str, Enum):
    MR = "mr"
    DOCTOR = "doctor"
    MONTH = "month"


class CoveragePlanCreate(ApiModel):
    """
    Example:
    {
        "doctorId": "xxx",
        "month": "2024-06",
        "plannedVisits": 10,
        "assignedMR": "yyy"   # optional, defaults to the doctor's MR
    }
    """
    doctor_id: Optional[str] = None
    month: Optional[str] = None
    planned_visits: Any = None  # coerced to a non-negative number by the store
    assigned_mr: Optional[str] = Field(default=None, alias="assignedMR")


class CoveragePlanUpdate(ApiModel):
    planned_visits: Any = None
    is_active: Optional[bool] = None
