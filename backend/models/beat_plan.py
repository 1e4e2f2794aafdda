"""
Field-force - Beat plan model
A beat plan = list of doctors an MR intends to visit on one day.
One plan per (mr, day).
"""

from typing import List, Optional

from .visit import ApiModel


class BeatPlanCreate(ApiModel):
    date: Optional[str] = None  # YYYY-MM-DD
    planned_doctors: Optional[List[str]] = None
    notes: Optional[str] = None
    mr_id: Optional[str] = None  # required for Owner/Manager, ignored for MR


class BeatPlanUpdate(ApiModel):
    planned_doctors: Optional[List[str]] = None
    notes: Optional[str] = None
    deviation_reason: Optional[str] = None


class DeviationReasonUpdate(ApiModel):
    deviation_reason: Optional[str] = None
