"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Visit model                                                   ║
║                                                                              ║
║  One record per MR-doctor interaction attempt on a calendar day.             ║
║                                                                              ║
║  RULES:                                                                      ║
║  1. At most ONE non-cancelled visit per (mr, doctor, calendar day)           ║
║  2. Outcome != MET_DOCTOR requires not_met_reason                            ║
║  3. Only non-cancelled MET_DOCTOR (or outcome-less) visits count toward      ║
║     coverage                                                                 ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VisitStatus(str, Enum):
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"


class VisitOutcome(str, Enum):
    """MET_DOCTOR = successful meeting; the rest are attempts"""
    MET_DOCTOR = "MET_DOCTOR"
    DOCTOR_NOT_AVAILABLE = "DOCTOR_NOT_AVAILABLE"
    DOCTOR_DID_NOT_MEET = "DOCTOR_DID_NOT_MEET"
    CLINIC_CLOSED = "CLINIC_CLOSED"
    OTHER = "OTHER"


NOT_MET_OUTCOMES = [o.value for o in VisitOutcome if o is not VisitOutcome.MET_DOCTOR]


class VisitPurpose(str, Enum):
    PRODUCT_PRESENTATION = "Product Presentation"
    SAMPLE_DISTRIBUTION = "Sample Distribution"
    FOLLOW_UP = "Follow-up"
    ORDER_COLLECTION = "Order Collection"
    RELATIONSHIP_BUILDING = "Relationship Building"
    OTHER = "Other"


class ApiModel(BaseModel):
    """Accepts camelCase (dashboard / mobile app) and snake_case bodies"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
        validate_default=True,
    )


class ProductLine(ApiModel):
    product_id: str
    quantity: int = Field(default=0, ge=0)
    notes: Optional[str] = None


class SampleLine(ApiModel):
    product_id: str
    quantity: int = Field(default=0, ge=0)


class OrderLine(ApiModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    unit_price: Optional[float] = Field(default=None, ge=0)


class VisitCreate(ApiModel):
    """
    Example:
    {
        "doctorId": "xxx",
        "visitDate": "2024-06-05T10:30:00",
        "visitOutcome": "MET_DOCTOR",
        "checkInTime": "2024-06-05T10:30:00",
        "checkOutTime": "2024-06-05T10:50:00",
        "location": {"type": "Point", "coordinates": [72.87, 19.07]}
    }
    """
    doctor_id: Optional[str] = None
    mr_id: Optional[str] = None  # ignored for MR callers
    visit_date: Optional[str] = None  # default: now
    status: VisitStatus = VisitStatus.COMPLETED
    visit_outcome: Optional[VisitOutcome] = None
    not_met_reason: Optional[str] = None
    attempt_remarks: Optional[str] = None
    purpose: VisitPurpose = VisitPurpose.PRODUCT_PRESENTATION

    products_discussed: Optional[List[ProductLine]] = None
    samples_given: Optional[List[SampleLine]] = None
    orders: Optional[List[OrderLine]] = None

    notes: Optional[str] = None
    doctor_feedback: Optional[str] = None
    next_follow_up_date: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)  # minutes

    location: Optional[Dict[str, Any]] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None


class VisitUpdate(ApiModel):
    """Partial update. mr_id is never updatable."""
    visit_date: Optional[str] = None
    status: Optional[VisitStatus] = None
    visit_outcome: Optional[VisitOutcome] = None
    not_met_reason: Optional[str] = None
    attempt_remarks: Optional[str] = None
    purpose: Optional[VisitPurpose] = None

    products_discussed: Optional[List[ProductLine]] = None
    samples_given: Optional[List[SampleLine]] = None
    orders: Optional[List[OrderLine]] = None

    notes: Optional[str] = None
    doctor_feedback: Optional[str] = None
    next_follow_up_date: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)

    location: Optional[Dict[str, Any]] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
