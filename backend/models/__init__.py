"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Models package                                                ║
║                                                                              ║
║  Exports every model for easy import                                         ║
║  from models import Role, VisitCreate, CoveragePlanCreate, etc.              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Auth
from .auth import Role, UserLogin

# Visit
from .visit import (
    ApiModel,
    VisitStatus,
    VisitOutcome,
    VisitPurpose,
    NOT_MET_OUTCOMES,
    ProductLine,
    SampleLine,
    OrderLine,
    VisitCreate,
    VisitUpdate,
)

# Coverage
from .coverage import (
    CoverageStatus,
    SummaryGroupBy,
    CoveragePlanCreate,
    CoveragePlanUpdate,
)

# Beat plan
from .beat_plan import BeatPlanCreate, BeatPlanUpdate, DeviationReasonUpdate

__all__ = [
    # Auth
    "Role",
    "UserLogin",
    # Visit
    "ApiModel",
    "VisitStatus",
    "VisitOutcome",
    "VisitPurpose",
    "NOT_MET_OUTCOMES",
    "ProductLine",
    "SampleLine",
    "OrderLine",
    "VisitCreate",
    "VisitUpdate",
    # Coverage
    "CoverageStatus",
    "SummaryGroupBy",
    "CoveragePlanCreate",
    "CoveragePlanUpdate",
    # Beat plan
    "BeatPlanCreate",
    "BeatPlanUpdate",
    "DeviationReasonUpdate",
]
