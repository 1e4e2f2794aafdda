"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Field-force - Visit business rules                                          ║
║                                                                              ║
║  - Visit date: not in the future, not older than max_visit_age_days          ║
║  - Check-in strictly before check-out when both are given                    ║
║  - GPS point [longitude, latitude] inside the configured bounding box        ║
║  - Outcome != MET_DOCTOR requires a not-met reason                           ║
║                                                                              ║
║  Rules come from services.settings.get_visit_rules()                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from models.visit import VisitOutcome
from services.errors import ValidationError
from services.periods import parse_datetime


def validate_visit_date(visit_date: datetime, max_days_old: int, now: Optional[datetime] = None) -> None:
    now = now or datetime.now(timezone.utc)
    if visit_date > now:
        raise ValidationError("Visit date cannot be in the future")
    if visit_date < now - timedelta(days=max_days_old):
        raise ValidationError(f"Visit date cannot be older than {max_days_old} days")


def validate_visit_times(check_in: Any, check_out: Any) -> None:
    """Both optional; checked only when both are present"""
    if not check_in or not check_out:
        return
    check_in_dt = parse_datetime(check_in, "check-in time")
    check_out_dt = parse_datetime(check_out, "check-out time")
    if check_in_dt >= check_out_dt:
        raise ValidationError("Check-in time must be before check-out time")


def validate_location(location: Any, bounds: Dict[str, float]) -> None:
    """GeoJSON Point: {"type": "Point", "coordinates": [longitude, latitude]}"""
    coordinates = location.get("coordinates") if isinstance(location, dict) else None
    if not isinstance(coordinates, list):
        raise ValidationError("Invalid location format. Expected GeoJSON Point with coordinates array")
    if len(coordinates) != 2:
        raise ValidationError("Coordinates must contain exactly 2 values [longitude, latitude]")

    longitude, latitude = coordinates
    numeric = all(
        isinstance(v, (int, float)) and not isinstance(v, bool)
        for v in (longitude, latitude)
    )
    if not numeric:
        raise ValidationError("Coordinates must be numbers")

    errors: List[str] = []
    if latitude < bounds["min_lat"] or latitude > bounds["max_lat"]:
        errors.append(
            f"Latitude {latitude} is outside the allowed range "
            f"({bounds['min_lat']} to {bounds['max_lat']})"
        )
    if longitude < bounds["min_lon"] or longitude > bounds["max_lon"]:
        errors.append(
            f"Longitude {longitude} is outside the allowed range "
            f"({bounds['min_lon']} to {bounds['max_lon']})"
        )
    if errors:
        raise ValidationError(", ".join(errors))


def validate_outcome(outcome: Optional[str], not_met_reason: Optional[str]) -> None:
    if (outcome or VisitOutcome.MET_DOCTOR.value) == VisitOutcome.MET_DOCTOR.value:
        return
    if not not_met_reason or not str(not_met_reason).strip():
        raise ValidationError('Reason is required when visit outcome is not "Met Doctor"')
