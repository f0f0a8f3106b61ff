"""Raw record schema for the entity collections read from the record store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from .config import (
    DATE_FORMAT,
    DELAY_REASON_REGISTRY,
    MAX_LIFTS_PER_HOUR,
    MAX_RATING,
    MIN_LIFTS_PER_HOUR,
    MIN_RATING,
    ROLES,
    VEHICLE_STATUS_REGISTRY,
)
from .calculators import normalise_hour_slot, parse_time_of_day
from .errors import ValidationError


def parse_date(value: Any, field: str) -> str:
    """Validate a calendar date and return it as ``YYYY-MM-DD``."""
    if value is None:
        raise ValidationError(f"Missing required field: {field}", field=field)
    text = str(value)[:10]
    try:
        datetime.strptime(text, DATE_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for {field}: {value!r}", field=field) from exc
    return text


def parse_time(value: Any, field: str) -> str:
    """Validate a time of day, keeping the store's own string form."""
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {field}", field=field)
    parse_time_of_day(value)
    return str(value)


def _required(row: Mapping[str, Any], field: str) -> Any:
    value = row.get(field)
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {field}", field=field)
    return value


def _int_in_range(value: Any, field: str, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field) from exc
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if not low <= number <= high:
        raise ValidationError(f"{field} must be between {low} and {high}, got {number}", field=field)
    return number


@dataclass(frozen=True)
class Profile:
    """Operator or supervisor identity."""

    id: str
    full_name: str
    employee_id: str

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> Profile:
        return cls(
            id=str(_required(row, "id")),
            full_name=str(row.get("full_name") or ""),
            employee_id=str(row.get("employee_id") or ""),
        )


@dataclass(frozen=True)
class UserRole:
    user_id: str
    role: str

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> UserRole:
        role = _required(row, "role")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}", field="role")
        return cls(user_id=str(_required(row, "user_id")), role=role)


@dataclass(frozen=True)
class WorkShift:
    id: str
    operator_id: str
    shift_date: str
    start_time: str
    end_time: str

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> WorkShift:
        return cls(
            id=str(_required(row, "id")),
            operator_id=str(_required(row, "operator_id")),
            shift_date=parse_date(row.get("shift_date"), "shift_date"),
            start_time=parse_time(row.get("start_time"), "start_time"),
            end_time=parse_time(row.get("end_time"), "end_time"),
        )


@dataclass(frozen=True)
class LiftLog:
    """Lifts counted for one operator in one hour slot.

    ``target_met`` is set by the store at write time and trusted here.
    """

    id: str
    operator_id: str
    log_date: str
    hour_slot: str
    lifts_count: int
    target_met: bool
    shift_id: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> LiftLog:
        return cls(
            id=str(_required(row, "id")),
            operator_id=str(_required(row, "operator_id")),
            log_date=parse_date(row.get("log_date"), "log_date"),
            hour_slot=normalise_hour_slot(parse_time(row.get("hour_slot"), "hour_slot")),
            lifts_count=_int_in_range(
                _required(row, "lifts_count"), "lifts_count", MIN_LIFTS_PER_HOUR, MAX_LIFTS_PER_HOUR
            ),
            target_met=bool(row.get("target_met", False)),
            shift_id=row.get("shift_id"),
        )


@dataclass(frozen=True)
class DelayRecord:
    """A delay incident; ``duration_minutes`` is computed by the store on write."""

    id: str
    operator_id: str
    delay_date: str
    delay_start: str
    delay_end: str
    reason: str
    duration_minutes: int
    notes: Optional[str] = None
    shift_id: Optional[str] = None
    lift_log_id: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> DelayRecord:
        reason = _required(row, "reason")
        if reason not in DELAY_REASON_REGISTRY:
            raise ValidationError(f"Unknown delay reason: {reason!r}", field="reason")
        return cls(
            id=str(_required(row, "id")),
            operator_id=str(_required(row, "operator_id")),
            delay_date=parse_date(row.get("delay_date"), "delay_date"),
            delay_start=parse_time(row.get("delay_start"), "delay_start"),
            delay_end=parse_time(row.get("delay_end"), "delay_end"),
            reason=reason,
            duration_minutes=int(row.get("duration_minutes") or 0),
            notes=row.get("notes"),
            shift_id=row.get("shift_id"),
            lift_log_id=row.get("lift_log_id"),
        )


@dataclass(frozen=True)
class Vehicle:
    id: str
    vehicle_number: str
    vehicle_type: str
    status: str
    assigned_to: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> Vehicle:
        status = _required(row, "status")
        if status not in VEHICLE_STATUS_REGISTRY:
            raise ValidationError(f"Unknown vehicle status: {status!r}", field="status")
        return cls(
            id=str(_required(row, "id")),
            vehicle_number=str(_required(row, "vehicle_number")),
            vehicle_type=str(row.get("vehicle_type") or ""),
            status=status,
            assigned_to=row.get("assigned_to"),
        )


@dataclass(frozen=True)
class PerformanceRating:
    id: str
    operator_id: str
    rating: int
    rating_date: str
    rated_by: Optional[str] = None
    comments: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> PerformanceRating:
        return cls(
            id=str(_required(row, "id")),
            operator_id=str(_required(row, "operator_id")),
            rating=_int_in_range(_required(row, "rating"), "rating", MIN_RATING, MAX_RATING),
            rating_date=parse_date(row.get("rating_date"), "rating_date"),
            rated_by=row.get("rated_by"),
            comments=row.get("comments"),
        )
