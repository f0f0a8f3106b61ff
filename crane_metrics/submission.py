"""
Submission gate: validate form input before any write reaches the store.

Every form moves EDITING -> VALIDATING -> ACCEPTED or REJECTED.
A rejected form keeps its input and raises ValidationError. An accepted
form inserts into the store and clears its input; if the store refuses
the write the form drops back to EDITING with the input intact, records
the store's message in ``error`` and re-raises the StoreError.

Successful writes reach live views through the store's ordinary change
notifications, the same path any other writer takes.
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional

from . import config
from .calculators import (
    compute_duration_minutes,
    compute_shift_minutes,
    compute_target_met,
    format_duration,
    lifts_remaining,
    normalise_hour_slot,
)
from .config import (
    DATE_FORMAT,
    DEFAULT_VEHICLE_STATUS,
    DELAY_RECORDS,
    DELAY_REASON_REGISTRY,
    LIFT_LOGS,
    MAX_LIFTS_PER_HOUR,
    MAX_RATING,
    MIN_LIFTS_PER_HOUR,
    MIN_RATING,
    PERFORMANCE_RATINGS,
    SHIFT_PRESETS,
    VEHICLE_STATUS_REGISTRY,
    VEHICLE_TYPES,
    VEHICLES,
    WORK_SHIFTS,
)
from .errors import StoreError, ValidationError
from .records import parse_date
from .store import RecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


class SubmissionState(str, Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(values: dict, name: str) -> Any:
    value = values.get(name)
    if _blank(value):
        raise ValidationError(f"Missing required field: {name}", field=name)
    return value.strip() if isinstance(value, str) else value


def _whole_number(value: Any, name: str, low: int, high: int) -> int:
    try:
        number = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{name} must be a whole number", field=name) from exc
    if not low <= number <= high:
        raise ValidationError(f"{name} must be between {low} and {high}", field=name)
    return number


def _optional(values: dict, name: str) -> Optional[str]:
    value = values.get(name)
    return None if _blank(value) else str(value).strip()


class SubmissionForm:
    """Base gate: holds input, validates it, writes one record."""

    collection: str = ""
    fields: tuple[str, ...] = ()

    def __init__(self, store: RecordStore, clock: Clock = date.today):
        self._store = store
        self._clock = clock
        self.values: dict[str, Any] = {}
        self.state = SubmissionState.EDITING
        self.error: Optional[str] = None
        self._clear()

    def _clear(self) -> None:
        self.values = {name: "" for name in self.fields}

    def today(self) -> str:
        return self._clock().strftime(DATE_FORMAT)

    def set(self, **values: Any) -> None:
        """Edit input fields; any edit returns the form to EDITING."""
        unknown = set(values) - set(self.fields)
        if unknown:
            raise ValueError(f"{type(self).__name__} has no fields {sorted(unknown)}")
        self.values.update(values)
        self.state = SubmissionState.EDITING
        self.error = None

    def validate(self) -> dict:
        """Return the record to write, or raise ValidationError."""
        raise NotImplementedError

    async def _write(self, record: dict) -> dict:
        return await self._store.insert(self.collection, record)

    async def submit(self) -> dict:
        """Validate and write; returns the stored record."""
        self.state = SubmissionState.VALIDATING
        try:
            record = self.validate()
        except ValidationError as exc:
            self.state = SubmissionState.REJECTED
            self.error = str(exc)
            logger.info("%s rejected: %s", type(self).__name__, exc)
            raise

        self.state = SubmissionState.ACCEPTED
        try:
            stored = await self._write(record)
        except StoreError as exc:
            self.state = SubmissionState.EDITING
            self.error = str(exc)
            logger.warning("%s write to %s failed: %s", type(self).__name__, self.collection, exc)
            raise

        self.error = None
        self._clear()
        logger.info("%s stored %s in %s", type(self).__name__, stored.get("id"), self.collection)
        return stored


class LiftEntryForm(SubmissionForm):
    """Hourly lift count for the signed-in operator, dated today."""

    collection = LIFT_LOGS
    fields = ("hour_slot", "lifts_count", "shift_id")

    def __init__(self, store: RecordStore, operator_id: str, clock: Clock = date.today):
        super().__init__(store, clock)
        self.operator_id = operator_id

    def progress(self) -> dict:
        """Live preview of the entered count against target."""
        try:
            lifts = int(str(self.values["lifts_count"]).strip())
        except ValueError:
            lifts = 0
        return {"target_met": compute_target_met(lifts), "lifts_remaining": lifts_remaining(lifts)}

    def validate(self) -> dict:
        hour_slot = normalise_hour_slot(_require(self.values, "hour_slot"))
        lifts = _whole_number(
            _require(self.values, "lifts_count"), "lifts_count", MIN_LIFTS_PER_HOUR, MAX_LIFTS_PER_HOUR
        )
        return {
            "operator_id": self.operator_id,
            "shift_id": _optional(self.values, "shift_id"),
            "log_date": self.today(),
            "hour_slot": hour_slot,
            "lifts_count": lifts,
        }


class DelayEntryForm(SubmissionForm):
    """Delay incident with exact same-day start and end times."""

    collection = DELAY_RECORDS
    fields = ("delay_start", "delay_end", "reason", "notes", "shift_id", "lift_log_id")

    def __init__(self, store: RecordStore, operator_id: str, clock: Clock = date.today):
        super().__init__(store, clock)
        self.operator_id = operator_id

    def duration_display(self) -> Optional[str]:
        """``"1h 5m"`` preview, or None while the range is incomplete or invalid."""
        try:
            return format_duration(
                compute_duration_minutes(self.values["delay_start"], self.values["delay_end"])
            )
        except ValidationError:
            return None

    def validate(self) -> dict:
        reason = _require(self.values, "reason")
        if reason not in DELAY_REASON_REGISTRY:
            raise ValidationError(f"Unknown delay reason: {reason!r}", field="reason")
        start = _require(self.values, "delay_start")
        end = _require(self.values, "delay_end")
        compute_duration_minutes(start, end)
        return {
            "operator_id": self.operator_id,
            "shift_id": _optional(self.values, "shift_id"),
            "lift_log_id": _optional(self.values, "lift_log_id"),
            "delay_date": self.today(),
            "delay_start": start,
            "delay_end": end,
            "reason": reason,
            "notes": _optional(self.values, "notes"),
        }


class ShiftForm(SubmissionForm):
    """Work shift; the date defaults to today and night shifts may wrap."""

    collection = WORK_SHIFTS
    fields = ("shift_date", "start_time", "end_time")

    def __init__(
        self,
        store: RecordStore,
        operator_id: str,
        clock: Clock = date.today,
        allow_overnight: Optional[bool] = None,
    ):
        self.allow_overnight = config.ALLOW_OVERNIGHT_SHIFTS if allow_overnight is None else allow_overnight
        super().__init__(store, clock)
        self.operator_id = operator_id

    def _clear(self) -> None:
        super()._clear()
        self.values["shift_date"] = self.today()

    def apply_preset(self, label: str) -> None:
        try:
            start, end = SHIFT_PRESETS[label]
        except KeyError:
            raise ValueError(f"Unknown shift preset {label!r}") from None
        self.set(start_time=start, end_time=end)

    def validate(self) -> dict:
        shift_date = parse_date(_require(self.values, "shift_date"), "shift_date")
        start = _require(self.values, "start_time")
        end = _require(self.values, "end_time")
        compute_shift_minutes(start, end, self.allow_overnight)
        return {
            "operator_id": self.operator_id,
            "shift_date": shift_date,
            "start_time": start,
            "end_time": end,
        }


class RatingForm(SubmissionForm):
    """Supervisor rating of an operator, dated today."""

    collection = PERFORMANCE_RATINGS
    fields = ("operator_id", "rating", "comments")

    def __init__(self, store: RecordStore, rater_id: str, clock: Clock = date.today):
        super().__init__(store, clock)
        self.rater_id = rater_id

    def validate(self) -> dict:
        operator_id = _require(self.values, "operator_id")
        rating = _whole_number(_require(self.values, "rating"), "rating", MIN_RATING, MAX_RATING)
        return {
            "operator_id": operator_id,
            "rated_by": self.rater_id,
            "rating": rating,
            "comments": _optional(self.values, "comments"),
            "rating_date": self.today(),
        }


class VehicleForm(SubmissionForm):
    """New fleet vehicle; enters service as available."""

    collection = VEHICLES
    fields = ("vehicle_number", "vehicle_type")

    def validate(self) -> dict:
        number = _require(self.values, "vehicle_number")
        vehicle_type = _require(self.values, "vehicle_type")
        if vehicle_type not in VEHICLE_TYPES:
            raise ValidationError(f"Unknown vehicle type: {vehicle_type!r}", field="vehicle_type")
        return {
            "vehicle_number": number,
            "vehicle_type": vehicle_type,
            "status": DEFAULT_VEHICLE_STATUS,
        }


async def update_vehicle_status(store: RecordStore, vehicle_id: str, status: str) -> dict:
    """Change a vehicle's status. Raises ValidationError or StoreError."""
    if status not in VEHICLE_STATUS_REGISTRY:
        raise ValidationError(f"Unknown vehicle status: {status!r}", field="status")
    record = await store.update(VEHICLES, vehicle_id, {"status": status})
    logger.info("Vehicle %s is now %s", vehicle_id, VEHICLE_STATUS_REGISTRY[status])
    return record
