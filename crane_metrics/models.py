"""
View models published to presentation.

All are frozen dataclasses; mapping fields are read-only proxies. Call
``to_dict()`` for a plain JSON-serializable structure.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .config import TARGET_LIFTS_PER_HOUR
from .records import DelayRecord, LiftLog, Vehicle, WorkShift


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def frozen_mapping(items: Mapping) -> Mapping:
    return MappingProxyType(dict(items))


class ViewModel:
    """Mixin giving view-model dataclasses a plain-dict form."""

    def to_dict(self) -> dict:
        return _plain(self)


# ---------------------------------------------------------------------------
# Core shapes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OperatorDaySummary(ViewModel):
    operator_id: str
    date: str
    total_lifts: int = 0
    hours_logged: int = 0
    avg_lifts_per_hour: float = 0.0
    targets_met_count: int = 0
    total_delay_minutes: int = 0


@dataclass(frozen=True)
class DelayBreakdown(ViewModel):
    """Summed delay minutes per reason, in registry order."""

    by_reason: Mapping[str, int] = field(default_factory=lambda: frozen_mapping({}))

    @property
    def total_minutes(self) -> int:
        return sum(self.by_reason.values())


@dataclass(frozen=True)
class TrendPoint(ViewModel):
    date: str
    total_lifts: int
    efficiency_percent: int
    targets_met_percent: int


@dataclass(frozen=True)
class ProductivityTrend(ViewModel):
    points: tuple[TrendPoint, ...] = ()


@dataclass(frozen=True)
class OperatorRankingEntry(ViewModel):
    operator_id: str
    full_name: str
    avg_lifts_per_hour: float
    suggested_rating: int
    performance_label: str
    avg_historical_rating: float
    rating_count: int


# ---------------------------------------------------------------------------
# Supplementary shapes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class HourlyPoint(ViewModel):
    hour: str
    lifts: int
    target: int = TARGET_LIFTS_PER_HOUR


@dataclass(frozen=True)
class HourlyLifts(ViewModel):
    points: tuple[HourlyPoint, ...] = ()


@dataclass(frozen=True)
class DelayTrendPoint(ViewModel):
    date: str
    minutes: int


@dataclass(frozen=True)
class DelayTrend(ViewModel):
    points: tuple[DelayTrendPoint, ...] = ()


@dataclass(frozen=True)
class OperatorStatus(ViewModel):
    operator_id: str
    full_name: str
    employee_id: str
    total_lifts: int
    total_delay_minutes: int
    avg_lifts_per_hour: float
    efficiency_percent: int
    is_active: bool


@dataclass(frozen=True)
class FleetSummary(ViewModel):
    total_lifts: int = 0
    total_delay_minutes: int = 0
    active_operators: int = 0
    operator_count: int = 0
    targets_met_percent: int = 0


@dataclass(frozen=True)
class VehicleAvailability(ViewModel):
    """Vehicle numbers grouped by status, every status present."""

    by_status: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: frozen_mapping({}))
    counts: Mapping[str, int] = field(default_factory=lambda: frozen_mapping({}))


# ---------------------------------------------------------------------------
# Dashboard payloads
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OperatorDashboard(ViewModel):
    summary: OperatorDaySummary
    lift_logs: tuple[LiftLog, ...]
    delays: tuple[DelayRecord, ...]
    breakdown: DelayBreakdown


@dataclass(frozen=True)
class SupervisorDashboard(ViewModel):
    date: str
    fleet: FleetSummary
    hourly: HourlyLifts
    breakdown: DelayBreakdown
    operators: tuple[OperatorStatus, ...]


@dataclass(frozen=True)
class AnalyticsView(ViewModel):
    start: str
    end: str
    total_lifts: int
    total_delay_minutes: int
    targets_met_percent: int
    trend: ProductivityTrend
    breakdown: DelayBreakdown
    delay_trend: DelayTrend


@dataclass(frozen=True)
class OperatorDetail(ViewModel):
    status: OperatorStatus
    scheduled_minutes: int
    shifts: tuple[WorkShift, ...]
    days: tuple[OperatorDaySummary, ...]


@dataclass(frozen=True)
class OperatorDetailsView(ViewModel):
    start: str
    end: str
    operators: tuple[OperatorDetail, ...]


@dataclass(frozen=True)
class RatingsView(ViewModel):
    start: str
    end: str
    rankings: tuple[OperatorRankingEntry, ...]


@dataclass(frozen=True)
class VehicleBoard(ViewModel):
    availability: VehicleAvailability
    vehicles: tuple[Vehicle, ...]


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Snapshot:
    """One fully computed payload for a view, replaced wholesale on recompute."""

    view: str
    version: int
    payload: Optional[ViewModel]

    def to_dict(self) -> dict:
        return {
            "view": self.view,
            "version": self.version,
            "payload": self.payload.to_dict() if self.payload is not None else None,
        }

    def payload_json(self) -> str:
        """Canonical JSON of the payload; equal payloads give equal bytes."""
        data = self.payload.to_dict() if self.payload is not None else None
        return json.dumps(data, sort_keys=True, separators=(",", ":"))
