"""
Configuration: productivity target, label registries, date windows,
synchronizer tuning.

DELAY_REASON_REGISTRY and VEHICLE_STATUS_REGISTRY map each canonical code
to its display label. Their key order is the order used for every
reason- or status-keyed output.
"""

# ---------------------------------------------------------------------------
# Productivity target
# ---------------------------------------------------------------------------
TARGET_LIFTS_PER_HOUR = 24

# Bounds accepted by the lift entry gate
MIN_LIFTS_PER_HOUR = 0
MAX_LIFTS_PER_HOUR = 100

# ---------------------------------------------------------------------------
# Record store collections
# ---------------------------------------------------------------------------
WORK_SHIFTS = "work_shifts"
LIFT_LOGS = "lift_logs"
DELAY_RECORDS = "delay_records"
VEHICLES = "vehicles"
PERFORMANCE_RATINGS = "performance_ratings"
PROFILES = "profiles"
USER_ROLES = "user_roles"

COLLECTIONS = (
    WORK_SHIFTS,
    LIFT_LOGS,
    DELAY_RECORDS,
    VEHICLES,
    PERFORMANCE_RATINGS,
    PROFILES,
    USER_ROLES,
)

# ---------------------------------------------------------------------------
# Roles (access control is external; roles only identify operators)
# ---------------------------------------------------------------------------
ROLE_CRANE_OPERATOR = "crane_operator"
ROLE_SUPERVISOR = "supervisor"
ROLE_HIGHER_AUTHORITY = "higher_authority"

ROLES = (ROLE_CRANE_OPERATOR, ROLE_SUPERVISOR, ROLE_HIGHER_AUTHORITY)

# ---------------------------------------------------------------------------
# Delay reasons
# ---------------------------------------------------------------------------
DELAY_REASON_REGISTRY: dict[str, str] = {
    "crane_malfunction": "Crane Malfunction",
    "vehicle_unavailability": "Vehicle Unavailability",
    "weather_conditions": "Weather Conditions",
    "operator_break": "Operator Break",
    "vessel_repositioning": "Vessel Repositioning",
    "safety_incident": "Safety Incident",
}

# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------
VEHICLE_STATUS_REGISTRY: dict[str, str] = {
    "available": "Available",
    "in_use": "In Use",
    "maintenance": "Under Maintenance",
    "unavailable": "Unavailable",
}

VEHICLE_TYPES = ("Truck", "Trailer", "Stacker", "Forklift", "Container Carrier")

# New vehicles enter the fleet in this status
DEFAULT_VEHICLE_STATUS = "available"

# ---------------------------------------------------------------------------
# Shifts
# ---------------------------------------------------------------------------
# label -> (start, end); the night preset wraps past midnight
SHIFT_PRESETS: dict[str, tuple[str, str]] = {
    "Morning (6AM - 2PM)": ("06:00", "14:00"),
    "Day (8AM - 4PM)": ("08:00", "16:00"),
    "Evening (2PM - 10PM)": ("14:00", "22:00"),
    "Night (10PM - 6AM)": ("22:00", "06:00"),
}

ALLOW_OVERNIGHT_SHIFTS = True

# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------
MIN_RATING = 1
MAX_RATING = 5

# (minimum average lifts/hour, suggested rating, performance label),
# checked top to bottom; anything below the last band is rated 1
RATING_BANDS: list[tuple[int, int, str]] = [
    (28, 5, "Exceptional"),
    (26, 4, "Excellent"),
    (24, 3, "On Target"),
    (20, 2, "Below Target"),
]
FLOOR_RATING = 1
FLOOR_LABEL = "Needs Improvement"

# ---------------------------------------------------------------------------
# Date windows
# ---------------------------------------------------------------------------
ANALYTICS_RANGES: dict[str, int] = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}
DEFAULT_ANALYTICS_RANGE = "7d"

RANKING_WINDOW_DAYS = 30
OPERATOR_DETAIL_DAYS = 7

# ---------------------------------------------------------------------------
# Live view synchronizer
# ---------------------------------------------------------------------------
# Seconds the recompute loop waits after the first change of a batch so a
# burst of writes collapses into one recompute. 0 still yields one loop tick.
SYNC_DEBOUNCE_SECONDS = 0.0

# Re-derive delay durations from start/end instead of trusting the stored value
RECOMPUTE_DELAY_DURATIONS = False

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DATE_FORMAT = "%Y-%m-%d"
MINUTES_PER_DAY = 24 * 60
