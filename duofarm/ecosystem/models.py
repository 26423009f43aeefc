from datetime import datetime, timezone
from enum import Enum
from typing import Dict, NewType, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from ..catalog.models import PlantInfo

AnimalId = NewType("AnimalId", UUID)

MAX_HEALTH_HOURS = 24.0
DYING_THRESHOLD_HOURS = 8.0
CRITICAL_THRESHOLD_HOURS = 2.0
SECONDS_PER_HOUR = 3600.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so stored and fresh timestamps compare"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def new_animal_id() -> AnimalId:
    return AnimalId(uuid4())


# ========== warning tiers ==========

class WarningLevel(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    DEAD = "dead"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_SEVERITY = {
    WarningLevel.HEALTHY: 0,
    WarningLevel.WARNING: 1,
    WarningLevel.CRITICAL: 2,
    WarningLevel.DEAD: 3,
}

_MESSAGES = {
    WarningLevel.HEALTHY: "Animals are happy and healthy!",
    WarningLevel.WARNING: "⚠️ Animals need plants soon—buy crops in the shop to replenish them.",
    WarningLevel.CRITICAL: "🚨 URGENT! Purchase plants now or the farm will collapse.",
    WarningLevel.DEAD: "💀 Some animals have died from starvation.",
}

_ICONS = {
    WarningLevel.HEALTHY: "🟢",
    WarningLevel.WARNING: "🟡",
    WarningLevel.CRITICAL: "🔴",
    WarningLevel.DEAD: "💀",
}


# ========== per-animal health ==========

class AnimalHealth(BaseModel):
    """Health budget of one animal individual, in hours until it starves"""
    id: UUID = Field(default_factory=uuid4)
    animal_type: str
    last_fed_at: datetime
    hours_until_death: float = MAX_HEALTH_HOURS

    @field_validator("last_fed_at")
    @classmethod
    def _aware_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("hours_until_death")
    @classmethod
    def _clamp_hours(cls, v: float) -> float:
        return max(0.0, min(MAX_HEALTH_HOURS, v))

    @property
    def max_health(self) -> float:
        return MAX_HEALTH_HOURS

    @property
    def health_percentage(self) -> float:
        return max(0.0, min(1.0, self.hours_until_death / self.max_health))

    @property
    def is_healthy(self) -> bool:
        return self.hours_until_death > DYING_THRESHOLD_HOURS

    @property
    def is_dying(self) -> bool:
        return CRITICAL_THRESHOLD_HOURS < self.hours_until_death <= DYING_THRESHOLD_HOURS

    @property
    def is_critical(self) -> bool:
        return 0 < self.hours_until_death <= CRITICAL_THRESHOLD_HOURS

    @property
    def is_dead(self) -> bool:
        return self.hours_until_death <= 0

    @property
    def warning_level(self) -> WarningLevel:
        if self.is_dead:
            return WarningLevel.DEAD
        if self.is_critical:
            return WarningLevel.CRITICAL
        if self.is_dying:
            return WarningLevel.WARNING
        return WarningLevel.HEALTHY

    @property
    def status_icon(self) -> str:
        return _ICONS[self.warning_level]

    def __eq__(self, other: object) -> bool:
        # ~36 seconds of drift still counts as the same snapshot
        if not isinstance(other, AnimalHealth):
            return NotImplemented
        return (
            self.id == other.id
            and self.animal_type == other.animal_type
            and abs(self.hours_until_death - other.hours_until_death) < 0.01
        )

    @classmethod
    def create(cls, animal_type: str, now: Optional[datetime] = None,
               animal_id: Optional[AnimalId] = None) -> "AnimalHealth":
        """Fresh animal at full health"""
        return cls(
            id=animal_id or new_animal_id(),
            animal_type=animal_type,
            last_fed_at=now or utcnow(),
            hours_until_death=MAX_HEALTH_HOURS,
        )

    def feed(self, plant: PlantInfo, now: Optional[datetime] = None):
        """Restore nutrition_value percent of max health, capped at max health"""
        self.last_fed_at = as_utc(now or utcnow())
        gain = self.max_health * (plant.nutrition_value / 100.0)
        self.hours_until_death = min(self.max_health, self.hours_until_death + gain)

    def update_health(self, now: Optional[datetime] = None, multiplier: float = 1.0):
        """Subtract the time since the last checkpoint and move the checkpoint to now.

        Decay is a running subtraction from the current budget, never a
        recomputation from max health, so polling repeatedly only removes the
        time between polls.
        """
        now = as_utc(now or utcnow())
        if now <= self.last_fed_at:
            # a clock that went backwards keeps the later checkpoint
            return
        elapsed_hours = (now - self.last_fed_at).total_seconds() / SECONDS_PER_HOUR
        self.hours_until_death = max(0.0, self.hours_until_death - elapsed_hours * multiplier)
        self.last_fed_at = now


# ========== per-room ecosystem ==========

class FarmEcosystem(BaseModel):
    room_id: str
    animal_health_map: Dict[UUID, AnimalHealth] = Field(default_factory=dict)
    plant_inventory: Dict[str, int] = Field(default_factory=dict)  # plant id -> quantity
    last_updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("animal_health_map")
    @classmethod
    def _ids_match_keys(cls, v: Dict[UUID, AnimalHealth]) -> Dict[UUID, AnimalHealth]:
        # the map key is the identity; a stored record may lack or disagree on its id
        return {k: a if a.id == k else a.model_copy(update={"id": k}) for k, a in v.items()}

    @field_validator("plant_inventory")
    @classmethod
    def _drop_empty_slots(cls, v: Dict[str, int]) -> Dict[str, int]:
        return {k: q for k, q in v.items() if q > 0}

    @field_validator("last_updated_at")
    @classmethod
    def _aware_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)


# ========== legacy whole-farm health ==========

class FarmWarningLevel(str, Enum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def color(self) -> str:
        return {"none": "green", "warning": "orange", "critical": "red"}[self.value]

    @property
    def message(self) -> str:
        return {
            "none": "",
            "warning": "⚠️ Animals need attention! Send an activity to keep them alive",
            "critical": "🚨 URGENT! Animals are dying! Send an activity now!",
        }[self.value]


class FarmHealth(BaseModel):
    """Single health value for the whole farm, derived from the last activity.

    Only used before a room has per-animal health records.
    """
    last_activity_at: datetime
    hours_until_death: float

    @property
    def health_percentage(self) -> float:
        return max(0.0, min(1.0, self.hours_until_death / MAX_HEALTH_HOURS))

    @property
    def is_healthy(self) -> bool:
        return self.hours_until_death > 6

    @property
    def is_dying(self) -> bool:
        return 0 < self.hours_until_death <= 6

    @property
    def is_dead(self) -> bool:
        return self.hours_until_death <= 0

    @property
    def warning_level(self) -> FarmWarningLevel:
        if self.hours_until_death > 6:
            return FarmWarningLevel.NONE
        if self.hours_until_death > 1:
            return FarmWarningLevel.WARNING
        return FarmWarningLevel.CRITICAL

    @classmethod
    def calculate(cls, last_activity_at: datetime, now: Optional[datetime] = None) -> "FarmHealth":
        last_activity_at = as_utc(last_activity_at)
        now = as_utc(now or utcnow())
        hours_elapsed = (now - last_activity_at).total_seconds() / SECONDS_PER_HOUR
        return cls(
            last_activity_at=last_activity_at,
            hours_until_death=MAX_HEALTH_HOURS - hours_elapsed,
        )
