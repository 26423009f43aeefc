from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from ..ecosystem.models import AnimalHealth, WarningLevel


class ActivityType(str, Enum):
    PING = "ping"
    NOTE = "note"
    HUG = "hug"
    KISS = "kiss"
    DOODLE = "doodle"

    @property
    def love_points(self) -> int:
        return {"ping": 2, "note": 5, "hug": 3, "kiss": 4, "doodle": 10}[self.value]


class RoomMetrics(BaseModel):
    """Shared score of a duo"""
    room_id: str
    love_energy: int = 0
    total_doodles: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    created_at: datetime


class RoomFarm(BaseModel):
    room_id: str
    unlocked_animals: List[str] = Field(default_factory=list)
    farm_level: int = 1
    created_at: datetime        # survival start, reset on restart
    last_activity_at: datetime


class RoomStatus(BaseModel):
    """What the presentation layer polls after each refresh"""
    room_id: str
    overall_health_percentage: float
    critical_animals_count: int
    dead_animals_count: int
    worst_warning_level: WarningLevel
    warning_message: str
    animals: List[AnimalHealth] = Field(default_factory=list)
    removed_animals: List[AnimalHealth] = Field(default_factory=list)
    plant_inventory: Dict[str, int] = Field(default_factory=dict)
    love_energy: int = 0
    farm_day: int = 0
    is_game_over: bool = False
