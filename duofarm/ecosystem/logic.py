"""
Farm ecosystem engine - per-animal health decay, feeding and warnings

Pure in-memory logic: persistence belongs to the session layer, which hands a
loaded FarmEcosystem in and takes snapshot() back out.
"""
from datetime import datetime
import logging
import threading
from typing import Callable, Dict, List, Optional
from uuid import UUID

from ..catalog.logic import plant_by_id
from ..catalog.models import PlantInfo
from .models import (
    AnimalHealth, AnimalId, FarmEcosystem, WarningLevel,
    as_utc, new_animal_id, utcnow,
)

logger = logging.getLogger(__name__)

PlantLookup = Callable[[str], Optional[PlantInfo]]


class EcosystemEngine:
    """
    Owns one room's FarmEcosystem.

    Mutations are serialized by an internal lock, so the refresh ticker and
    request handlers may share one engine. Every operation accepts an explicit
    ``now`` and falls back to the current UTC time.
    """

    def __init__(self, ecosystem: FarmEcosystem, plant_lookup: PlantLookup = plant_by_id,
                 decay_multiplier: float = 1.0):
        self._eco = ecosystem
        self._plant_lookup = plant_lookup
        self.decay_multiplier = decay_multiplier
        self._lock = threading.Lock()

    @classmethod
    def for_room(cls, room_id: str, now: Optional[datetime] = None, **kwargs) -> "EcosystemEngine":
        """Empty ecosystem for a room with no stored state"""
        eco = FarmEcosystem(room_id=room_id, last_updated_at=now or utcnow())
        return cls(eco, **kwargs)

    @property
    def room_id(self) -> str:
        return self._eco.room_id

    @property
    def last_updated_at(self) -> datetime:
        return self._eco.last_updated_at

    def snapshot(self) -> FarmEcosystem:
        """Deep copy of the current state, safe to persist or render"""
        with self._lock:
            return self._eco.model_copy(deep=True)

    def animals(self) -> Dict[UUID, AnimalHealth]:
        with self._lock:
            return {k: a.model_copy() for k, a in self._eco.animal_health_map.items()}

    def get_animal(self, animal_id: AnimalId) -> Optional[AnimalHealth]:
        with self._lock:
            animal = self._eco.animal_health_map.get(animal_id)
            return animal.model_copy() if animal else None

    def inventory(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._eco.plant_inventory)

    # ========== mutations ==========

    def add_animal(self, species: str, now: Optional[datetime] = None) -> AnimalId:
        """Add a fresh individual at full health and return its id"""
        now = as_utc(now or utcnow())
        with self._lock:
            animal_id = new_animal_id()
            while animal_id in self._eco.animal_health_map:
                animal_id = new_animal_id()
            self._eco.animal_health_map[animal_id] = AnimalHealth.create(species, now=now, animal_id=animal_id)
            self._eco.last_updated_at = now
        logger.info("Room %s: added %s %s", self.room_id, species, animal_id)
        return animal_id

    def update_health(self, now: Optional[datetime] = None):
        """Decay every animal by the time since its last checkpoint"""
        now = as_utc(now or utcnow())
        with self._lock:
            for animal in self._eco.animal_health_map.values():
                was_alive = not animal.is_dead
                animal.update_health(now, multiplier=self.decay_multiplier)
                if was_alive and animal.is_dead:
                    logger.info("Room %s: %s %s starved", self.room_id, animal.animal_type, animal.id)
                else:
                    logger.debug("Room %s: %s at %.3fh", self.room_id, animal.id, animal.hours_until_death)
            self._eco.last_updated_at = now

    def feed_animal(self, animal_id: AnimalId, plant_id: str, now: Optional[datetime] = None) -> bool:
        """Feed one plant from the inventory to one animal.

        Returns False without touching anything when the animal is unknown,
        the plant is not in the catalog, or none is left in the inventory.
        """
        plant = self._plant_lookup(plant_id)
        if plant is None:
            return False
        now = as_utc(now or utcnow())
        with self._lock:
            animal = self._eco.animal_health_map.get(animal_id)
            count = self._eco.plant_inventory.get(plant_id, 0)
            if animal is None or count <= 0:
                return False

            animal.feed(plant, now)
            if count == 1:
                del self._eco.plant_inventory[plant_id]
            else:
                self._eco.plant_inventory[plant_id] = count - 1
            self._eco.last_updated_at = now
        logger.info("Room %s: fed %s with %s", self.room_id, animal_id, plant.name)
        return True

    def buy_plant(self, plant_id: str, quantity: int = 1, now: Optional[datetime] = None) -> int:
        """Add plants to the inventory and return the new count.

        Cost is debited by the caller before this runs.
        """
        with self._lock:
            current = self._eco.plant_inventory.get(plant_id, 0)
            if quantity < 1:
                return current
            self._eco.plant_inventory[plant_id] = current + quantity
            self._eco.last_updated_at = as_utc(now or utcnow())
            return current + quantity

    def remove_dead_animals(self) -> List[AnimalHealth]:
        """Prune dead individuals and return them"""
        with self._lock:
            dead_keys = [k for k, a in self._eco.animal_health_map.items() if a.is_dead]
            dead = [self._eco.animal_health_map.pop(k) for k in dead_keys]
        if dead:
            logger.info("Room %s: removed %d dead animals", self.room_id, len(dead))
        return dead

    # ========== queries ==========

    @property
    def overall_health_percentage(self) -> float:
        """Mean health of living animals; 1.0 for an empty farm, 0.0 when all are dead"""
        with self._lock:
            animals = list(self._eco.animal_health_map.values())
        if not animals:
            return 1.0
        living = [a for a in animals if not a.is_dead]
        if not living:
            return 0.0
        return sum(a.health_percentage for a in living) / len(living)

    @property
    def critical_animals_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._eco.animal_health_map.values() if a.is_critical)

    @property
    def dead_animals_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._eco.animal_health_map.values() if a.is_dead)

    @property
    def worst_warning_level(self) -> WarningLevel:
        with self._lock:
            levels = [a.warning_level for a in self._eco.animal_health_map.values()]
        return max(levels, key=lambda lvl: lvl.severity, default=WarningLevel.HEALTHY)

    @property
    def warning_message(self) -> str:
        return self.worst_warning_level.message

    def representative_animals(self) -> List[AnimalHealth]:
        """One individual per species for display: the healthiest, then the most recently fed.

        Ordered by species name.
        """
        best: Dict[str, AnimalHealth] = {}
        with self._lock:
            for animal in self._eco.animal_health_map.values():
                current = best.get(animal.animal_type)
                if current is None or _ranks_above(animal, current):
                    best[animal.animal_type] = animal
            return [best[species].model_copy() for species in sorted(best)]


def _ranks_above(candidate: AnimalHealth, current: AnimalHealth) -> bool:
    delta = candidate.hours_until_death - current.hours_until_death
    if abs(delta) < 0.001:
        return candidate.last_fed_at > current.last_fed_at
    return delta > 0
