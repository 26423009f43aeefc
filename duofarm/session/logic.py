from datetime import datetime
import logging
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

from ..catalog.logic import animal_by_id, can_afford, plant_by_id
from ..catalog.models import AnimalInfo, PlantInfo
from ..common.config_manager import ConfigManager
from ..common.data_manager import DataManager
from ..ecosystem.logic import EcosystemEngine
from ..ecosystem.models import AnimalHealth, AnimalId, FarmEcosystem, FarmHealth, as_utc, utcnow
from .models import ActivityType, RoomFarm, RoomMetrics, RoomStatus
from .ticker import HealthTicker

logger = logging.getLogger(__name__)

METRICS_DOC = 'metrics'
FARM_DOC = 'farm'
ECOSYSTEM_DOC = 'ecosystem'


class DuoSessionLogic:
    """Coordinates one or more rooms: points, unlocks, persistence and the ecosystem engines."""

    def __init__(self, data_manager: DataManager, config: Optional[ConfigManager] = None):
        self.dm = data_manager
        self.config = config or ConfigManager()
        self._engines: Dict[str, EcosystemEngine] = {}
        self._game_over: Dict[str, bool] = {}

    @classmethod
    def from_config(cls, config: ConfigManager) -> "DuoSessionLogic":
        """Session backed by a JSON store under the configured data root"""
        return cls(DataManager(base_path=config.data_root), config)

    def ticker_for(self, room_id: str) -> HealthTicker:
        """Ticker that refreshes one room at the configured interval; start it inside the UI loop"""
        return HealthTicker(lambda: self.async_refresh(room_id), self.config.refresh_interval_seconds)

    # ========== persistence ==========

    def load_metrics(self, room_id: str) -> Optional[RoomMetrics]:
        data = self.dm.load_document(room_id, METRICS_DOC)
        return RoomMetrics.model_validate(data) if data else None

    def save_metrics(self, metrics: RoomMetrics):
        self.dm.save_document(metrics.room_id, METRICS_DOC, metrics.model_dump(mode='json'))

    def load_farm(self, room_id: str) -> Optional[RoomFarm]:
        data = self.dm.load_document(room_id, FARM_DOC)
        return RoomFarm.model_validate(data) if data else None

    def save_farm(self, farm: RoomFarm):
        self.dm.save_document(farm.room_id, FARM_DOC, farm.model_dump(mode='json'))

    def save_ecosystem(self, engine: EcosystemEngine):
        self.dm.save_document(engine.room_id, ECOSYSTEM_DOC, engine.snapshot().model_dump(mode='json'))

    def _require_metrics(self, room_id: str) -> RoomMetrics:
        metrics = self.load_metrics(room_id)
        if metrics is None:
            raise ValueError(f'Room {room_id} does not exist')
        return metrics

    def _require_farm(self, room_id: str) -> RoomFarm:
        farm = self.load_farm(room_id)
        if farm is None:
            raise ValueError(f'Room {room_id} does not exist')
        return farm

    def _new_engine(self, ecosystem: FarmEcosystem) -> EcosystemEngine:
        return EcosystemEngine(ecosystem, decay_multiplier=self.config.effective_decay_multiplier)

    # ========== rooms ==========

    def create_room(self, room_id: str, now: Optional[datetime] = None) -> RoomFarm:
        """Start a farm with the starter animal"""
        now = as_utc(now or utcnow())
        if self.load_farm(room_id) is not None:
            raise ValueError(f'Room {room_id} already has a farm')

        starter = self.config.starter_animal
        metrics = RoomMetrics(room_id=room_id, love_energy=self.config.initial_love_energy, created_at=now)
        farm = RoomFarm(room_id=room_id, unlocked_animals=[starter], created_at=now, last_activity_at=now)
        engine = self._new_engine(FarmEcosystem(room_id=room_id, last_updated_at=now))
        engine.add_animal(starter, now)

        self.save_metrics(metrics)
        self.save_farm(farm)
        self.save_ecosystem(engine)
        self._engines[room_id] = engine
        self._game_over[room_id] = False
        logger.info("Room %s: farm created with a %s", room_id, starter)
        return farm

    def load_ecosystem(self, room_id: str, now: Optional[datetime] = None) -> EcosystemEngine:
        """Engine of a room, loaded from the store on first use.

        A room without stored health records gets one full-health animal per
        unlocked species.
        """
        engine = self._engines.get(room_id)
        if engine is not None:
            return engine

        data = self.dm.load_document(room_id, ECOSYSTEM_DOC)
        farm = None if data else self.load_farm(room_id)
        engine, seeded = self._engine_from_document(room_id, data, farm, now)
        if seeded:
            self.save_ecosystem(engine)
        self._engines[room_id] = engine
        return engine

    async def _async_load_ecosystem(self, room_id: str, farm: RoomFarm, now: datetime) -> EcosystemEngine:
        engine = self._engines.get(room_id)
        if engine is not None:
            return engine

        data = await self.dm.async_load_document(room_id, ECOSYSTEM_DOC)
        engine, seeded = self._engine_from_document(room_id, data, farm, now)
        if seeded:
            await self.dm.async_save_document(room_id, ECOSYSTEM_DOC, engine.snapshot().model_dump(mode='json'))
        # another coroutine may have loaded the room while this one waited
        return self._engines.setdefault(room_id, engine)

    def _engine_from_document(self, room_id: str, data: Optional[dict], farm: Optional[RoomFarm],
                              now: Optional[datetime]) -> Tuple[EcosystemEngine, bool]:
        """Engine for a stored document, or a seeded one; the flag says whether it was seeded"""
        if data:
            return self._new_engine(FarmEcosystem.model_validate(data)), False
        now = as_utc(now or utcnow())
        engine = self._new_engine(FarmEcosystem(room_id=room_id, last_updated_at=now))
        if farm is None:
            return engine, False
        for species in farm.unlocked_animals:
            engine.add_animal(species, now)
        return engine, True

    def farm_day(self, room_id: str, now: Optional[datetime] = None) -> int:
        """Whole days survived since the farm was (re)started"""
        now = as_utc(now or utcnow())
        farm = self._require_farm(room_id)
        return max(0, (now - as_utc(farm.created_at)).days)

    # ========== points ==========

    def record_activity(self, room_id: str, activity_type: Union[str, ActivityType],
                        now: Optional[datetime] = None) -> RoomMetrics:
        """Award love energy for an activity sent to the partner; animals are not healed"""
        now = as_utc(now or utcnow())
        activity = ActivityType(activity_type)
        metrics = self._require_metrics(room_id)
        farm = self._require_farm(room_id)

        metrics.love_energy += activity.love_points
        if activity is ActivityType.DOODLE:
            metrics.total_doodles += 1
        farm.last_activity_at = now

        self.save_metrics(metrics)
        self.save_farm(farm)
        logger.info("Room %s: %s earned %d love energy", room_id, activity.value, activity.love_points)
        return metrics

    def _debit(self, metrics: RoomMetrics, item: Union[PlantInfo, AnimalInfo], quantity: int = 1) -> int:
        cost = item.cost * quantity
        if not can_afford(item, metrics.love_energy, quantity):
            raise ValueError(f'Not enough love energy: need {cost}, have {metrics.love_energy}')
        metrics.love_energy -= cost
        self.save_metrics(metrics)
        return cost

    # ========== shop ==========

    def purchase_plant(self, room_id: str, plant_id: str, quantity: int = 1,
                       now: Optional[datetime] = None) -> int:
        """Buy plants for love energy; returns the new inventory count"""
        now = as_utc(now or utcnow())
        plant = plant_by_id(plant_id)
        if plant is None:
            raise ValueError(f'Unknown plant: {plant_id}')
        if quantity < 1:
            raise ValueError('Quantity must be at least 1')
        day = self.farm_day(room_id, now)
        if plant.unlock_day > day:
            raise ValueError(f'{plant.name} unlocks on day {plant.unlock_day}')

        metrics = self._require_metrics(room_id)
        cost = self._debit(metrics, plant, quantity)

        engine = self.load_ecosystem(room_id, now)
        count = engine.buy_plant(plant_id, quantity, now)
        self.save_ecosystem(engine)
        logger.info("Room %s: bought %d %s for %d love energy", room_id, quantity, plant.name, cost)
        return count

    def purchase_animal(self, room_id: str, species: str, now: Optional[datetime] = None) -> AnimalId:
        """Buy an animal individual for love energy and unlock its species"""
        now = as_utc(now or utcnow())
        info = animal_by_id(species)
        if info is None:
            raise ValueError(f'Unknown animal: {species}')
        day = self.farm_day(room_id, now)
        if info.unlock_day > day:
            raise ValueError(f'{info.name} unlocks on day {info.unlock_day}')

        metrics = self._require_metrics(room_id)
        farm = self._require_farm(room_id)
        self._debit(metrics, info)

        if species not in farm.unlocked_animals:
            farm.unlocked_animals.append(species)
            self.save_farm(farm)

        engine = self.load_ecosystem(room_id, now)
        animal_id = engine.add_animal(species, now)
        self.save_ecosystem(engine)
        self._evaluate_game_over(room_id, farm, engine)
        logger.info("Room %s: bought a %s for %d love energy", room_id, info.name, info.cost)
        return animal_id

    # ========== care ==========

    def feed_animal(self, room_id: str, animal_id: Union[str, UUID], plant_id: str,
                    now: Optional[datetime] = None) -> bool:
        try:
            key = animal_id if isinstance(animal_id, UUID) else UUID(str(animal_id))
        except ValueError:
            return False
        engine = self.load_ecosystem(room_id, now)
        fed = engine.feed_animal(AnimalId(key), plant_id, now)
        if fed:
            self.save_ecosystem(engine)
        return fed

    def refresh(self, room_id: str, now: Optional[datetime] = None) -> RoomStatus:
        """Decay health, retire dead animals and persist; called by the ticker"""
        now = as_utc(now or utcnow())
        farm = self._require_farm(room_id)
        engine = self.load_ecosystem(room_id, now)
        status, changed_farm = self._advance(room_id, farm, self.load_metrics(room_id), engine, now)
        if changed_farm is not None:
            self.save_farm(changed_farm)
        self.save_ecosystem(engine)
        return status

    async def async_refresh(self, room_id: str, now: Optional[datetime] = None) -> RoomStatus:
        """Same as refresh, with every store access going through aiofiles"""
        now = as_utc(now or utcnow())
        farm_data = await self.dm.async_load_document(room_id, FARM_DOC)
        if not farm_data:
            raise ValueError(f'Room {room_id} does not exist')
        farm = RoomFarm.model_validate(farm_data)
        metrics_data = await self.dm.async_load_document(room_id, METRICS_DOC)
        metrics = RoomMetrics.model_validate(metrics_data) if metrics_data else None
        engine = await self._async_load_ecosystem(room_id, farm, now)

        status, changed_farm = self._advance(room_id, farm, metrics, engine, now)
        if changed_farm is not None:
            await self.dm.async_save_document(room_id, FARM_DOC, changed_farm.model_dump(mode='json'))
        await self.dm.async_save_document(room_id, ECOSYSTEM_DOC, engine.snapshot().model_dump(mode='json'))
        return status

    def _advance(self, room_id: str, farm: RoomFarm, metrics: Optional[RoomMetrics], engine: EcosystemEngine,
                 now: datetime) -> Tuple[RoomStatus, Optional[RoomFarm]]:
        """Decay, build the status, prune and retire; no store access"""
        engine.update_health(now)
        status = self._build_status(room_id, engine, farm, metrics, now)

        removed = engine.remove_dead_animals()
        changed_farm = None
        if removed:
            if self._retire_species(farm, engine, removed):
                changed_farm = farm
            for animal in removed:
                logger.info("Room %s: %s %s died of starvation", room_id, animal.animal_type, animal.id)
        status.removed_animals = removed
        status.is_game_over = self._evaluate_game_over(room_id, farm, engine)
        return status, changed_farm

    @staticmethod
    def _retire_species(farm: RoomFarm, engine: EcosystemEngine, removed: List[AnimalHealth]) -> bool:
        """Drop species with no living individual left from the unlocked list"""
        living = {a.animal_type for a in engine.animals().values()}
        dead_types = {a.animal_type for a in removed} - living
        if not dead_types:
            return False
        farm.unlocked_animals = [s for s in farm.unlocked_animals if s not in dead_types]
        return True

    # ========== status ==========

    def status(self, room_id: str, now: Optional[datetime] = None) -> RoomStatus:
        """Current status without advancing time"""
        now = as_utc(now or utcnow())
        farm = self._require_farm(room_id)
        engine = self.load_ecosystem(room_id, now)
        status = self._build_status(room_id, engine, farm, self.load_metrics(room_id), now)
        status.is_game_over = self._game_over_condition(farm, engine)
        return status

    @staticmethod
    def _build_status(room_id: str, engine: EcosystemEngine, farm: RoomFarm, metrics: Optional[RoomMetrics],
                      now: datetime) -> RoomStatus:
        return RoomStatus(
            room_id=room_id,
            overall_health_percentage=engine.overall_health_percentage,
            critical_animals_count=engine.critical_animals_count,
            dead_animals_count=engine.dead_animals_count,
            worst_warning_level=engine.worst_warning_level,
            warning_message=engine.warning_message,
            animals=sorted(engine.animals().values(), key=lambda a: (a.animal_type, str(a.id))),
            plant_inventory=engine.inventory(),
            love_energy=metrics.love_energy if metrics else 0,
            farm_day=max(0, (now - as_utc(farm.created_at)).days),
        )

    def farm_health(self, room_id: str, now: Optional[datetime] = None) -> FarmHealth:
        """Whole-farm health from the last activity, for rooms without health records"""
        farm = self._require_farm(room_id)
        return FarmHealth.calculate(farm.last_activity_at, now)

    def is_game_over(self, room_id: str) -> bool:
        farm = self.load_farm(room_id)
        if farm is None:
            return True
        return self._game_over_condition(farm, self.load_ecosystem(room_id))

    @staticmethod
    def _game_over_condition(farm: RoomFarm, engine: EcosystemEngine) -> bool:
        if not farm.unlocked_animals:
            return True
        animals = engine.animals()
        if animals:
            return all(a.is_dead for a in animals.values())
        return False

    def _evaluate_game_over(self, room_id: str, farm: RoomFarm, engine: EcosystemEngine) -> bool:
        over = self._game_over_condition(farm, engine)
        was_over = self._game_over.get(room_id, False)
        if over and not was_over:
            logger.info("Room %s: all animals lost, game over", room_id)
        elif was_over and not over:
            logger.info("Room %s: farm revived", room_id)
        self._game_over[room_id] = over
        return over

    # ========== restart ==========

    def restart_farm(self, room_id: str, now: Optional[datetime] = None) -> RoomFarm:
        """Start over with the starter animal; the longest streak survives"""
        now = as_utc(now or utcnow())
        metrics = self._require_metrics(room_id)
        farm = self._require_farm(room_id)
        starter = self.config.starter_animal

        metrics.longest_streak = max(metrics.longest_streak, metrics.current_streak)
        metrics.current_streak = 0
        metrics.love_energy = 0
        farm.unlocked_animals = [starter]
        farm.created_at = now
        farm.last_activity_at = now

        engine = self._new_engine(FarmEcosystem(room_id=room_id, last_updated_at=now))
        engine.add_animal(starter, now)
        self._engines[room_id] = engine

        self.save_metrics(metrics)
        self.save_farm(farm)
        self.save_ecosystem(engine)
        self._evaluate_game_over(room_id, farm, engine)
        logger.info("Room %s: farm restarted, longest streak %d", room_id, metrics.longest_streak)
        return farm
