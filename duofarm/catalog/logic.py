"""Fixed plant and animal catalogs and the lookups the shop uses."""
from typing import List, Optional, Tuple, Union

from .models import PlantInfo, AnimalInfo

PLANTS: Tuple[PlantInfo, ...] = (
    PlantInfo(
        id="wheat",
        name="Wheat",
        asset_name="wheat",
        cost=30,
        nutrition_value=20.0,
        unlock_day=0,
        description="Basic crop that restores 20hp to a single animal.",
    ),
    PlantInfo(
        id="tomatoes",
        name="Tomatoes",
        asset_name="tomatoes",
        cost=55,
        nutrition_value=30.0,
        unlock_day=3,
        description="Healthy produce that heals 30hp.",
    ),
    PlantInfo(
        id="potatoes",
        name="Potatoes",
        asset_name="potatoes",
        cost=80,
        nutrition_value=40.0,
        unlock_day=5,
        description="Premium harvest that restores a massive 40hp.",
    ),
)

ANIMALS: Tuple[AnimalInfo, ...] = (
    AnimalInfo(id="chicken", name="Chicken", asset_name="chicken", cost=0, unlock_day=0),
    AnimalInfo(id="sheep", name="Sheep", asset_name="sheep", cost=50, unlock_day=1),
    AnimalInfo(id="pig", name="Pig", asset_name="pig", cost=100, unlock_day=3),
    AnimalInfo(id="duck", name="Duck", asset_name="duck", cost=150, unlock_day=4),
    AnimalInfo(id="horse", name="Horse", asset_name="horse", cost=200, unlock_day=5),
    AnimalInfo(id="goat", name="Goat", asset_name="goat", cost=250, unlock_day=6),
    AnimalInfo(id="cow", name="Cow", asset_name="cow", cost=300, unlock_day=7),
)


def plant_by_id(plant_id: str) -> Optional[PlantInfo]:
    return next((p for p in PLANTS if p.id == plant_id), None)


def animal_by_id(animal_id: str) -> Optional[AnimalInfo]:
    return next((a for a in ANIMALS if a.id == animal_id), None)


def available_plants(day: int) -> List[PlantInfo]:
    """Plants unlocked by the given farm day, in shop order"""
    return [p for p in PLANTS if p.unlock_day <= day]


def available_animals(day: int) -> List[AnimalInfo]:
    """Animals unlocked by the given farm day, in shop order"""
    return [a for a in ANIMALS if a.unlock_day <= day]


def can_afford(item: Union[PlantInfo, AnimalInfo], love_energy: int, quantity: int = 1) -> bool:
    return love_energy >= item.cost * quantity
