from pydantic import BaseModel, ConfigDict, Field


class PlantInfo(BaseModel):
    """Plant sold in the shop and fed to animals"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    asset_name: str
    cost: int                                        # love energy
    nutrition_value: float = Field(ge=0, le=100)     # percent of max health restored
    unlock_day: int = 0
    description: str = ""

    @property
    def feeding_bonus(self) -> str:
        return f"+{int(self.nutrition_value)} hp"


class AnimalInfo(BaseModel):
    """Animal species that can be unlocked for a farm"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    asset_name: str
    cost: int
    unlock_day: int = 0

    @property
    def is_starter(self) -> bool:
        return self.cost == 0
