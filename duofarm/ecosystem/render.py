from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..catalog.logic import animal_by_id, plant_by_id
from ..session.models import RoomStatus


class EcosystemRenderer:
    def __init__(self, template_dir: Optional[Path] = None):
        # __file__ is .../duofarm/ecosystem/render.py -> parents[1] is the package root
        self.template_dir = template_dir or Path(__file__).resolve().parents[1] / "resources" / "ecosystem"
        self._env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html"]),
        )
        self._env.filters["percent"] = lambda v: f"{round(v * 100)}%"
        self._env.filters["animal_name"] = _animal_name
        self._env.filters["plant_name"] = _plant_name

    def render_template(self, template_name: str, **context) -> str:
        tpl = self._env.get_template(template_name)
        return tpl.render(**context)

    def render_status(self, status: RoomStatus) -> str:
        """HTML status card for one room"""
        return self.render_template("status.html", status=status)


def _animal_name(species: str) -> str:
    info = animal_by_id(species)
    return info.name if info else species


def _plant_name(plant_id: str) -> str:
    info = plant_by_id(plant_id)
    return info.name if info else plant_id
