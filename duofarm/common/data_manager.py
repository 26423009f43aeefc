"""
Data manager - JSON file storage keyed by room id, with async variants

Every room gets its own directory holding one JSON document per concern:

    <root>/rooms/<room_id>/metrics.json
    <root>/rooms/<room_id>/farm.json
    <root>/rooms/<room_id>/ecosystem.json
"""
from pathlib import Path
import json
import logging
from typing import Optional, Dict, Any, List

import aiofiles

logger = logging.getLogger(__name__)


class DataManager:
    """
    Data manager - JSON file storage

    Usage:
        dm = DataManager(base_path=tmp_path)
        # sync methods (simple cases)
        dm.save_document('room-1', 'farm', {'farm_level': 1})
        farm = dm.load_document('room-1', 'farm')

        # async methods (inside an event loop)
        farm = await dm.async_load_document('room-1', 'farm')
        await dm.async_save_document('room-1', 'farm', farm)
    """

    def __init__(self, base_path: Optional[Path] = None):
        if base_path:
            self.root = Path(base_path)
        else:
            self.root = Path.cwd() / "data"

        self.root.mkdir(parents=True, exist_ok=True)
        self.rooms_dir = self.root / "rooms"
        self.rooms_dir.mkdir(parents=True, exist_ok=True)

    # ========== sync methods ==========
    def load_document(self, room_id: str, name: str) -> Optional[Dict[str, Any]]:
        """Load one document of a room, None if it does not exist"""
        return self._read_json(self._document_path(room_id, name))

    def save_document(self, room_id: str, name: str, data: Dict[str, Any]):
        """Save one document of a room"""
        p = self._document_path(room_id, name)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def delete_document(self, room_id: str, name: str) -> bool:
        p = self._document_path(room_id, name)
        if not p.exists():
            return False
        p.unlink()
        return True

    def room_exists(self, room_id: str) -> bool:
        return self._room_dir(room_id).is_dir()

    def list_rooms(self) -> List[str]:
        """List all room ids"""
        return sorted(p.name for p in self.rooms_dir.iterdir() if p.is_dir())

    # ========== async methods ==========
    async def async_load_document(self, room_id: str, name: str) -> Optional[Dict[str, Any]]:
        """Async load of one document of a room"""
        p = self._document_path(room_id, name)
        if not p.exists():
            return None
        async with aiofiles.open(p, 'r', encoding='utf-8') as f:
            content = await f.read()
        return self._decode(p, content)

    async def async_save_document(self, room_id: str, name: str, data: Dict[str, Any]):
        """Async save of one document of a room"""
        p = self._document_path(room_id, name)
        content = json.dumps(data, ensure_ascii=False, indent=2)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(p, 'w', encoding='utf-8') as f:
                await f.write(content)
        except OSError as e:
            raise RuntimeError(f"Failed to save {name} for room {room_id}: {e}") from e

    # ========== internals ==========
    def _room_dir(self, room_id: str) -> Path:
        """Directory of one room; the id must be a single path component"""
        rid = str(room_id)
        if not rid or rid in (".", "..") or "/" in rid or "\\" in rid:
            raise ValueError(f"Invalid room id: {room_id!r}")
        return self.rooms_dir / rid

    def _document_path(self, room_id: str, name: str) -> Path:
        return self._room_dir(room_id) / f"{name}.json"

    def _read_json(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        return self._decode(path, path.read_text(encoding="utf-8"))

    @staticmethod
    def _decode(path: Path, content: str) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable document %s", path)
            return None
