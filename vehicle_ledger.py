from __future__ import annotations

from typing import Dict, List, Optional

from errors import DuplicateVehicle, VehicleNotFound
from models import ActiveSession, normalize_vehicle_id


class VehicleLedger:
    """駐車中セッションの台帳（キーは大文字化した車両ID）"""

    def __init__(self) -> None:
        self._sessions: Dict[str, ActiveSession] = {}

    def register(self, vehicle_id: str, session: ActiveSession) -> None:
        key = normalize_vehicle_id(vehicle_id)
        if key in self._sessions:
            raise DuplicateVehicle(key)
        self._sessions[key] = session

    def lookup(self, vehicle_id: str) -> Optional[ActiveSession]:
        return self._sessions.get(normalize_vehicle_id(vehicle_id))

    def remove(self, vehicle_id: str) -> ActiveSession:
        key = normalize_vehicle_id(vehicle_id)
        session = self._sessions.pop(key, None)
        if session is None:
            raise VehicleNotFound(key)
        return session

    def sessions(self) -> List[ActiveSession]:
        return list(self._sessions.values())

    def clear(self) -> None:
        self._sessions.clear()

    def __contains__(self, vehicle_id: object) -> bool:
        return isinstance(vehicle_id, str) and vehicle_id.strip().upper() in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
