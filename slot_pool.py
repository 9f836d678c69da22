from __future__ import annotations

import heapq
from typing import Dict, List, Mapping, Optional, Set, Tuple

from errors import ConfigError, InvalidSlot
from models import Slot, SlotStatus, VehicleCategory

DEFAULT_CAPACITIES: Dict[VehicleCategory, int] = {
    VehicleCategory.CAR: 100,
    VehicleCategory.BIKE: 300,
    VehicleCategory.TRUCK: 50,
}


class SlotIndexHeap:
    """
    空き区画番号を管理する Min-Heap
    先頭が常に最小の空き番号になる（first-fit）。

    ※ occupy 時にはヒープから取り除かないため「古い番号」が残る。
      peek 時に区画が EMPTY か確認し、それ以外は捨てる（lazy deletion）。
      同じ番号は二重に入れない（_members）ので、要素数は区画数を超えない。
    """

    def __init__(self, slots: List[Slot]) -> None:
        self._slots = slots
        self._heap: List[int] = [s.index for s in slots if s.status == SlotStatus.EMPTY]
        heapq.heapify(self._heap)
        self._members: Set[int] = set(self._heap)

    def push(self, index: int) -> None:
        if index in self._members:
            return
        heapq.heappush(self._heap, index)
        self._members.add(index)

    def peek_lowest(self) -> Optional[int]:
        while self._heap:
            index = self._heap[0]
            if self._slots[index - 1].status == SlotStatus.EMPTY:
                return index
            # 古い要素（OCCUPIED）なので捨てる
            heapq.heappop(self._heap)
            self._members.discard(index)
        return None

    def size(self) -> int:
        return len(self._heap)


class SlotPool:
    """区分ごとの固定長区画配列"""

    def __init__(self, capacities: Optional[Mapping[VehicleCategory, int]] = None) -> None:
        capacities = dict(DEFAULT_CAPACITIES if capacities is None else capacities)
        self._capacities: Dict[VehicleCategory, int] = {}
        for category in VehicleCategory:
            capacity = int(capacities.get(category, 0))
            if capacity < 0:
                raise ConfigError(f"Capacity for {category.value} cannot be negative")
            self._capacities[category] = capacity

        self._slots: Dict[VehicleCategory, List[Slot]] = {}
        self._free: Dict[VehicleCategory, SlotIndexHeap] = {}
        self.clear()

    # -------------------------
    # 初期化
    # -------------------------
    def clear(self) -> None:
        for category, capacity in self._capacities.items():
            self._slots[category] = [Slot(index=i) for i in range(1, capacity + 1)]
            self._free[category] = SlotIndexHeap(self._slots[category])

    def rebuild(self, occupancy: Mapping[Tuple[VehicleCategory, int], str]) -> None:
        """(区分, 番号) -> 車両ID から占有状態を作り直す。参照されない区画は空きになる。"""
        self.clear()
        for (category, index), vehicle_id in occupancy.items():
            slot = self._get(category, index)
            slot.status = SlotStatus.OCCUPIED
            slot.occupant = vehicle_id
        for category in VehicleCategory:
            self._free[category] = SlotIndexHeap(self._slots[category])

    # -------------------------
    # 参照
    # -------------------------
    def capacity(self, category: VehicleCategory) -> int:
        return self._capacities[category]

    def capacities(self) -> Dict[VehicleCategory, int]:
        return dict(self._capacities)

    def slots(self, category: VehicleCategory) -> List[Slot]:
        return [Slot(s.index, s.status, s.occupant) for s in self._slots[category]]

    def slot(self, category: VehicleCategory, index: int) -> Slot:
        s = self._get(category, index)
        return Slot(s.index, s.status, s.occupant)

    def occupied_count(self, category: VehicleCategory) -> int:
        return sum(1 for s in self._slots[category] if s.status == SlotStatus.OCCUPIED)

    def in_range(self, category: VehicleCategory, index: int) -> bool:
        return isinstance(index, int) and 1 <= index <= self._capacities[category]

    def find_first_available(self, category: VehicleCategory) -> Optional[int]:
        return self._free[category].peek_lowest()

    # -------------------------
    # 更新
    # -------------------------
    def occupy(self, category: VehicleCategory, index: int, vehicle_id: str) -> None:
        slot = self._get(category, index)
        if slot.status == SlotStatus.OCCUPIED:
            raise InvalidSlot(f"{category.value} slot {index} is already occupied")
        slot.status = SlotStatus.OCCUPIED
        slot.occupant = vehicle_id

    def release(self, category: VehicleCategory, index: int) -> None:
        slot = self._get(category, index)
        if slot.status == SlotStatus.EMPTY:
            raise InvalidSlot(f"{category.value} slot {index} is already empty")
        slot.status = SlotStatus.EMPTY
        slot.occupant = None
        self._free[category].push(index)

    # -------------------------
    # 内部
    # -------------------------
    def _get(self, category: VehicleCategory, index: int) -> Slot:
        if not self.in_range(category, index):
            raise InvalidSlot(
                f"{category.value} slot {index!r} is out of range 1..{self._capacities[category]}"
            )
        return self._slots[category][index - 1]
