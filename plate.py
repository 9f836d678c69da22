from __future__ import annotations

import re
from typing import Callable, Pattern, Union

from errors import ValidationError

# 例: MH02FM1234
DEFAULT_PLATE_PATTERN = r"^[A-Z]{2}[0-9]{2}[A-Z]{2}[0-9]{4}$"

PlateValidator = Callable[[str], None]


class RegexPlateValidator:
    def __init__(self, pattern: Union[str, Pattern[str]] = DEFAULT_PLATE_PATTERN) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def __call__(self, vehicle_id: str) -> None:
        if not self.pattern.match(vehicle_id):
            raise ValidationError(f"Invalid vehicle number: {vehicle_id} (e.g., MH02FM1234)")


def accept_any(vehicle_id: str) -> None:
    """書式チェックをしない（外部の連携側で検証済みの場合）"""
