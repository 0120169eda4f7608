"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True, slots=True)
class Reading:
    """One sensor sample as published by the device.

    Readings carry no capture timestamp; the store stamps rows at write time.
    """

    temperature: float
    humidity: float
    light: int
    soil_raw: int
    soil_percent: int

    def to_payload(self) -> Dict[str, Any]:
        """Render the reading with the device's own field names."""
        return {
            "temp": self.temperature,
            "humidity": self.humidity,
            "lux": self.light,
            "soil_raw": self.soil_raw,
            "soil_percent": self.soil_percent,
        }


@dataclass(frozen=True, slots=True)
class PersistedRecord:
    """A reading as stored, with the store-assigned id and creation time."""

    id: int
    reading: Reading
    created_at: datetime
