"""Pydantic schemas for the broker payloads and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import PersistedRecord, Reading


class SensorPayload(BaseModel):
    """JSON document published by the device on the sensor topic."""

    model_config = ConfigDict(extra="ignore")

    temp: float
    humidity: float
    lux: float
    soil_raw: int = Field(..., ge=0)
    soil_percent: int = Field(..., ge=0, le=100)

    @field_validator("soil_raw", "soil_percent", mode="before")
    @classmethod
    def _round_integral(cls, value: object) -> object:
        # The firmware may format integer channels as floats.
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    def to_reading(self) -> Reading:
        return Reading(
            temperature=self.temp,
            humidity=self.humidity,
            light=int(round(self.lux)),
            soil_raw=self.soil_raw,
            soil_percent=self.soil_percent,
        )


class HistoryRecord(BaseModel):
    """One row of the history endpoint."""

    temperature: float
    humidity: float
    light: int
    soil: int = Field(..., description="Raw soil moisture value.")
    created_at: datetime

    @classmethod
    def from_record(cls, record: PersistedRecord) -> "HistoryRecord":
        reading = record.reading
        return cls(
            temperature=reading.temperature,
            humidity=reading.humidity,
            light=reading.light,
            soil=reading.soil_raw,
            created_at=record.created_at,
        )


class KeepAliveResponse(BaseModel):
    status: str = "Server is awake"


class BridgeStatus(BaseModel):
    """Connectivity and cache snapshot exposed to operators."""

    broker_connected: bool
    last_message_at: Optional[datetime] = None
    reading_cached: bool
    reading_updated_at: Optional[datetime] = None
    viewer_count: int = Field(..., ge=0)
    messages_received: int = Field(..., ge=0)
    messages_invalid: int = Field(..., ge=0)
