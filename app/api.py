"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.schemas import BridgeStatus, HistoryRecord, KeepAliveResponse
from services.bridge import IngestionBridge, build_default_bridge
from services.weather import WeatherUnavailable

logger = logging.getLogger(__name__)

router = APIRouter()


def get_bridge() -> IngestionBridge:
    return build_default_bridge()


@router.get(
    "/api/history",
    response_model=List[HistoryRecord],
    summary="Readings persisted in the last 24 hours, newest first.",
)
def get_history(bridge: IngestionBridge = Depends(get_bridge)) -> List[HistoryRecord]:
    try:
        records = bridge.history.recent()
    except SQLAlchemyError as exc:
        logger.error("Error fetching DB history: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database query failed",
        ) from exc
    return [HistoryRecord.from_record(record) for record in records]


@router.get(
    "/api/keep-alive",
    response_model=KeepAliveResponse,
    summary="Liveness probe.",
    status_code=status.HTTP_200_OK,
)
async def keep_alive() -> KeepAliveResponse:
    logger.info("Keep-alive request received")
    return KeepAliveResponse()


@router.get(
    "/api/status",
    response_model=BridgeStatus,
    summary="Broker connectivity and cache state.",
)
async def bridge_status(bridge: IngestionBridge = Depends(get_bridge)) -> BridgeStatus:
    return bridge.status()


@router.get(
    "/weather",
    summary="Current weather for the configured location.",
)
async def weather(bridge: IngestionBridge = Depends(get_bridge)) -> Dict[str, Any]:
    try:
        return await bridge.weather.fetch()
    except WeatherUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
