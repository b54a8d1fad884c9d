
import json
import logging
from datetime import datetime
from typing import Optional

import redis
from fastapi import APIRouter, Depends, Query, Request, status

from ..deps import get_cache, get_mongo, get_pipeline
from ..errors import NotFoundError, ValidationError
from ..pipeline import IngestionPipeline
from ..repos.mongo_repo import MongoRepo, as_naive_utc
from ..repos.redis_repo import RedisRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meter", tags=["meter"])


@router.post("/data", status_code=status.HTTP_201_CREATED)
async def submit_meter_data(request: Request, pipeline: IngestionPipeline = Depends(get_pipeline)):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError(message="Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError(message="Request body must be a JSON object")

    record = await pipeline.ingest(payload)
    return {"success": True, "message": "Meter data received successfully", "data": record.model_dump(mode="json")}


@router.get("/latest/{device_id}/{node_id}")
def latest_meter_data(
    device_id: str,
    node_id: str,
    mongo: MongoRepo = Depends(get_mongo),
    cache: Optional[RedisRepo] = Depends(get_cache),
):
    latest = None
    if cache is not None:
        try:
            latest = cache.get_latest(device_id, node_id)
        except redis.RedisError as ex:
            logger.warning("latest cache read failed, falling back to store: %s", ex)
    if latest is None:
        latest = mongo.latest_meter_data(device_id, node_id)
    if latest is None:
        raise NotFoundError("No data found for this device and node")
    return {"success": True, "data": latest}


@router.get("/history/{device_id}/{node_id}")
def meter_history(
    device_id: str,
    node_id: str,
    limit: int = Query(100, ge=1, le=1000),
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    mongo: MongoRepo = Depends(get_mongo),
):
    rows = mongo.meter_history(
        device_id, node_id, limit=limit, start=as_naive_utc(startDate), end=as_naive_utc(endDate)
    )
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/device/{device_id}/latest")
def device_latest(device_id: str, mongo: MongoRepo = Depends(get_mongo)):
    nodes = mongo.list_nodes(device_id)
    if not nodes:
        return {"success": True, "message": "No nodes found for this device", "data": []}
    latest = [mongo.latest_meter_data(device_id, n["nodeId"]) for n in nodes]
    latest = [doc for doc in latest if doc is not None]
    return {"success": True, "count": len(latest), "data": latest}
