
import logging

from fastapi import APIRouter, Depends, status

from ..deps import get_mongo
from ..errors import NotFoundError
from ..models import DeviceIn, DeviceUpdate, StatusUpdate
from ..repos.mongo_repo import MongoRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])

DEVICE_NOT_FOUND = "Device not found"


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_device(body: DeviceIn, mongo: MongoRepo = Depends(get_mongo)):
    device = mongo.register_device(body.model_dump())
    logger.info("device registered: %s", body.deviceId)
    return {"success": True, "message": "Device registered successfully", "data": device}


@router.get("")
def list_devices(mongo: MongoRepo = Depends(get_mongo)):
    devices = mongo.list_devices()
    return {"success": True, "count": len(devices), "data": devices}


@router.get("/{device_id}")
def get_device(device_id: str, mongo: MongoRepo = Depends(get_mongo)):
    device = mongo.find_device(device_id)
    if device is None:
        raise NotFoundError(DEVICE_NOT_FOUND)
    return {"success": True, "data": device}


@router.patch("/{device_id}/status")
def update_device_status(device_id: str, body: StatusUpdate, mongo: MongoRepo = Depends(get_mongo)):
    device = mongo.set_device_status(device_id, body.status)
    if device is None:
        raise NotFoundError(DEVICE_NOT_FOUND)
    return {"success": True, "message": "Device status updated", "data": device}


@router.patch("/{device_id}")
def update_device(device_id: str, body: DeviceUpdate, mongo: MongoRepo = Depends(get_mongo)):
    device = mongo.update_device(device_id, body.model_dump(exclude_none=True))
    if device is None:
        raise NotFoundError(DEVICE_NOT_FOUND)
    return {"success": True, "message": "Device updated", "data": device}


@router.delete("/{device_id}")
def delete_device(device_id: str, mongo: MongoRepo = Depends(get_mongo)):
    if not mongo.delete_device(device_id):
        raise NotFoundError(DEVICE_NOT_FOUND)
    logger.info("device deleted with its nodes: %s", device_id)
    return {"success": True, "message": "Device and associated nodes deleted successfully"}
