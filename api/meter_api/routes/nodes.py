
import logging

from fastapi import APIRouter, Depends, status

from ..deps import get_mongo
from ..errors import DeviceNotFound, NotFoundError
from ..models import NodeIn, NodeUpdate, StatusUpdate
from ..repos.mongo_repo import MongoRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nodes", tags=["nodes"])

NODE_NOT_FOUND = "Node not found"


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_node(body: NodeIn, mongo: MongoRepo = Depends(get_mongo)):
    # the device link is fixed here and only checked, never re-derived, at ingestion
    if mongo.find_device(body.deviceId) is None:
        raise DeviceNotFound()
    node = mongo.register_node(body.model_dump())
    logger.info("node registered: %s under %s", body.nodeId, body.deviceId)
    return {"success": True, "message": "Node registered successfully", "data": node}


@router.get("")
def list_nodes(mongo: MongoRepo = Depends(get_mongo)):
    nodes = mongo.list_nodes()
    return {"success": True, "count": len(nodes), "data": nodes}


@router.get("/device/{device_id}")
def list_device_nodes(device_id: str, mongo: MongoRepo = Depends(get_mongo)):
    nodes = mongo.list_nodes(device_id)
    return {"success": True, "count": len(nodes), "data": nodes}


@router.get("/{node_id}")
def get_node(node_id: str, mongo: MongoRepo = Depends(get_mongo)):
    node = mongo.find_node(node_id)
    if node is None:
        raise NotFoundError(NODE_NOT_FOUND)
    return {"success": True, "data": node}


@router.patch("/{node_id}/status")
def update_node_status(node_id: str, body: StatusUpdate, mongo: MongoRepo = Depends(get_mongo)):
    node = mongo.set_node_status(node_id, body.status)
    if node is None:
        raise NotFoundError(NODE_NOT_FOUND)
    return {"success": True, "message": "Node status updated", "data": node}


@router.patch("/{node_id}")
def update_node(node_id: str, body: NodeUpdate, mongo: MongoRepo = Depends(get_mongo)):
    node = mongo.update_node(node_id, body.model_dump(exclude_none=True))
    if node is None:
        raise NotFoundError(NODE_NOT_FOUND)
    return {"success": True, "message": "Node updated", "data": node}


@router.delete("/{node_id}")
def delete_node(node_id: str, mongo: MongoRepo = Depends(get_mongo)):
    if not mongo.delete_node(node_id):
        raise NotFoundError(NODE_NOT_FOUND)
    return {"success": True, "message": "Node deleted successfully"}
