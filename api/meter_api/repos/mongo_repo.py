
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..errors import ConflictError

RETENTION_SECONDS = 30 * 24 * 3600
NO_ID = {"_id": 0}


def utcnow() -> datetime:
    # naive UTC at millisecond precision, which is exactly what Mongo hands back on read
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MongoRepo:
    def __init__(self, uri: str, db_name: str, client: Optional[MongoClient] = None) -> None:
        self.client = client if client is not None else MongoClient(uri)
        self.db = self.client[db_name]
        self.devices = self.db["devices"]
        self.nodes = self.db["nodes"]
        self.meter_data = self.db["meter_data"]

        self.devices.create_index([("deviceId", ASCENDING)], unique=True)
        self.nodes.create_index([("nodeId", ASCENDING)], unique=True)
        self.nodes.create_index([("deviceId", ASCENDING)])
        self.meter_data.create_index(
            [("deviceId", ASCENDING), ("nodeId", ASCENDING), ("timestamp", DESCENDING)]
        )
        # records expire 30 days after their server timestamp
        self.meter_data.create_index([("timestamp", ASCENDING)], expireAfterSeconds=RETENTION_SECONDS)

    # --- telemetry
    def insert_meter_data(self, doc: Dict[str, Any]) -> None:
        # insert_one mutates its argument with _id, keep the caller's dict clean
        self.meter_data.insert_one(dict(doc))

    def latest_meter_data(self, device_id: str, node_id: str) -> Optional[Dict[str, Any]]:
        return self.meter_data.find_one(
            {"deviceId": device_id, "nodeId": node_id}, NO_ID, sort=[("timestamp", DESCENDING)]
        )

    def meter_history(
        self,
        device_id: str,
        node_id: str,
        limit: int = 100,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"deviceId": device_id, "nodeId": node_id}
        if start or end:
            query["timestamp"] = {}
            if start:
                query["timestamp"]["$gte"] = start
            if end:
                query["timestamp"]["$lte"] = end
        cur = self.meter_data.find(query, NO_ID).sort("timestamp", DESCENDING).limit(limit)
        return list(cur)

    def count_meter_data(self, device_id: Optional[str] = None) -> int:
        query = {"deviceId": device_id} if device_id else {}
        return self.meter_data.count_documents(query)

    # --- liveness
    def touch_device(self, device_id: str, ts: datetime) -> None:
        self.devices.update_one({"deviceId": device_id}, {"$set": {"lastSeen": ts}})

    def touch_node(self, node_id: str, ts: datetime) -> None:
        self.nodes.update_one({"nodeId": node_id}, {"$set": {"lastDataReceived": ts}})

    # --- devices
    def find_device(self, device_id: str) -> Optional[Dict[str, Any]]:
        return self.devices.find_one({"deviceId": device_id}, NO_ID)

    def register_device(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        doc = {**fields, "status": "active", "registeredAt": now, "lastSeen": now}
        try:
            self.devices.insert_one(dict(doc))
        except DuplicateKeyError:
            raise ConflictError("Device with this ID already exists")
        return doc

    def list_devices(self) -> List[Dict[str, Any]]:
        return list(self.devices.find({}, NO_ID).sort("registeredAt", DESCENDING))

    def update_device(self, device_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not changes:
            return self.find_device(device_id)
        return self.devices.find_one_and_update(
            {"deviceId": device_id}, {"$set": changes}, projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )

    def set_device_status(self, device_id: str, status: str) -> Optional[Dict[str, Any]]:
        return self.update_device(device_id, {"status": status, "lastSeen": utcnow()})

    def delete_device(self, device_id: str) -> bool:
        deleted = self.devices.find_one_and_delete({"deviceId": device_id})
        if deleted is None:
            return False
        self.nodes.delete_many({"deviceId": device_id})
        return True

    # --- nodes
    def find_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        return self.nodes.find_one({"nodeId": node_id}, NO_ID)

    def find_linked_node(self, node_id: str, device_id: str) -> Optional[Dict[str, Any]]:
        return self.nodes.find_one({"nodeId": node_id, "deviceId": device_id}, NO_ID)

    def register_node(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        doc = {**fields, "status": "active", "registeredAt": now, "lastDataReceived": now}
        try:
            self.nodes.insert_one(dict(doc))
        except DuplicateKeyError:
            raise ConflictError("Node with this ID already exists")
        return doc

    def list_nodes(self, device_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = {"deviceId": device_id} if device_id else {}
        return list(self.nodes.find(query, NO_ID).sort("registeredAt", DESCENDING))

    def update_node(self, node_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not changes:
            return self.find_node(node_id)
        return self.nodes.find_one_and_update(
            {"nodeId": node_id}, {"$set": changes}, projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )

    def set_node_status(self, node_id: str, status: str) -> Optional[Dict[str, Any]]:
        return self.update_node(node_id, {"status": status, "lastDataReceived": utcnow()})

    def delete_node(self, node_id: str) -> bool:
        return self.nodes.find_one_and_delete({"nodeId": node_id}) is not None
