"""
Shared ingestion path for every transport:

1) normalize the raw payload (either producer format)
2) check that the device and its linked node are registered
3) persist the record with a server timestamp
4) bump device/node liveness (best effort)
5) refresh the latest-reading cache (best effort)
6) publish to live viewers

Errors from steps 1-3 are raised as MeterApiError subclasses; the transport
decides how to report them (HTTP status vs. log-and-drop for UDP).

pymongo and redis-py block, so every store call runs in the default executor;
a slow round-trip never stalls the loop shared by HTTP and UDP.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import redis
from pymongo.errors import PyMongoError

from .errors import LivenessUpdateError, PersistenceError
from .models import TelemetryDoc
from .normalizer import normalize
from .publisher import MeterDataPublisher
from .repos.mongo_repo import MongoRepo, utcnow
from .repos.redis_repo import RedisRepo
from .validator import verify_references

logger = logging.getLogger(__name__)


class IngestionPipeline:
    def __init__(
        self,
        mongo: MongoRepo,
        publisher: MeterDataPublisher,
        cache: Optional[RedisRepo] = None,
    ) -> None:
        self.mongo = mongo
        self.publisher = publisher
        self.cache = cache

    async def ingest(self, payload: Dict[str, Any]) -> TelemetryDoc:
        draft = normalize(payload)

        try:
            await self._offload(verify_references, self.mongo, draft.deviceId, draft.nodeId)
        except PyMongoError as ex:
            raise PersistenceError() from ex

        record = TelemetryDoc(**draft.model_dump(), timestamp=utcnow())
        try:
            await self._offload(self.mongo.insert_meter_data, record.model_dump())
        except PyMongoError as ex:
            raise PersistenceError() from ex

        try:
            await self._offload(self._touch, record)
        except LivenessUpdateError as ex:
            logger.warning("%s", ex)
        await self._offload(self._cache_latest, record)
        await self.publisher.publish(record)
        return record

    async def _offload(self, func: Callable, *args: Any) -> Any:
        return await asyncio.get_running_loop().run_in_executor(None, lambda: func(*args))

    def _touch(self, record: TelemetryDoc) -> None:
        # no rollback: the record stays committed even if this fails
        failed = []
        for touch, key in ((self.mongo.touch_device, record.deviceId), (self.mongo.touch_node, record.nodeId)):
            try:
                touch(key, record.timestamp)
            except PyMongoError as ex:
                failed.append(f"{key} ({ex})")
        if failed:
            raise LivenessUpdateError("Failed to update liveness for " + ", ".join(failed))

    def _cache_latest(self, record: TelemetryDoc) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set_latest(record.deviceId, record.nodeId, record.model_dump_json())
        except redis.RedisError as ex:
            logger.warning("latest cache update failed for %s/%s: %s", record.deviceId, record.nodeId, ex)
