
import json
from typing import Any, Dict, Optional

import redis

LATEST_TTL_SECONDS = 24 * 3600


class RedisRepo:
    def __init__(self, url: str, client: Optional[redis.Redis] = None) -> None:
        self.client = client if client is not None else redis.Redis.from_url(url)

    @staticmethod
    def _latest_key(device_id: str, node_id: str) -> str:
        return f"meter:{device_id}:{node_id}:latest"

    def set_latest(self, device_id: str, node_id: str, doc_json: str) -> None:
        self.client.set(self._latest_key(device_id, node_id), doc_json, ex=LATEST_TTL_SECONDS)

    def get_latest(self, device_id: str, node_id: str) -> Optional[Dict[str, Any]]:
        raw = self.client.get(self._latest_key(device_id, node_id))
        return json.loads(raw) if raw else None
