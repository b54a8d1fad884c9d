import asyncio
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import fakeredis
import mongomock
import pytest
from fastapi.testclient import TestClient

from meter_api.config import Settings
from meter_api.main import create_app
from meter_api.pipeline import IngestionPipeline
from meter_api.repos.mongo_repo import MongoRepo
from meter_api.repos.redis_repo import RedisRepo


class RecordingViewer:
    """Stands in for a dashboard websocket; keeps everything pushed to it."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def accept(self) -> None:
        pass

    async def send_json(self, payload) -> None:
        self.messages.append(payload)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongo_uri="mongodb://unused",
        mongo_db="wisun_emeter_test",
        redis_url="redis://unused",
        udp_host="127.0.0.1",
        udp_port=0,
        udp_enabled=False,
        frontend_url="http://localhost:3000",
        log_level="DEBUG",
        host="127.0.0.1",
        port=5000,
    )


@pytest.fixture
def mongo() -> MongoRepo:
    return MongoRepo("mongodb://unused", "wisun_emeter_test", client=mongomock.MongoClient())


@pytest.fixture
def cache() -> RedisRepo:
    return RedisRepo("redis://unused", client=fakeredis.FakeRedis())


@pytest.fixture
def registered(mongo: MongoRepo) -> MongoRepo:
    """D1 with N1 linked to it, plus D2 with N2 for cross-link checks."""
    mongo.register_device({"deviceId": "D1", "deviceName": "Gateway 1"})
    mongo.register_node({"nodeId": "N1", "nodeName": "Meter 1", "deviceId": "D1"})
    mongo.register_device({"deviceId": "D2", "deviceName": "Gateway 2"})
    mongo.register_node({"nodeId": "N2", "nodeName": "Meter 2", "deviceId": "D2"})
    return mongo


@pytest.fixture
def publisher() -> AsyncMock:
    pub = AsyncMock()
    pub.publish = AsyncMock()
    return pub


@pytest.fixture
def pipeline(registered: MongoRepo, publisher: AsyncMock, cache: RedisRepo) -> IngestionPipeline:
    return IngestionPipeline(registered, publisher, cache=cache)


@pytest.fixture
def app(settings: Settings, mongo: MongoRepo, cache: RedisRepo):
    return create_app(settings, mongo=mongo, cache=cache)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def viewer(app) -> RecordingViewer:
    v = RecordingViewer()
    asyncio.run(app.state.ws_manager.connect(v))
    return v


@pytest.fixture
def simple_payload() -> Dict[str, Any]:
    return {
        "deviceId": "D1",
        "nodeId": "N1",
        "current": 5,
        "voltage": 230,
        "powerFactor": 0.95,
        "apparentPower": 1.1,
    }


@pytest.fixture
def legacy_payload() -> Dict[str, Any]:
    return {
        "device": "D1",
        "parent": "N1",
        "current": 5,
        "voltage": 230,
        "powerFactor": 0.95,
        "apparentPower": 1.1,
    }


@pytest.fixture
def wisun_payload() -> Dict[str, Any]:
    return {
        "device": "D1",
        "chip": "xG28",
        "parent": "N1",
        "running": "0-00:03:03",
        "connected": "0-00:02:09",
        "disconnected": "no",
        "connections": "1",
        "availability": "100.00",
        "connected_total": "0-00:02:09",
        "disconnected_total": "0-00:00:00",
        "Wisun_Data": "WiSUN-Board-20",
        "neighbor_info": {"rsl_in": -34, "rsl_out": -37, "is_lfn": 5},
        "Current": "5.00",
        "Voltage": "230.00",
        "PowerFactor": "0.950",
        "ApparentPower": "1.10",
    }
