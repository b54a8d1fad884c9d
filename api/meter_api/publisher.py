
from .models import TelemetryDoc
from .ws_manager import WSManager

METER_DATA_EVENT = "meterData"


class MeterDataPublisher:
    """Pushes accepted records to whoever is connected right now.

    No acknowledgement and no replay: a viewer that connects later has to
    fetch history over the REST API.
    """

    def __init__(self, ws_manager: WSManager) -> None:
        self._ws = ws_manager

    async def publish(self, record: TelemetryDoc) -> None:
        await self._ws.broadcast_json({"type": METER_DATA_EVENT, "data": record.model_dump(mode="json")})
