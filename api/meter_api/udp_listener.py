"""
Summary of Data Flow:
1) Start: main.py awaits listener.start() on application startup.

2) Bind: an asyncio datagram endpoint is opened on UDP_HOST:UDP_PORT.

3) Receive: every datagram is expected to be one UTF-8 JSON object.

4) Process: each datagram runs in its own task through IngestionPipeline.ingest,
   the same path POST /api/meter/data uses.

5) Report: nothing is ever sent back to the gateway. Bad input and failures are
   logged and the datagram is dropped.
"""
import asyncio
import json
import logging
from typing import Optional, Set, Tuple

from .errors import MeterApiError
from .pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class _MeterDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, listener: "UDPTelemetryListener") -> None:
        self._listener = listener

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._listener.dispatch(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.error("UDP socket error: %s", exc)


class UDPTelemetryListener:
    def __init__(self, pipeline: IngestionPipeline, host: str, port: int) -> None:
        self._pipeline = pipeline
        self._host = host
        self._port = port
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _MeterDatagramProtocol(self),
            local_addr=(self._host, self._port),
        )
        logger.info("UDP server listening on %s:%s", *self.address[:2])

    def dispatch(self, data: bytes, addr: Tuple[str, int]) -> None:
        # keep a reference so the task is not garbage collected mid-flight
        task = asyncio.get_running_loop().create_task(self.handle_datagram(data, addr))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_datagram(self, data: bytes, addr: Tuple[str, int]) -> None:
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as ex:
            logger.warning("UDP: malformed datagram from %s:%s dropped: %s", addr[0], addr[1], ex)
            return

        try:
            record = await self._pipeline.ingest(payload)
        except MeterApiError as ex:
            logger.warning("UDP: datagram from %s:%s dropped: %s", addr[0], addr[1], ex.message)
            return
        except Exception:
            logger.exception("UDP: error processing datagram from %s:%s", addr[0], addr[1])
            return

        logger.info(
            "UDP: meter data saved from %s/%s (%s:%s)", record.deviceId, record.nodeId, addr[0], addr[1]
        )

    async def stop(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
