from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional, Tuple

from pydantic import ValidationError

from ..api.schemas import NetworkUpdate

logger = logging.getLogger(__name__)


class StatusBroadcaster:
    """Fire-and-forget UDP broadcast of NetworkUpdate JSON datagrams."""

    def __init__(
        self,
        port: int,
        listen_addr: str = "0.0.0.0",
        broadcast_addr: str = "255.255.255.255",
    ) -> None:
        self.port = port
        self.listen_addr = listen_addr
        self.broadcast_addr = broadcast_addr
        self._transport: Optional[asyncio.DatagramTransport] = None

    async def open(self) -> None:
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            local_addr=(self.listen_addr, 0),
            allow_broadcast=True,
        )
        logger.info("Listening on %s", self._transport.get_extra_info("sockname"))
        logger.info("Broadcasting to %s:%s", self.broadcast_addr, self.port)

    def send(self, update: NetworkUpdate) -> bool:
        if self._transport is None:
            logger.warning("Status broadcaster not open, dropping update")
            return False
        msg = update.model_dump_json()
        logger.info("Broadcasting sensor readings: '%s'", msg)
        try:
            self._transport.sendto(msg.encode("utf-8"), (self.broadcast_addr, self.port))
        except OSError as e:
            logger.warning("Status broadcast failed: %s", e)
            return False
        return True

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None


class StatusListenerProtocol(asyncio.DatagramProtocol):
    """Decodes status datagrams and logs them. Bad datagrams are skipped."""

    def __init__(self, on_update: Optional[Callable[[NetworkUpdate], None]] = None) -> None:
        self._on_update = on_update
        self.received = 0
        self.rejected = 0

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        logger.info("Received %d bytes from %s", len(data), addr)
        try:
            update = NetworkUpdate.model_validate_json(data)
        except ValidationError as e:
            self.rejected += 1
            logger.warning("Ignoring undecodable datagram from %s: %s", addr, e)
            return
        self.received += 1
        logger.info("Received update %r", update)
        if self._on_update is not None:
            self._on_update(update)

    def error_received(self, exc: Exception) -> None:
        logger.warning("Status listener socket error: %s", exc)


async def listen(
    port: int,
    listen_addr: str = "0.0.0.0",
    stop: Optional[asyncio.Event] = None,
    on_update: Optional[Callable[[NetworkUpdate], None]] = None,
) -> StatusListenerProtocol:
    """Receive status datagrams until stop is set (forever if no stop given)."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: StatusListenerProtocol(on_update),
        local_addr=(listen_addr, port),
        allow_broadcast=True,
    )
    logger.info("Monitor listening on %s:%s", listen_addr, port)
    try:
        await (stop or asyncio.Event()).wait()
    finally:
        transport.close()
    return protocol
