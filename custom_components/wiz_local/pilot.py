"""Single-shot UDP client for the WiZ pilot protocol.

Every call opens its own ephemeral socket, sends one JSON datagram to the
bulb and waits for the first reply or the timeout, whichever comes first.
Bulbs use no sequence numbers, so a reply is matched on its ``method`` only.
"""
from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any, Dict, Optional

from .const import DEFAULT_REQUEST_TIMEOUT, METHOD_GET_PILOT, METHOD_SET_PILOT, WIZ_PORT
from .models import PilotRequest, PilotResponse

_LOGGER = logging.getLogger(__name__)


class WizError(Exception):
    """Base error for WiZ communication."""


class WizSocketError(WizError):
    """Raised when a local UDP socket cannot be allocated or bound."""


class WizTransportError(WizError):
    """Raised when a datagram could not be sent to a bulb."""

    def __init__(self, message: str, ip: str | None = None):
        self.ip = ip
        super().__init__(message)


class _PilotProtocol(asyncio.DatagramProtocol):
    """Resolves ``future`` with the first reply that arrives."""

    def __init__(self, ip: str, method: str, future: asyncio.Future):
        self._ip = ip
        self._method = method
        self._future = future
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        if self._future.done():
            return
        try:
            response = PilotResponse.from_bytes(data)
        except ValueError as ex:
            _LOGGER.debug("Discarding malformed reply from %s: %s", addr[0], ex)
            self._future.set_result(None)
            return
        if response.method != self._method:
            _LOGGER.debug(
                "Discarding %s reply from %s, expected %s", response.method, addr[0], self._method
            )
            self._future.set_result(None)
            return
        self._future.set_result(response)

    def error_received(self, exc):
        if not self._future.done():
            self._future.set_exception(
                WizTransportError(f"Send {self._method} to {self._ip} failed: {exc}", self._ip)
            )

    def connection_lost(self, exc):
        pass


class WizPilotClient:
    """Stateless getPilot/setPilot client.

    A reply that does not parse, or answers a different method, resolves to
    ``None`` just like a timeout; callers cannot tell an offline bulb from a
    noisy one.
    """

    def __init__(
        self,
        port: int = WIZ_PORT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        bind_host: str = "0.0.0.0",
    ):
        self.port = port
        self.timeout = timeout
        self._bind_host = bind_host

    def _open_socket(self) -> socket.socket:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as ex:
            raise WizSocketError(f"Could not allocate UDP socket: {ex}") from ex
        try:
            sock.setblocking(False)
            sock.bind((self._bind_host, 0))
        except OSError as ex:
            sock.close()
            raise WizSocketError(f"Could not bind UDP socket on {self._bind_host}: {ex}") from ex
        return sock

    async def async_send(
        self,
        ip: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[PilotResponse]:
        """Send one request to ``ip`` and return its reply, or None if there is none.

        Raises WizSocketError when no local socket can be set up and
        WizTransportError when the datagram cannot be sent.
        """
        request = PilotRequest(method, dict(params or {}))
        wait = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        sock = self._open_socket()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _PilotProtocol(ip, method, future), sock=sock
            )
        except OSError as ex:
            sock.close()
            raise WizSocketError(f"Could not open UDP transport: {ex}") from ex

        try:
            _LOGGER.debug("Sending %s → %s: %s", method, ip, request.params)
            transport.sendto(request.to_bytes(), (ip, self.port))
            try:
                response = await asyncio.wait_for(future, wait)
            except asyncio.TimeoutError:
                _LOGGER.debug("No %s reply from %s within %ss", method, ip, wait)
                return None
            if response is not None:
                _LOGGER.debug("Reply ← %s %s: %s", ip, method, response.result)
            return response
        finally:
            transport.close()

    async def async_get_pilot(self, ip: str, timeout: Optional[float] = None) -> Optional[PilotResponse]:
        return await self.async_send(ip, METHOD_GET_PILOT, {}, timeout)

    async def async_set_pilot(
        self, ip: str, params: Dict[str, Any], timeout: Optional[float] = None
    ) -> Optional[PilotResponse]:
        return await self.async_send(ip, METHOD_SET_PILOT, params, timeout)
