"""WiZ device clients built on the pilot protocol."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .const import (
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DIMMING_MAX,
    DIMMING_MIN,
)
from .discovery import async_discover
from .models import PilotResponse, WizCandidate, WizDevice, normalize_mac
from .pilot import WizPilotClient, WizSocketError
from .temperature import clamp_kelvin

_LOGGER = logging.getLogger(__name__)


class _PilotCoalescer:
    """Share one in-flight getPilot exchange among every caller that asks for it.

    The first caller starts the fetch; callers arriving while it is in flight
    only queue up. When the fetch finishes the queue is swapped out and each
    waiter gets the same result (or the same exception) in arrival order.
    """

    def __init__(self, fetch: Callable[[], Awaitable[Optional[PilotResponse]]]):
        self._fetch = fetch
        self._in_flight = False
        self._pending: List[asyncio.Future] = []
        self._task: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def request(self) -> Optional[PilotResponse]:
        waiter = asyncio.get_running_loop().create_future()
        self._pending.append(waiter)
        if not self._in_flight:
            self._in_flight = True
            self._task = asyncio.create_task(self._run())
        return await waiter

    async def _run(self) -> None:
        result: Optional[PilotResponse] = None
        error: BaseException | None = None
        try:
            result = await self._fetch()
        except Exception as ex:
            error = ex
        finally:
            self._in_flight = False
            self._task = None
            waiters, self._pending = self._pending, []
            for waiter in waiters:
                # Callers that gave up have already cancelled their waiter
                if waiter.done():
                    continue
                if error is not None:
                    waiter.set_exception(error)
                else:
                    waiter.set_result(result)


class WizDeviceClient:
    """Get/set traffic for one bulb, identified by MAC.

    State queries are coalesced; commands are not. Two setPilot calls in
    flight at once race at the bulb and the last datagram it receives wins.
    """

    def __init__(
        self,
        ip: str,
        mac: str,
        pilot: Optional[WizPilotClient] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self._ip = ip
        self.mac = normalize_mac(mac)
        self._pilot = pilot or WizPilotClient()
        self.timeout = timeout
        self._coalescer = _PilotCoalescer(self._fetch_state)

    @property
    def ip(self) -> str:
        return self._ip

    def update_ip(self, ip: str) -> None:
        if ip != self._ip:
            _LOGGER.debug("WiZ %s moved %s → %s", self.mac, self._ip, ip)
            self._ip = ip

    async def _fetch_state(self) -> Optional[PilotResponse]:
        return await self._pilot.async_get_pilot(self._ip, timeout=self.timeout)

    async def async_get_state(self) -> Optional[PilotResponse]:
        """Current pilot of the bulb, or None if it did not answer."""
        return await self._coalescer.request()

    async def async_get_device(self) -> Optional[WizDevice]:
        response = await self.async_get_state()
        if response is None:
            return None
        return WizDevice.from_response(self._ip, response, mac=self.mac)

    async def async_set_state(self, params: Dict[str, Any]) -> Tuple[bool, str | None]:
        """Send one setPilot; WizTransportError propagates to the caller."""
        _LOGGER.debug("Sending control → %s %s", self.mac, params)
        response = await self._pilot.async_set_pilot(self._ip, params, timeout=self.timeout)
        if response is None:
            return False, "no reply"
        if not response.success:
            return False, f"bulb rejected {params}"
        _LOGGER.debug("Control success ← %s %s", self.mac, params)
        return True, None

    async def turn_on(self):
        return await self.async_set_state({"state": True})

    async def turn_off(self):
        return await self.async_set_state({"state": False})

    async def set_brightness(self, value: int):
        # Convert 0–255 (HA) → 10–100 (WiZ dimming)
        percent = max(DIMMING_MIN, min(DIMMING_MAX, round(value / 255 * 100)))
        return await self.async_set_state({"dimming": percent})

    async def set_color_temp(self, kelvin: int):
        return await self.async_set_state({"temp": clamp_kelvin(kelvin)})


def dimming_to_brightness(dimming: Optional[int]) -> Optional[int]:
    """Convert WiZ dimming (0–100) → HA brightness (0–255)."""
    if dimming is None:
        return None
    return max(0, min(255, round(int(dimming) / 100 * 255)))


class WizHub:
    """Known WiZ devices and their clients, keyed by MAC."""

    def __init__(
        self,
        pilot: Optional[WizPilotClient] = None,
        discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self._pilot = pilot or WizPilotClient(timeout=request_timeout)
        self.discovery_timeout = discovery_timeout
        self.request_timeout = request_timeout
        self._clients: Dict[str, WizDeviceClient] = {}
        self._devices: Dict[str, WizDevice] = {}

    @property
    def devices(self) -> Dict[str, WizDevice]:
        return dict(self._devices)

    def get_client(self, mac: str) -> Optional[WizDeviceClient]:
        return self._clients.get(normalize_mac(mac))

    def _register(self, device: WizDevice) -> WizDeviceClient:
        client = self._clients.get(device.mac)
        if client is None:
            client = WizDeviceClient(device.ip, device.mac, self._pilot, self.request_timeout)
            self._clients[device.mac] = client
        else:
            client.update_ip(device.ip)
        self._devices[device.mac] = device
        return client

    def restore(self, known: Dict[str, dict]) -> None:
        """Register devices remembered from a previous run without probing them."""
        for mac, info in known.items():
            mac = normalize_mac(mac)
            if mac in self._clients or not info.get("device_class"):
                continue
            self._register(WizDevice(ip=info["ip"], mac=mac, device_class=info["device_class"]))

    async def async_get_pilot(self, ip: str, timeout: Optional[float] = None) -> Optional[PilotResponse]:
        """Query ``ip``, going through the device client when one is registered there.

        A registered device then never has two getPilot exchanges outstanding,
        even when discovery overlaps a refresh; its query uses the client timeout.
        """
        for client in self._clients.values():
            if client.ip == ip:
                return await client.async_get_state()
        return await self._pilot.async_get_pilot(ip, timeout=timeout)

    async def async_discover(self, candidates: Iterable[WizCandidate]) -> List[WizDevice]:
        devices = await async_discover(candidates, self.discovery_timeout, self)
        for device in devices:
            if not device.mac:
                _LOGGER.debug("Ignoring WiZ reply from %s without a MAC", device.ip)
                continue
            self._register(device)
        return [dev for dev in devices if dev.mac]

    async def async_refresh(self) -> Dict[str, Optional[WizDevice]]:
        """Fetch a fresh snapshot of every known device concurrently."""
        macs = list(self._clients)
        results = await asyncio.gather(
            *(self._clients[mac].async_get_device() for mac in macs), return_exceptions=True
        )
        out: Dict[str, Optional[WizDevice]] = {}
        for mac, result in zip(macs, results):
            if isinstance(result, (WizSocketError, asyncio.CancelledError)):
                raise result
            if isinstance(result, Exception):
                _LOGGER.debug("State refresh for %s failed: %s", mac, result)
                result = None
            if result is not None:
                self._devices[mac] = result
            out[mac] = result
        return out
