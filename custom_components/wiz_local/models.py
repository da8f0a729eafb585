"""Models for the WiZ Local integration."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import voluptuous as vol

from .const import METHOD_GET_PILOT, METHOD_SET_PILOT


def normalize_mac(mac: Optional[str]) -> str:
    """Bulbs report bare hex, ARP caches use colons; compare on bare lowercase hex."""
    return str(mac or "").replace(":", "").replace("-", "").lower()


class WizDeviceClass(Enum):
    WHITE_LIGHT = "white_light"
    RGB_LIGHT = "rgb_light"
    SWITCH = "switch"


# Envelope only; the contents of ``result`` differ between getPilot and
# setPilot replies and optional fields carry meaning, so they are read lazily.
# Error replies carry ``error`` instead of ``result`` and are rejected here.
PILOT_RESPONSE_SCHEMA = vol.Schema(
    {
        vol.Required("method"): str,
        vol.Optional("env"): str,
        vol.Required("result"): dict,
    },
    extra=vol.ALLOW_EXTRA,
)


@dataclass(frozen=True)
class WizCandidate:
    """An address that may or may not belong to a WiZ bulb."""

    ip: str
    mac: str = ""


@dataclass(frozen=True)
class PilotRequest:
    method: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_bytes(self) -> bytes:
        return json.dumps({"method": self.method, "params": self.params}).encode("utf-8")

    @classmethod
    def get_pilot(cls) -> "PilotRequest":
        return cls(METHOD_GET_PILOT, {})

    @classmethod
    def set_pilot(cls, params: Dict[str, Any]) -> "PilotRequest":
        return cls(METHOD_SET_PILOT, dict(params))


@dataclass(frozen=True)
class PilotResponse:
    """A parsed reply datagram."""

    method: str
    env: Optional[str] = None
    result: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PilotResponse":
        """Parse a reply datagram, raising ValueError if it is not a pilot reply."""
        try:
            payload = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as ex:
            raise ValueError(f"reply is not UTF-8: {ex}") from ex
        except json.JSONDecodeError as ex:
            raise ValueError(f"reply is not JSON: {ex}") from ex
        try:
            payload = PILOT_RESPONSE_SCHEMA(payload)
        except vol.Invalid as ex:
            raise ValueError(f"unexpected reply shape: {ex}") from ex
        return cls(method=payload["method"], env=payload.get("env"), result=payload["result"])

    @property
    def mac(self) -> Optional[str]:
        return self.result.get("mac")

    @property
    def rssi(self) -> Optional[int]:
        return self.result.get("rssi")

    @property
    def src(self) -> Optional[str]:
        return self.result.get("src")

    @property
    def state(self) -> bool:
        return bool(self.result.get("state", False))

    @property
    def scene_id(self) -> Optional[int]:
        return self.result.get("sceneId")

    @property
    def temp(self) -> Optional[int]:
        return self.result.get("temp")

    @property
    def dimming(self) -> Optional[int]:
        return self.result.get("dimming")

    @property
    def success(self) -> bool:
        # setPilot replies carry {"success": true}; treat a missing flag as success
        return self.result.get("success", True) is not False


def classify(response: PilotResponse) -> WizDeviceClass:
    """Infer the device class from which optional fields a reply carries.

    Bulbs that are off or running a scene may leave fields out and end up in
    the wrong class; the light platform depends on this exact behaviour.
    """
    if not response.dimming:
        return WizDeviceClass.SWITCH
    if response.temp:
        return WizDeviceClass.WHITE_LIGHT
    return WizDeviceClass.RGB_LIGHT


@dataclass(frozen=True)
class WizDevice:
    """Snapshot of one bulb, built fresh from every getPilot reply."""

    ip: str
    mac: str
    device_class: WizDeviceClass
    is_on: bool = False
    brightness: Optional[int] = None
    color_temp_kelvin: Optional[int] = None
    rssi: Optional[int] = None
    scene_id: Optional[int] = None
    source: Optional[str] = None

    @classmethod
    def from_response(cls, ip: str, response: PilotResponse, mac: Optional[str] = None) -> "WizDevice":
        device_class = classify(response)
        brightness = None
        color_temp = None
        if device_class != WizDeviceClass.SWITCH:
            brightness = response.dimming
            if device_class == WizDeviceClass.WHITE_LIGHT:
                color_temp = response.temp
        return cls(
            ip=ip,
            mac=normalize_mac(response.mac or mac),
            device_class=device_class,
            is_on=response.state,
            brightness=brightness,
            color_temp_kelvin=color_temp,
            rssi=response.rssi,
            scene_id=response.scene_id,
            source=response.src,
        )

    @property
    def display_name(self) -> str:
        kind = self.device_class.value.replace("_", " ").title()
        return f"WiZ {kind} {self.mac}"
