"""Persistent record of WiZ devices seen on previous runs."""
from __future__ import annotations

import json
import logging
import os
from typing import Dict, List

from .models import WizCandidate, WizDevice, WizDeviceClass, normalize_mac

_LOGGER = logging.getLogger(__name__)

STORAGE_SCHEMA_VERSION = 1
STORAGE_FILE = "wiz_local_devices.json"


class WizDeviceStorage:
    """MAC → last known IP and device class, kept in ``.storage``.

    Restored entries are probed again at startup so a bulb that kept its
    address is found even when it is missing from the ARP cache.
    """

    def __init__(self, config_dir: str, hass=None) -> None:
        self._hass = hass
        self._config_dir = config_dir

    def _path(self) -> str:
        if self._hass is not None:
            return self._hass.config.path(".storage", STORAGE_FILE)
        return os.path.join(self._config_dir, ".storage", STORAGE_FILE)

    async def read(self) -> Dict[str, dict]:
        def _read() -> Dict[str, dict]:
            path = self._path()
            try:
                with open(path, "r", encoding="utf-8") as f_handle:
                    raw = json.load(f_handle)
            except FileNotFoundError:
                return {}
            except (OSError, ValueError) as ex:
                _LOGGER.debug("Ignoring unreadable device store %s: %s", path, ex)
                return {}

            if not isinstance(raw, dict) or raw.get("__schema_version") != STORAGE_SCHEMA_VERSION:
                return {}

            out: Dict[str, dict] = {}
            devices = raw.get("devices")
            if isinstance(devices, dict):
                for mac, value in devices.items():
                    if not isinstance(value, dict) or not isinstance(value.get("ip"), str):
                        continue
                    try:
                        device_class = WizDeviceClass(value.get("device_class"))
                    except ValueError:
                        device_class = None
                    out[normalize_mac(mac)] = {
                        "ip": value["ip"],
                        "device_class": device_class,
                    }
            return out

        if self._hass is not None:
            return await self._hass.async_add_executor_job(_read)
        return _read()

    async def write(self, devices: Dict[str, WizDevice]) -> None:
        def _write() -> None:
            path = self._path()
            payload = {
                "__schema_version": STORAGE_SCHEMA_VERSION,
                "devices": {
                    mac: {"ip": dev.ip, "device_class": dev.device_class.value}
                    for mac, dev in devices.items()
                },
            }
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w", encoding="utf-8") as f_handle:
                    json.dump(payload, f_handle, ensure_ascii=False)
            except OSError as ex:
                # best-effort persistence
                _LOGGER.debug("Could not write device store %s: %s", path, ex)

        if self._hass is not None:
            await self._hass.async_add_executor_job(_write)
        else:
            _write()



def known_candidates(known: Dict[str, dict]) -> List[WizCandidate]:
    """Candidates for re-probing the devices returned by ``read``."""
    return [WizCandidate(info["ip"], mac) for mac, info in known.items()]
