"""The WiZ Local integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .api import WizHub
from .const import (
    CONF_DISCOVERY_TIMEOUT,
    CONF_REQUEST_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DOMAIN,
)
from .discovery import candidates_from_config, merge_candidates
from .pilot import WizSocketError
from .storage import WizDeviceStorage, known_candidates

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[str] = ["light"]


def __getattr__(name: str):
    # This integration is config-entry only (no YAML options). The schema is
    # built on first lookup so the protocol modules import without Home Assistant.
    if name == "CONFIG_SCHEMA":
        import homeassistant.helpers.config_validation as cv  # type: ignore

        schema = globals()["CONFIG_SCHEMA"] = cv.config_entry_only_config_schema(DOMAIN)
        return schema
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


async def async_setup(hass: HomeAssistant, config: dict):
    """Set up the WiZ Local integration (YAML not supported)."""
    hass.data.setdefault(DOMAIN, {})
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry):
    """Set up WiZ Local from a config entry."""
    config = {**entry.data, **entry.options}
    hub = WizHub(
        discovery_timeout=float(config.get(CONF_DISCOVERY_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT)),
        request_timeout=float(config.get(CONF_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT)),
    )

    # Devices seen on earlier runs get an entity even if they are silent now
    storage = WizDeviceStorage(hass.config.config_dir, hass)
    known = await storage.read()
    hub.restore(known)

    candidates = await hass.async_add_executor_job(candidates_from_config, config)
    candidates = merge_candidates(candidates, known_candidates(known))
    _LOGGER.debug("Probing %s WiZ candidates", len(candidates))
    try:
        devices = await hub.async_discover(candidates)
    except WizSocketError as ex:
        from homeassistant.exceptions import ConfigEntryNotReady  # type: ignore

        raise ConfigEntryNotReady(f"Cannot open UDP socket: {ex}") from ex
    _LOGGER.debug("Discovered these lights: %s", devices)

    await storage.write(hub.devices)

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {"hub": hub, "storage": storage}

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry):
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)
    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry):
    """Handle reload of a config entry."""
    await hass.config_entries.async_reload(entry.entry_id)
