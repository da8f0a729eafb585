"""WiZ Local light platform."""
import logging
from datetime import timedelta

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ATTR_COLOR_TEMP_KELVIN,
    ColorMode,
    LightEntity,
)

from .const import (
    COLOR_TEMP_KELVIN_MAX,
    COLOR_TEMP_KELVIN_MIN,
    CONF_SCAN_INTERVAL,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
    MANUFACTURER,
)
from .api import WizDeviceClient, WizHub, dimming_to_brightness
from .models import WizDevice, WizDeviceClass
from .pilot import WizError
from .temperature import clamp_unit, unit_from_reading, unit_to_kelvin

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass, entry, async_add_entities):
    """Set up the WiZ light platform."""
    hub: WizHub = hass.data[DOMAIN][entry.entry_id]["hub"]
    interval = entry.options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL)

    coordinator = WizDataUpdateCoordinator(
        hass, _LOGGER, hub, update_interval=timedelta(seconds=interval), config_entry=entry
    )
    # Restored bulbs that stay silent come back as None and show unavailable
    await coordinator.async_config_entry_first_refresh()

    entities = [WizLightEntity(hub, coordinator, dev) for dev in hub.devices.values()]
    _LOGGER.debug("Registering %s WiZ light entities", len(entities))
    async_add_entities(entities)


class WizDataUpdateCoordinator(DataUpdateCoordinator):
    """Polls every known bulb through the hub."""

    def __init__(self, hass, logger, hub: WizHub, update_interval=None, *, config_entry):
        self._hub = hub
        super().__init__(
            hass,
            logger,
            name=DOMAIN,
            update_interval=update_interval,
            update_method=self._async_update,
            config_entry=config_entry,
        )

    async def _async_update(self):
        try:
            return await self._hub.async_refresh()
        except WizError as ex:
            raise UpdateFailed(f"Exception on getting states: {ex}") from ex


class WizLightEntity(LightEntity):
    """A WiZ bulb, keyed by MAC."""

    def __init__(self, hub: WizHub, coordinator: WizDataUpdateCoordinator, device: WizDevice):
        self._hub = hub
        self._coordinator = coordinator
        self._mac = device.mac
        # The class is fixed at discovery time; a later reply from a bulb
        # that is off may under-report fields
        self._device_class = device.device_class
        self._fallback_name = device.display_name

    @property
    def _device(self) -> WizDevice | None:
        if not self._coordinator.data:
            return None
        return self._coordinator.data.get(self._mac)

    async def async_added_to_hass(self):
        self.async_on_remove(self._coordinator.async_add_listener(self.async_write_ha_state))

    @property
    def should_poll(self):
        return False

    @property
    def is_on(self):
        dev = self._device
        return dev.is_on if dev else False

    @property
    def brightness(self):
        dev = self._device
        if not dev or self._device_class == WizDeviceClass.SWITCH:
            return None
        return dimming_to_brightness(dev.brightness)

    @property
    def color_temp_kelvin(self):
        dev = self._device
        if not dev or self._device_class != WizDeviceClass.WHITE_LIGHT:
            return None
        return dev.color_temp_kelvin

    @property
    def min_color_temp_kelvin(self) -> int:
        return COLOR_TEMP_KELVIN_MIN

    @property
    def max_color_temp_kelvin(self) -> int:
        return COLOR_TEMP_KELVIN_MAX

    @property
    def supported_color_modes(self) -> set[ColorMode]:
        return {self.color_mode}

    @property
    def color_mode(self) -> ColorMode:
        if self._device_class == WizDeviceClass.WHITE_LIGHT:
            return ColorMode.COLOR_TEMP
        if self._device_class == WizDeviceClass.RGB_LIGHT:
            return ColorMode.BRIGHTNESS
        return ColorMode.ONOFF

    async def _send(self, action, *args):
        client = self._hub.get_client(self._mac)
        if client is None:
            return False, "unknown device"
        try:
            return await action(client, *args)
        except WizError as ex:
            return False, str(ex)

    async def async_turn_on(self, **kwargs):
        want_ct = (ATTR_COLOR_TEMP_KELVIN in kwargs or "color_temp" in kwargs) and (
            self._device_class == WizDeviceClass.WHITE_LIGHT
        )
        want_brightness = ATTR_BRIGHTNESS in kwargs and self._device_class != WizDeviceClass.SWITCH

        results = []
        if want_ct:
            if ATTR_COLOR_TEMP_KELVIN in kwargs:
                kelvin = int(kwargs[ATTR_COLOR_TEMP_KELVIN])
            else:
                # Legacy 140–500 scale
                kelvin = unit_to_kelvin(clamp_unit(float(kwargs["color_temp"])))
            results.append(await self._send(WizDeviceClient.set_color_temp, kelvin))
        if want_brightness:
            results.append(await self._send(WizDeviceClient.set_brightness, kwargs[ATTR_BRIGHTNESS]))
        if not (want_ct or want_brightness) or not self.is_on:
            results.append(await self._send(WizDeviceClient.turn_on))

        for ok, err in results:
            if not ok:
                _LOGGER.warning("async_turn_on failed for %s: %s", self._mac, err)
        await self._coordinator.async_request_refresh()

    async def async_turn_off(self, **kwargs):
        ok, err = await self._send(WizDeviceClient.turn_off)
        if not ok:
            _LOGGER.warning("async_turn_off failed for %s: %s", self._mac, err)
        await self._coordinator.async_request_refresh()

    @property
    def name(self):
        return self._fallback_name

    @property
    def unique_id(self):
        return f"{DOMAIN}_{self._mac}"

    @property
    def device_info(self):
        return {
            "identifiers": {(DOMAIN, self._mac)},
            "name": self._fallback_name,
            "manufacturer": MANUFACTURER,
            "model": self._device_class.value,
        }

    @property
    def available(self):
        return self._coordinator.last_update_success and self._device is not None

    @property
    def extra_state_attributes(self):
        dev = self._device
        if not dev:
            return {}
        attrs = {"rssi": dev.rssi, "scene_id": dev.scene_id, "source": dev.source, "ip": dev.ip}
        if self._device_class == WizDeviceClass.WHITE_LIGHT:
            attrs["temperature_unit"] = unit_from_reading(dev.color_temp_kelvin)
        return attrs
