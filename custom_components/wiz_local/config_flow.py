"""Config flow for WiZ Local integration."""

import logging

import voluptuous as vol  # pyright: ignore[reportMissingImports]

from homeassistant import config_entries  # type: ignore
import homeassistant.helpers.config_validation as cv  # type: ignore
from homeassistant.core import callback  # type: ignore

from .const import (
    CONF_DISCOVERY_TIMEOUT,
    CONF_HOSTS,
    CONF_REQUEST_TIMEOUT,
    CONF_SCAN_INTERVAL,
    CONF_SUBNET,
    CONF_USE_ARP,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
)
from .discovery import validate_discovery_input

_LOGGER = logging.getLogger(__name__)

_TIMEOUT = vol.All(vol.Coerce(float), vol.Range(min=0.1, max=30.0))


class WizLocalFlowHandler(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for WiZ Local."""

    VERSION = 1

    async def async_step_user(self, user_input=None):
        """Handle the initial step."""
        await self.async_set_unique_id(DOMAIN)
        self._abort_if_unique_id_configured()

        errors = {}
        if user_input is not None:
            errors = validate_discovery_input(user_input)
            if errors:
                _LOGGER.debug("Rejected WiZ discovery settings: %s", errors)
            if not errors:
                data = {
                    CONF_HOSTS: user_input.get(CONF_HOSTS, ""),
                    CONF_SUBNET: user_input.get(CONF_SUBNET, ""),
                    CONF_USE_ARP: user_input.get(CONF_USE_ARP, True),
                    CONF_DISCOVERY_TIMEOUT: user_input.get(
                        CONF_DISCOVERY_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT
                    ),
                }
                return self.async_create_entry(title="WiZ", data=data)

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Optional(CONF_HOSTS, default=""): cv.string,
                    vol.Optional(CONF_SUBNET, default=""): cv.string,
                    vol.Required(CONF_USE_ARP, default=True): cv.boolean,
                    vol.Optional(CONF_DISCOVERY_TIMEOUT, default=DEFAULT_DISCOVERY_TIMEOUT): _TIMEOUT,
                }
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow."""
        return WizLocalOptionsFlowHandler(config_entry)


class WizLocalOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options."""

    def __init__(self, config_entry):
        # Do not assign to self.config_entry (deprecated in HA 2025.12)
        self._entry = config_entry
        self.options = dict(config_entry.options)

    @property
    def entry(self):
        return getattr(self, "config_entry", self._entry)

    async def async_step_init(self, user_input=None):
        if user_input is not None:
            self.options.update(user_input)
            return self.async_create_entry(title="WiZ", data=self.options)

        current = {**self.entry.data, **self.entry.options}
        options_schema = vol.Schema(
            {
                vol.Required(
                    CONF_DISCOVERY_TIMEOUT,
                    default=current.get(CONF_DISCOVERY_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT),
                ): _TIMEOUT,
                vol.Required(
                    CONF_REQUEST_TIMEOUT,
                    default=current.get(CONF_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT),
                ): _TIMEOUT,
                vol.Required(
                    CONF_SCAN_INTERVAL,
                    default=current.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
                ): vol.All(vol.Coerce(int), vol.Range(min=5)),
            }
        )
        return self.async_show_form(step_id="init", data_schema=options_schema)
