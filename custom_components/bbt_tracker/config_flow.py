from __future__ import annotations

from typing import Any, Dict

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry, OptionsFlow
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.selector import (
    TextSelector,
    TextSelectorConfig,
    SelectSelector,
    SelectSelectorConfig,
    SelectOptionDict,
    TimeSelector,
    TimeSelectorConfig,
)

from .const import (
    DOMAIN,
    CONF_NAME,
    CONF_NOTIFY_SERVICES,
    CONF_DAILY_REMINDER_TIME,
    DEFAULT_NAME,
    DEFAULT_DAILY_REMINDER_TIME,
)


def _list_notify_services(hass: HomeAssistant) -> list[str]:
    """Return notify services in 'notify.x' form, sorted."""
    services = hass.services.async_services().get("notify", {})
    return [f"notify.{name}" for name in sorted(services.keys())]


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle the config flow."""

    VERSION = 1

    async def async_step_user(self, user_input: Dict[str, Any] | None = None):
        if user_input is None:
            schema = vol.Schema(
                {
                    vol.Required(CONF_NAME, default=DEFAULT_NAME): TextSelector(
                        TextSelectorConfig(type="text")
                    ),
                }
            )
            return self.async_show_form(step_id="user", data_schema=schema)

        # Singleton: storage slots are fixed keys
        await self.async_set_unique_id(DOMAIN)
        self._abort_if_unique_id_configured()

        name = user_input[CONF_NAME]
        return self.async_create_entry(
            title=name,
            data={CONF_NAME: name},
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(OptionsFlow):
    """Options for BBT Tracker."""

    def __init__(self, config_entry: ConfigEntry) -> None:
        # Do NOT assign to self.config_entry (deprecated in 2025.12)
        self._entry = config_entry

    async def async_step_init(self, user_input: Dict[str, Any] | None = None):
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        o = self._entry.options or {}

        notify_options = [
            SelectOptionDict(label=s, value=s) for s in _list_notify_services(self.hass)
        ]

        schema = vol.Schema(
            {
                vol.Optional(
                    CONF_DAILY_REMINDER_TIME,
                    default=o.get(CONF_DAILY_REMINDER_TIME, DEFAULT_DAILY_REMINDER_TIME),
                ): TimeSelector(TimeSelectorConfig()),
                vol.Optional(
                    CONF_NOTIFY_SERVICES,
                    default=o.get(CONF_NOTIFY_SERVICES, []),
                ): SelectSelector(
                    SelectSelectorConfig(multiple=True, mode="list", options=notify_options)
                ),
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)
