from __future__ import annotations

import os
from pathlib import Path

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.const import CONF_NAME

# ----- constants -----
INTEGRATION_DOMAIN = "bbt_tracker"

# repo root:  <repo>/tests/conftest.py  -> parents[1] = <repo>
REPO_ROOT = Path(__file__).resolve().parents[1]

# Point PHACC at the repo's custom_components; must be set before its fixtures run.
os.environ.setdefault(
    "PYTEST_HOMEASSISTANT_CUSTOM_COMPONENTS",
    str(REPO_ROOT / "custom_components"),
)


@pytest.fixture(autouse=True)
def _enable_custom_integrations(enable_custom_integrations):
    yield


@pytest.fixture
def config_entry(hass: HomeAssistant) -> MockConfigEntry:
    entry = MockConfigEntry(
        domain=INTEGRATION_DOMAIN,
        data={CONF_NAME: "BBT Tracker"},
        options={},
        title="BBT Tracker",
        unique_id=INTEGRATION_DOMAIN,
    )
    entry.add_to_hass(hass)
    return entry


@pytest.fixture
async def setup_integration(hass: HomeAssistant, config_entry: MockConfigEntry):
    assert await hass.config_entries.async_setup(config_entry.entry_id)
    await hass.async_block_till_done()
    return config_entry

