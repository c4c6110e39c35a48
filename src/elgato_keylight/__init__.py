"""Elgato Key Light discovery and control library."""

from elgato_keylight.models import (
    Advertisement,
    Device,
    DeviceInfo,
    DeviceState,
    Direction,
    IpProtocol,
    LightConfig,
    Resolved,
    ServiceRecord,
    TemperatureRange,
    Unresolved,
)
from elgato_keylight.errors import (
    DeviceError,
    DeviceUnreachable,
    DiscoveryUnavailable,
    KeyLightError,
    MalformedResponse,
    ParseSkipped,
)
from elgato_keylight.txt import parse_txt
from elgato_keylight.discovery import discover, find_devices
from elgato_keylight.client import DeviceClient
from elgato_keylight.poller import BackgroundPoller, PollResult
from elgato_keylight.config import load_config, get_lights

__all__ = [
    "Advertisement",
    "Device",
    "DeviceInfo",
    "DeviceState",
    "Direction",
    "IpProtocol",
    "LightConfig",
    "Resolved",
    "ServiceRecord",
    "TemperatureRange",
    "Unresolved",
    "DeviceError",
    "DeviceUnreachable",
    "DiscoveryUnavailable",
    "KeyLightError",
    "MalformedResponse",
    "ParseSkipped",
    "parse_txt",
    "discover",
    "find_devices",
    "DeviceClient",
    "BackgroundPoller",
    "PollResult",
    "load_config",
    "get_lights",
]
