"""Exceptions raised by the Elgato Key Light library."""

from __future__ import annotations


class KeyLightError(Exception):
    """Base class for all library errors."""


class DiscoveryUnavailable(KeyLightError):
    """The system discovery facility could not be started at all."""


class ParseSkipped(KeyLightError):
    """A single advertisement line could not be parsed and was skipped."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class DeviceError(KeyLightError):
    """A request against a light's control endpoint failed."""


class DeviceUnreachable(DeviceError):
    """Connection, timeout or HTTP status failure talking to a light."""


class MalformedResponse(DeviceError):
    """The light answered with a payload of an unexpected shape."""


class ConfigError(KeyLightError):
    """The configuration file is unreadable or invalid."""
