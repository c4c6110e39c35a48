"""Data models for discovery records and the Elgato light API."""

from __future__ import annotations

import enum
import ipaddress
import logging
from dataclasses import dataclass, field, replace

from elgato_keylight.errors import MalformedResponse
from elgato_keylight.txt import parse_txt_records

logger = logging.getLogger(__name__)

SERVICE_TYPE = "_elg._tcp"
DEFAULT_PORT = 9123

BRIGHTNESS_MIN = 0
BRIGHTNESS_MAX = 100
BRIGHTNESS_STEP = 10

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class IpProtocol(enum.Enum):
    V4 = "IPv4"
    V6 = "IPv6"


class Direction(enum.IntEnum):
    """Sign of a brightness/temperature step."""

    UP = 1
    DOWN = -1


@dataclass(frozen=True)
class Advertisement:
    """Base fields of a service advertisement, present on every outcome."""

    interface_name: str
    internet_protocol: IpProtocol
    hostname: str
    service_type: str
    domain: str


@dataclass(frozen=True)
class ServiceRecord(Advertisement):
    """A fully resolved advertisement carrying a usable address."""

    resolved_name: str
    target_host: str
    ip: IPAddress
    port: int
    raw_txt: tuple[str, ...] = ()

    @property
    def advertisement(self) -> Advertisement:
        return Advertisement(
            interface_name=self.interface_name,
            internet_protocol=self.internet_protocol,
            hostname=self.hostname,
            service_type=self.service_type,
            domain=self.domain,
        )

    @property
    def txt(self) -> dict[str, str]:
        """TXT metadata parsed into a mapping (``md``, ``id``, ``pv``, ...)."""
        return parse_txt_records(self.raw_txt)

    @property
    def model(self) -> str:
        return self.txt.get("md", "")

    @property
    def device_id(self) -> str:
        return self.txt.get("id", "")


@dataclass(frozen=True)
class Resolved:
    record: ServiceRecord


@dataclass(frozen=True)
class Unresolved:
    advertisement: Advertisement
    reason: str


DiscoveryOutcome = Resolved | Unresolved


@dataclass(frozen=True)
class TemperatureRange:
    """Valid color temperature bounds in mireds."""

    minimum: int = 143  # ~7000K, coolest
    maximum: int = 344  # ~2900K, warmest

    def __post_init__(self):
        if self.minimum <= 0 or self.minimum > self.maximum:
            raise ValueError(f"Invalid temperature range [{self.minimum}, {self.maximum}]")

    @property
    def step(self) -> int:
        """10% of the span, rounded to the nearest mired."""
        return round((self.maximum - self.minimum) * 0.1)

    def clamp(self, value: int) -> int:
        return _clamp(value, self.minimum, self.maximum, "temperature")

    def __contains__(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


DEFAULT_TEMPERATURE_RANGE = TemperatureRange()


def _clamp(value: int, low: int, high: int, name: str) -> int:
    clamped = max(low, min(high, value))
    if clamped != value:
        logger.debug("Clamped %s %d into [%d, %d]", name, value, low, high)
    return clamped


def clamp_brightness(value: int) -> int:
    return _clamp(value, BRIGHTNESS_MIN, BRIGHTNESS_MAX, "brightness")


@dataclass
class DeviceState:
    """State of an accessory, matching the ``/elgato/lights`` JSON shape.

    The accessory reports one entry per light; this model reads the first
    one and writes the same values to all ``number_of_lights`` entries.
    """

    on: bool = False
    brightness: int = 50
    temperature: int = 200
    number_of_lights: int = 1

    def clamped(self, temperature_range: TemperatureRange = DEFAULT_TEMPERATURE_RANGE) -> DeviceState:
        """Return a copy with brightness and temperature forced into range."""
        return replace(
            self,
            brightness=clamp_brightness(self.brightness),
            temperature=temperature_range.clamp(self.temperature),
        )

    def to_api(self) -> dict:
        light = {
            "on": 1 if self.on else 0,
            "brightness": self.brightness,
            "temperature": self.temperature,
        }
        return {
            "numberOfLights": self.number_of_lights,
            "lights": [dict(light) for _ in range(self.number_of_lights)],
        }

    @classmethod
    def from_api(cls, data: object) -> DeviceState:
        """Build a state from a decoded payload, rejecting unexpected shapes.

        Temperature is checked against the bounds the API can carry, not a
        client's configured range; that range only clamps requests.
        """
        temperature_range = DEFAULT_TEMPERATURE_RANGE
        if not isinstance(data, dict):
            raise MalformedResponse(f"Expected a JSON object, got {type(data).__name__}")
        lights = data.get("lights")
        if not isinstance(lights, list) or not lights:
            raise MalformedResponse("Response has no 'lights' entries")
        light = lights[0]
        if not isinstance(light, dict):
            raise MalformedResponse("Light entry is not an object")

        values = {}
        for key in ("on", "brightness", "temperature"):
            if key not in light:
                raise MalformedResponse(f"Light entry is missing {key!r}")
            value = light[key]
            # bool is an int subclass; the API only ever sends 0/1 for "on"
            if not isinstance(value, int) or (isinstance(value, bool) and key != "on"):
                raise MalformedResponse(f"Light field {key!r} is not an integer: {value!r}")
            values[key] = int(value)

        if not BRIGHTNESS_MIN <= values["brightness"] <= BRIGHTNESS_MAX:
            raise MalformedResponse(f"Brightness {values['brightness']} outside [0, 100]")
        if values["temperature"] not in temperature_range:
            raise MalformedResponse(
                f"Temperature {values['temperature']} outside "
                f"[{temperature_range.minimum}, {temperature_range.maximum}]"
            )

        number_of_lights = data.get("numberOfLights", len(lights))
        if not isinstance(number_of_lights, int) or number_of_lights < 1:
            raise MalformedResponse(f"Invalid numberOfLights: {number_of_lights!r}")

        return cls(
            on=bool(values["on"]),
            brightness=values["brightness"],
            temperature=values["temperature"],
            number_of_lights=number_of_lights,
        )

    @property
    def temperature_kelvin(self) -> int:
        """Convert Elgato temperature value to Kelvin (approximate)."""
        return round(1_000_000 / self.temperature)


def host_url(host: str, port: int) -> str:
    """Base URL for a host, bracketing IPv6 literals."""
    if ":" in host:
        return f"http://[{host.replace('%', '%25')}]:{port}"
    return f"http://{host}:{port}"


@dataclass
class Device:
    """A discovered light, built from a resolved service record.

    Holds only the address.  Live state is not kept here: each
    ``DeviceClient`` call fetches or returns a fresh ``DeviceState``.
    """

    name: str
    ip: IPAddress
    port: int = DEFAULT_PORT
    device_id: str = ""
    model: str = ""

    @classmethod
    def from_record(cls, record: ServiceRecord) -> Device:
        return cls(
            name=record.hostname,
            ip=record.ip,
            port=record.port,
            device_id=record.device_id,
            model=record.model,
        )

    @property
    def base_url(self) -> str:
        return host_url(str(self.ip), self.port)

    def __str__(self) -> str:
        return f"{self.name} => {self.base_url}"


@dataclass
class DeviceInfo:
    """Device information from the /elgato/accessory-info endpoint."""

    product_name: str = ""
    hardware_board_type: int = 0
    firmware_build_number: int = 0
    firmware_version: str = ""
    serial_number: str = ""
    display_name: str = ""

    @classmethod
    def from_api(cls, data: dict) -> DeviceInfo:
        return cls(
            product_name=data.get("productName", ""),
            hardware_board_type=data.get("hardwareBoardType", 0),
            firmware_build_number=data.get("firmwareBuildNumber", 0),
            firmware_version=data.get("firmwareVersion", ""),
            serial_number=data.get("serialNumber", ""),
            display_name=data.get("displayName", ""),
        )


@dataclass
class LightConfig:
    """Configuration for a single light."""

    name: str
    host: str
    port: int = DEFAULT_PORT
    id: str = ""

    @classmethod
    def from_device(cls, device: Device) -> LightConfig:
        return cls(name=device.name, host=str(device.ip), port=device.port, id=device.device_id)


@dataclass
class PresetValues:
    """Brightness + temperature pair for a preset."""

    brightness: int
    temperature: int


@dataclass
class Preset:
    """A named preset, with optional overrides keyed by light name or device id."""

    brightness: int
    temperature: int
    per_light: dict[str, PresetValues] = field(default_factory=dict)

    def values_for(self, light_name: str | None = None, device_id: str | None = None) -> PresetValues:
        for key in (device_id, light_name):
            if key and key in self.per_light:
                return self.per_light[key]
        return PresetValues(brightness=self.brightness, temperature=self.temperature)


@dataclass
class DiscoverySettings:
    backend: str = "avahi"
    service_type: str = SERVICE_TYPE
    timeout: float = 5.0
    poll_interval: float = 10.0


@dataclass
class DeviceSettings:
    timeout: float = 5.0
    temperature_range: TemperatureRange = DEFAULT_TEMPERATURE_RANGE


@dataclass
class AppConfig:
    """Top-level application configuration."""

    lights: list[LightConfig] = field(default_factory=list)
    presets: dict[str, Preset] = field(default_factory=dict)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    device: DeviceSettings = field(default_factory=DeviceSettings)
