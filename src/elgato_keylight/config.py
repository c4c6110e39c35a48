"""Configuration loader with mDNS discovery fallback."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from elgato_keylight.errors import ConfigError, DiscoveryUnavailable
from elgato_keylight.models import (
    DEFAULT_PORT,
    AppConfig,
    DeviceSettings,
    DiscoverySettings,
    LightConfig,
    Preset,
    PresetValues,
    TemperatureRange,
)

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "elgato-keylight" / "config.toml"
CONFIG_ENV = "ELGATO_KEYLIGHT_CONFIG"

DEFAULT_PRESETS = {
    "bright": Preset(brightness=100, temperature=200),
    "dim": Preset(brightness=15, temperature=250),
    "warm": Preset(brightness=60, temperature=320),
    "cool": Preset(brightness=70, temperature=155),
    "video": Preset(brightness=55, temperature=215),
}


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    return Path(env).expanduser() if env else CONFIG_PATH


def load_config(path: Path | None = None, discover_missing: bool = True) -> AppConfig:
    """Load config from TOML, discovering lights via mDNS when none are listed."""
    path = path or config_path()
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        config = _parse_config(data)
    else:
        logger.debug("No config file at %s, using defaults", path)
        config = AppConfig(presets=dict(DEFAULT_PRESETS))

    if not config.lights and discover_missing:
        config.lights = _discover_fallback(config.discovery)
    return config


def _discover_fallback(settings: DiscoverySettings) -> list[LightConfig]:
    """Try mDNS discovery, logging a warning if nothing is found."""
    from elgato_keylight.discovery import discover, find_devices

    try:
        outcomes = discover(settings.service_type, settings.timeout, settings.backend)
    except DiscoveryUnavailable as e:
        logger.warning("%s", e)
        return []
    lights = [LightConfig.from_device(d) for d in find_devices(outcomes)]
    if not lights:
        logger.warning(
            "No lights found; configure them in %s or ensure they are on the local network",
            config_path(),
        )
    return lights


def _get(table: dict, key: str, kind: type | tuple[type, ...], default):
    value = table.get(key, default)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ConfigError(f"{key!r} has invalid value {value!r}")
    return value


def _parse_config(data: dict) -> AppConfig:
    try:
        lights = [
            LightConfig(
                name=_get(light, "name", str, None),
                host=_get(light, "host", str, None),
                port=_get(light, "port", int, DEFAULT_PORT),
                id=_get(light, "id", str, ""),
            )
            for light in data.get("lights", [])
        ]

        presets = dict(DEFAULT_PRESETS)  # start with defaults
        for name, preset_data in data.get("presets", {}).items():
            # Per-light overrides are sub-tables, global values are ints
            per_light = {
                key: PresetValues(
                    brightness=_get(val, "brightness", int, None),
                    temperature=_get(val, "temperature", int, None),
                )
                for key, val in preset_data.items()
                if isinstance(val, dict)
            }
            presets[name] = Preset(
                brightness=_get(preset_data, "brightness", int, 50),
                temperature=_get(preset_data, "temperature", int, 200),
                per_light=per_light,
            )

        disc = data.get("discovery", {})
        discovery = DiscoverySettings(
            backend=_get(disc, "backend", str, "avahi"),
            service_type=_get(disc, "service_type", str, DiscoverySettings.service_type),
            timeout=float(_get(disc, "timeout", (int, float), 5.0)),
            poll_interval=float(_get(disc, "poll_interval", (int, float), 10.0)),
        )
        if discovery.backend not in ("avahi", "zeroconf"):
            raise ConfigError(f"Unknown discovery backend {discovery.backend!r}")

        dev = data.get("device", {})
        device = DeviceSettings(
            timeout=float(_get(dev, "timeout", (int, float), 5.0)),
            temperature_range=TemperatureRange(
                minimum=_get(dev, "temperature_min", int, TemperatureRange.minimum),
                maximum=_get(dev, "temperature_max", int, TemperatureRange.maximum),
            ),
        )
    except (AttributeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    return AppConfig(lights=lights, presets=presets, discovery=discovery, device=device)


def get_lights(names: list[str] | None = None, config: AppConfig | None = None) -> list[LightConfig]:
    """Get light configs, optionally filtered by name."""
    config = config or load_config()
    if not names:
        return config.lights
    return [l for l in config.lights if l.name in names]
