"""Async HTTP client for Elgato Key Light API."""

from __future__ import annotations

import logging
from dataclasses import replace

import httpx

from elgato_keylight.errors import DeviceUnreachable, MalformedResponse
from elgato_keylight.models import (
    BRIGHTNESS_STEP,
    DEFAULT_PORT,
    DEFAULT_TEMPERATURE_RANGE,
    Device,
    DeviceInfo,
    DeviceState,
    Direction,
    LightConfig,
    TemperatureRange,
    host_url,
)

logger = logging.getLogger(__name__)

LIGHTS_PATH = "/elgato/lights"
IDENTIFY_PATH = "/elgato/lights/identify"
INFO_PATH = "/elgato/accessory-info"


class DeviceClient:
    """Async client for a single Elgato light.

    Every call is one bounded HTTP round-trip with no retry.  Compound
    operations (``toggle``, ``step_*``, ``turn_*``, ``set_*``) read the state
    and write it back; a change made by someone else in between is
    overwritten (last write wins).  Share one client across tasks only if the
    caller serializes these operations.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = 5.0,
        temperature_range: TemperatureRange = DEFAULT_TEMPERATURE_RANGE,
        name: str | None = None,
        device_id: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.host = str(host)
        self.port = port
        self.name = name or self.host
        self.device_id = device_id
        self.temperature_range = temperature_range
        self._client = httpx.AsyncClient(
            base_url=host_url(self.host, port),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_device(cls, device: Device, **kwargs) -> DeviceClient:
        return cls(str(device.ip), device.port, name=device.name, device_id=device.device_id, **kwargs)

    @classmethod
    def from_config(cls, config: LightConfig, **kwargs) -> DeviceClient:
        return cls(config.host, config.port, name=config.name, device_id=config.id, **kwargs)

    async def __aenter__(self) -> DeviceClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        logger.debug("%s %s%s", method, self._client.base_url, path)
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeviceUnreachable(f"{self.name}: HTTP {e.response.status_code} from {path}") from e
        except httpx.TransportError as e:
            raise DeviceUnreachable(f"{self.name}: {type(e).__name__}: {e}") from e
        return resp

    def _decode_state(self, resp: httpx.Response) -> DeviceState:
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponse(f"{self.name}: response is not JSON") from e
        return DeviceState.from_api(data)

    async def get_state(self) -> DeviceState:
        """Get current light state."""
        resp = await self._request("GET", LIGHTS_PATH)
        return self._decode_state(resp)

    async def set_state(self, state: DeviceState) -> DeviceState:
        """Clamp and send the full state; returns what the light reports back.

        The reply may differ slightly from the request because of rounding
        on the device.
        """
        payload = state.clamped(self.temperature_range).to_api()
        resp = await self._request("PUT", LIGHTS_PATH, json=payload)
        return self._decode_state(resp)

    async def toggle(self) -> DeviceState:
        """Toggle the light on/off."""
        state = await self.get_state()
        state.on = not state.on
        return await self.set_state(state)

    async def turn_on(self, brightness: int | None = None, temperature: int | None = None) -> DeviceState:
        """Turn the light on, optionally setting brightness and temperature."""
        state = await self.get_state()
        state.on = True
        if brightness is not None:
            state.brightness = brightness
        if temperature is not None:
            state.temperature = temperature
        return await self.set_state(state)

    async def turn_off(self) -> DeviceState:
        """Turn the light off."""
        state = await self.get_state()
        state.on = False
        return await self.set_state(state)

    async def set_brightness(self, brightness: int) -> DeviceState:
        """Set brightness (0-100)."""
        state = await self.get_state()
        return await self.set_state(replace(state, brightness=brightness))

    async def set_temperature(self, temperature: int) -> DeviceState:
        """Set color temperature in mireds, clamped to the light's range."""
        state = await self.get_state()
        return await self.set_state(replace(state, temperature=temperature))

    async def step_brightness(self, direction: Direction) -> DeviceState:
        """Move brightness 10 points up or down."""
        state = await self.get_state()
        return await self.set_state(replace(state, brightness=state.brightness + direction * BRIGHTNESS_STEP))

    async def step_temperature(self, direction: Direction) -> DeviceState:
        """Move temperature 10% of its range up (warmer) or down (cooler)."""
        state = await self.get_state()
        step = self.temperature_range.step
        return await self.set_state(replace(state, temperature=state.temperature + direction * step))

    async def identify(self) -> None:
        """Flash the light briefly to identify it."""
        await self._request("POST", IDENTIFY_PATH)

    async def get_info(self) -> DeviceInfo:
        """Get device information."""
        resp = await self._request("GET", INFO_PATH)
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponse(f"{self.name}: accessory info is not JSON") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{self.name}: accessory info is not an object")
        return DeviceInfo.from_api(data)
