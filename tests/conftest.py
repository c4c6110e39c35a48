"""Shared fixtures for the Elgato Key Light tests."""

from __future__ import annotations

import json

import httpx
import pytest

from elgato_keylight.client import DeviceClient


class FakeLight:
    """In-memory stand-in for a light's HTTP API, served through httpx.MockTransport."""

    def __init__(self, on=False, brightness=50, temperature=200, number_of_lights=1):
        self.state = {"on": int(on), "brightness": brightness, "temperature": temperature}
        self.number_of_lights = number_of_lights
        self.requests: list[httpx.Request] = []
        self.puts: list[dict] = []
        self.rounding = 0

    def payload(self) -> dict:
        return {
            "numberOfLights": self.number_of_lights,
            "lights": [dict(self.state) for _ in range(self.number_of_lights)],
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/elgato/lights" and request.method == "GET":
            return httpx.Response(200, json=self.payload())
        if request.url.path == "/elgato/lights" and request.method == "PUT":
            body = json.loads(request.content)
            self.puts.append(body)
            light = body["lights"][0]
            self.state = {
                "on": light["on"],
                "brightness": light["brightness"],
                "temperature": light["temperature"] + self.rounding,
            }
            return httpx.Response(200, json=self.payload())
        if request.url.path == "/elgato/lights/identify" and request.method == "POST":
            return httpx.Response(200)
        if request.url.path == "/elgato/accessory-info":
            return httpx.Response(
                200,
                json={
                    "productName": "Elgato Key Light",
                    "hardwareBoardType": 53,
                    "firmwareBuildNumber": 218,
                    "firmwareVersion": "1.0.3",
                    "serialNumber": "BW33J1A02171",
                    "displayName": "left",
                },
            )
        return httpx.Response(404)

    def client(self, **kwargs) -> DeviceClient:
        return DeviceClient("192.168.0.92", 9123, transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def light() -> FakeLight:
    return FakeLight()
