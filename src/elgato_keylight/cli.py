"""Click CLI for Elgato Key Light control."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import click

from elgato_keylight.client import DeviceClient
from elgato_keylight.config import get_lights, load_config
from elgato_keylight.discovery import discover as run_discovery
from elgato_keylight.discovery import find_devices
from elgato_keylight.errors import ConfigError, DiscoveryUnavailable, KeyLightError
from elgato_keylight.models import DEFAULT_PORT, DeviceState, Direction, Resolved


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def _describe(state: DeviceState) -> str:
    status = "on" if state.on else "off"
    return f"{status}, brightness={state.brightness}%, temp={state.temperature} (~{state.temperature_kelvin}K)"


def _get_clients(ctx: click.Context) -> list[DeviceClient]:
    """Create clients for --host, or for the configured/discovered lights."""
    obj = ctx.obj
    settings = obj["config"].device
    kwargs = {"timeout": settings.timeout, "temperature_range": settings.temperature_range}
    if obj["host"]:
        return [DeviceClient(obj["host"], obj["port"], **kwargs)]
    lights = get_lights(list(obj["lights"]) if obj["lights"] else None, obj["config"])
    if not lights:
        raise click.ClickException("No lights configured or discovered")
    return [DeviceClient.from_config(l, **kwargs) for l in lights]


def _for_each(ctx: click.Context, action, report) -> None:
    """Apply ``action`` to every selected light; failures are reported, not hidden."""

    async def _all() -> bool:
        clients = _get_clients(ctx)
        ok = True
        try:
            for c in clients:
                try:
                    result = await action(c)
                except KeyLightError as e:
                    click.echo(f"{c.name}: error: {e}", err=True)
                    ok = False
                    continue
                click.echo(f"{c.name}: {report(result)}")
        finally:
            for c in clients:
                await c.close()
        return ok

    if not _run(_all()):
        sys.exit(1)


@click.group()
@click.option("--config", "config_file", type=click.Path(path_type=Path), help="Config file path.")
@click.option("--light", "-l", multiple=True, help="Target specific light(s) by name.")
@click.option("--host", help="Address of a single light (skips config and discovery).")
@click.option("--port", default=DEFAULT_PORT, show_default=True, help="API port used with --host.")
@click.option("-v", "--verbose", count=True, help="-v for info, -vv for debug logging.")
@click.pass_context
def cli(ctx, config_file, light, host, port, verbose):
    """Control Elgato Key Lights."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    # Discovery subcommand and --host never need the configured light list
    lazy = host is not None or ctx.invoked_subcommand == "discover"
    try:
        config = load_config(config_file, discover_missing=not lazy)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj.update(config=config, lights=light or None, host=host, port=port)


@cli.command()
@click.option("--timeout", type=float, help="Seconds to wait for advertisements.")
@click.option("--backend", type=click.Choice(["avahi", "zeroconf"]), help="Discovery mechanism.")
@click.option("--all", "show_all", is_flag=True, help="Show every record, including unresolved ones.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
@click.pass_context
def discover(ctx, timeout, backend, show_all, as_json):
    """Find lights on the local network."""
    settings = ctx.obj["config"].discovery
    try:
        outcomes = run_discovery(
            settings.service_type,
            timeout if timeout is not None else settings.timeout,
            backend or settings.backend,
        )
    except DiscoveryUnavailable as e:
        raise click.ClickException(str(e)) from e

    if not show_all:
        devices = find_devices(outcomes)
        if as_json:
            click.echo(json.dumps([{**asdict(d), "ip": str(d.ip)} for d in devices], indent=2))
        else:
            for d in devices:
                click.echo(str(d))
        return

    rows = []
    for outcome in outcomes:
        if isinstance(outcome, Resolved):
            r = outcome.record
            rows.append({
                "resolved": True,
                "interface": r.interface_name,
                "protocol": r.internet_protocol.value,
                "hostname": r.hostname,
                "target_host": r.target_host,
                "ip": str(r.ip),
                "port": r.port,
                "txt": r.txt,
            })
        else:
            a = outcome.advertisement
            rows.append({
                "resolved": False,
                "interface": a.interface_name,
                "protocol": a.internet_protocol.value,
                "hostname": a.hostname,
                "reason": outcome.reason,
            })
    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return
    for row in rows:
        if row["resolved"]:
            click.echo(f"= {row['hostname']} [{row['interface']} {row['protocol']}] {row['ip']}:{row['port']} {row['txt']}")
        else:
            click.echo(f"? {row['hostname']} [{row['interface']} {row['protocol']}] {row['reason']}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
@click.pass_context
def status(ctx, as_json):
    """Show status of all lights."""
    if as_json:
        _for_each(ctx, lambda c: c.get_state(), lambda s: json.dumps(s.to_api()))
    else:
        _for_each(ctx, lambda c: c.get_state(), _describe)


@cli.command()
@click.pass_context
def on(ctx):
    """Turn lights on."""
    _for_each(ctx, lambda c: c.turn_on(), lambda s: "on")


@cli.command()
@click.pass_context
def off(ctx):
    """Turn lights off."""
    _for_each(ctx, lambda c: c.turn_off(), lambda s: "off")


@cli.command()
@click.pass_context
def toggle(ctx):
    """Toggle lights on/off."""
    _for_each(ctx, lambda c: c.toggle(), lambda s: "on" if s.on else "off")


@cli.command("set")
@click.option("--brightness", "-b", type=int, help="Brightness (0-100).")
@click.option("--temperature", "-t", type=int, help="Temperature in mireds (143=cool, 344=warm).")
@click.pass_context
def set_cmd(ctx, brightness, temperature):
    """Set brightness and/or temperature; out-of-range values are clamped."""
    if brightness is None and temperature is None:
        raise click.UsageError("Give --brightness and/or --temperature")

    async def _set(c: DeviceClient) -> DeviceState:
        state = await c.get_state()
        if brightness is not None:
            state.brightness = brightness
        if temperature is not None:
            state.temperature = temperature
        return await c.set_state(state)

    _for_each(ctx, _set, _describe)


@cli.command("brightness-up")
@click.pass_context
def brightness_up(ctx):
    """Increase brightness by 10%."""
    _for_each(ctx, lambda c: c.step_brightness(Direction.UP), lambda s: f"brightness={s.brightness}%")


@cli.command("brightness-down")
@click.pass_context
def brightness_down(ctx):
    """Decrease brightness by 10%."""
    _for_each(ctx, lambda c: c.step_brightness(Direction.DOWN), lambda s: f"brightness={s.brightness}%")


@cli.command("temperature-up")
@click.pass_context
def temperature_up(ctx):
    """Make light warmer by 10% of the temperature range."""
    _for_each(
        ctx,
        lambda c: c.step_temperature(Direction.UP),
        lambda s: f"temp={s.temperature} (~{s.temperature_kelvin}K)",
    )


@cli.command("temperature-down")
@click.pass_context
def temperature_down(ctx):
    """Make light cooler by 10% of the temperature range."""
    _for_each(
        ctx,
        lambda c: c.step_temperature(Direction.DOWN),
        lambda s: f"temp={s.temperature} (~{s.temperature_kelvin}K)",
    )


@cli.command()
@click.pass_context
def identify(ctx):
    """Flash lights to identify them."""
    _for_each(ctx, lambda c: c.identify(), lambda _: "identified")


@cli.command()
@click.pass_context
def info(ctx):
    """Show accessory information."""
    _for_each(
        ctx,
        lambda c: c.get_info(),
        lambda i: f"{i.display_name or i.product_name} (serial {i.serial_number}, firmware {i.firmware_version})",
    )


@cli.command()
@click.argument("name")
@click.pass_context
def preset(ctx, name):
    """Apply a named preset (bright, dim, warm, cool, video)."""
    presets = ctx.obj["config"].presets
    p = presets.get(name)
    if p is None:
        available = ", ".join(presets)
        raise click.ClickException(f"Unknown preset: {name!r}. Available: {available}")

    async def _apply(c: DeviceClient) -> DeviceState:
        values = p.values_for(light_name=c.name, device_id=c.device_id)
        return await c.turn_on(brightness=values.brightness, temperature=values.temperature)

    _for_each(ctx, _apply, lambda s: f"preset '{name}' applied")
