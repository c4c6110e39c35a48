"""mDNS discovery of Elgato Key Lights via avahi-browse."""

from __future__ import annotations

import ipaddress
import logging
import re
import subprocess

from elgato_keylight.errors import DiscoveryUnavailable, ParseSkipped
from elgato_keylight.models import (
    SERVICE_TYPE,
    Advertisement,
    Device,
    DiscoveryOutcome,
    IpProtocol,
    Resolved,
    ServiceRecord,
    Unresolved,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
NOT_RESOLVED = "advertisement not resolved before timeout"

_ESCAPE = re.compile(r"\\(\d{3}|.)")
# avahi-browse reports resolver failures on stderr, one per instance
_RESOLVE_FAILURE = re.compile(r"Failed to resolve service '(?P<name>.*)' of type '[^']*' in domain '[^']*': (?P<reason>.*)")
_DAEMON_DOWN = ("Daemon not running", "Failed to create client object")


def unescape_label(label: str) -> str:
    """Decode avahi's DNS label escaping: ``Elgato\\032Key`` -> ``Elgato Key``."""
    out = bytearray()
    pos = 0
    for match in _ESCAPE.finditer(label):
        out += label[pos:match.start()].encode()
        token = match.group(1)
        if token.isdigit():
            code = int(token)
            if code > 255:
                raise ValueError(f"Escape \\{token} is not a byte")
            out.append(code)
        else:
            out += token.encode()
        pos = match.end()
    out += label[pos:].encode()
    return out.decode("utf-8", errors="replace")


def parse_line(line: str) -> Advertisement | ServiceRecord | None:
    """Parse one line of ``avahi-browse --parsable`` output.

    Returns an ``Advertisement`` for ``+`` lines, a ``ServiceRecord`` for
    resolved ``=`` lines and ``None`` for removals.  Raises ``ParseSkipped``
    for anything else.
    """
    parts = line.split(";")
    mode = parts[0]
    if mode not in ("+", "=", "-"):
        raise ParseSkipped(line, "unknown record shape")
    if len(parts) < 6:
        raise ParseSkipped(line, "not enough fields")

    try:
        protocol = IpProtocol(parts[2])
        hostname = unescape_label(parts[3])
    except ValueError as e:
        raise ParseSkipped(line, str(e)) from e

    base = Advertisement(
        interface_name=parts[1],
        internet_protocol=protocol,
        hostname=hostname,
        service_type=parts[4],
        domain=parts[5],
    )
    if mode == "-":
        return None
    if mode == "+":
        return base

    # =;iface;IPv4;name;_elg._tcp;domain;hostname;ip;port;txt
    if len(parts) < 9:
        raise ParseSkipped(line, "resolved record without address")
    try:
        ip = ipaddress.ip_address(parts[7])
        port = int(parts[8])
    except ValueError as e:
        raise ParseSkipped(line, str(e)) from e
    if not 0 <= port <= 0xFFFF:
        raise ParseSkipped(line, f"port {port} out of range")

    txt = ";".join(parts[9:])
    return ServiceRecord(
        interface_name=base.interface_name,
        internet_protocol=base.internet_protocol,
        hostname=base.hostname,
        service_type=base.service_type,
        domain=base.domain,
        resolved_name=f"{base.hostname}.{base.service_type}.{base.domain}",
        target_host=parts[6],
        ip=ip,
        port=port,
        raw_txt=(txt,) if txt else (),
    )


def parse_output(stdout: str, stderr: str = "") -> list[DiscoveryOutcome]:
    """Turn a full avahi-browse transcript into discovery outcomes.

    Malformed lines are logged and skipped.  Announcements that never got a
    resolved line become ``Unresolved``, with avahi's own reason when it
    printed one.
    """
    failures = {}
    for line in stderr.splitlines():
        match = _RESOLVE_FAILURE.search(line)
        if match:
            failures[unescape_label(match["name"])] = match["reason"].strip()

    outcomes: list[DiscoveryOutcome] = []
    pending: dict[Advertisement, None] = {}
    resolved: set[Advertisement] = set()
    for line in stdout.splitlines():
        if not line.strip():
            continue
        try:
            parsed = parse_line(line)
        except ParseSkipped as e:
            logger.warning("Skipping discovery line: %s", e)
            continue
        if parsed is None:
            logger.debug("Advertisement removed: %s", line)
        elif isinstance(parsed, ServiceRecord):
            logger.info("Resolved %s at %s:%d", parsed.hostname, parsed.ip, parsed.port)
            resolved.add(parsed.advertisement)
            outcomes.append(Resolved(parsed))
        else:
            pending.setdefault(parsed, None)

    for adv in pending:
        if adv not in resolved:
            outcomes.append(Unresolved(adv, failures.get(adv.hostname, NOT_RESOLVED)))
    return outcomes


def browse_avahi(service_type: str = SERVICE_TYPE, timeout: float = DEFAULT_TIMEOUT) -> list[DiscoveryOutcome]:
    """Run ``avahi-browse`` once, browsing and resolving ``service_type``.

    A timeout is not an error: whatever was printed before the process was
    killed is parsed and returned.
    """
    cmd = ["avahi-browse", "-rpt", service_type]
    logger.info("Running %s (timeout %.1fs)", " ".join(cmd), timeout)
    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except FileNotFoundError as e:
        raise DiscoveryUnavailable(
            "avahi-browse not found, install avahi-tools "
            "or configure lights in ~/.config/elgato-keylight/config.toml"
        ) from e
    except subprocess.TimeoutExpired as e:
        logger.info("avahi-browse timed out after %.1fs, using partial output", timeout)
        return parse_output(_complete_lines(_decode(e.stdout)), _complete_lines(_decode(e.stderr)))
    except OSError as e:
        raise DiscoveryUnavailable(f"Could not run avahi-browse: {e}") from e

    stdout, stderr = _decode(proc.stdout), _decode(proc.stderr)
    if proc.returncode != 0 and not stdout.strip():
        if any(marker in stderr for marker in _DAEMON_DOWN):
            raise DiscoveryUnavailable(f"avahi daemon not running: {stderr.strip()}")
        raise DiscoveryUnavailable(f"avahi-browse exited with status {proc.returncode}: {stderr.strip()}")
    return parse_output(stdout, stderr)


def _complete_lines(text: str) -> str:
    """Drop a trailing line cut off when the process was killed."""
    return text[: text.rfind("\n") + 1]


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def discover(
    service_type: str = SERVICE_TYPE,
    timeout: float = DEFAULT_TIMEOUT,
    backend: str = "avahi",
) -> list[DiscoveryOutcome]:
    """Browse and resolve all advertisements of ``service_type``.

    ``backend`` is ``"avahi"`` (the system daemon, via avahi-browse) or
    ``"zeroconf"`` (direct multicast queries).  Safe to call repeatedly and
    from any thread.
    """
    if backend == "avahi":
        return browse_avahi(service_type, timeout)
    if backend == "zeroconf":
        from elgato_keylight.mdns import browse_zeroconf

        return browse_zeroconf(service_type, timeout)
    raise ValueError(f"Unknown discovery backend: {backend!r}")


def find_devices(outcomes: list[DiscoveryOutcome]) -> list[Device]:
    """One ``Device`` per advertised light, preferring IPv4 addresses.

    Link-local IPv6 addresses are often unusable without a zone, so an IPv6
    address is only used when the light has no IPv4 one.  The address
    family decides, not the protocol the answer arrived on.
    """
    records: dict[str, ServiceRecord] = {}
    for outcome in outcomes:
        if not isinstance(outcome, Resolved):
            continue
        record = outcome.record
        current = records.get(record.hostname)
        if current is None or (
            current.ip.version == 6 and record.ip.version == 4
        ):
            records[record.hostname] = record
    devices = [Device.from_record(r) for r in records.values()]
    devices.sort(key=lambda d: d.name)
    return devices
