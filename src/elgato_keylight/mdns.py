"""Direct multicast DNS discovery with zeroconf, without the avahi daemon."""

from __future__ import annotations

import ipaddress
import logging
import threading
import time

from zeroconf import IPVersion, ServiceBrowser, ServiceStateChange, Zeroconf

from elgato_keylight.errors import DiscoveryUnavailable
from elgato_keylight.models import (
    SERVICE_TYPE,
    Advertisement,
    DiscoveryOutcome,
    IpProtocol,
    Resolved,
    ServiceRecord,
    Unresolved,
)

logger = logging.getLogger(__name__)

# Share of the timeout spent collecting names before resolving them
BROWSE_SHARE = 0.5


def _qualified(service_type: str) -> tuple[str, str]:
    """``_elg._tcp`` -> (``_elg._tcp.local.``, ``local``)."""
    name = service_type.rstrip(".")
    if name.endswith(".local"):
        name = name[: -len(".local")]
    return f"{name}.local.", "local"


class _Collector:
    """Collects instance names announced for one service type."""

    def __init__(self):
        self.names: list[str] = []
        self._lock = threading.Lock()

    def on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change is not ServiceStateChange.Added:
            return
        with self._lock:
            if name not in self.names:
                logger.debug("Service announced: %s", name)
                self.names.append(name)

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self.names)


def _txt_strings(properties: dict) -> tuple[str, ...]:
    out = []
    for key, value in properties.items():
        key = key.decode("utf-8", errors="replace") if isinstance(key, bytes) else str(key)
        if value is None:
            out.append(f'"{key}"')
            continue
        value = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
        out.append(f'"{key}={value}"')
    return tuple(out)


def browse_zeroconf(service_type: str = SERVICE_TYPE, timeout: float = 5.0) -> list[DiscoveryOutcome]:
    """Browse and resolve ``service_type`` by querying the network directly.

    Half of ``timeout`` is spent listening for announcements, the rest on
    resolving them.  Instances left without an address are ``Unresolved``.
    """
    fqdn_type, domain = _qualified(service_type)
    short_type = fqdn_type[: -len(".local.")]
    try:
        zc = Zeroconf(ip_version=IPVersion.All)
    except OSError as e:
        raise DiscoveryUnavailable(f"Could not open mDNS socket: {e}") from e

    outcomes: list[DiscoveryOutcome] = []
    deadline = time.monotonic() + timeout
    try:
        collector = _Collector()
        browser = ServiceBrowser(zc, fqdn_type, handlers=[collector.on_service_state_change])
        try:
            time.sleep(timeout * BROWSE_SHARE)
            for name in collector.snapshot():
                hostname = name[: -len(fqdn_type) - 1] if name.endswith("." + fqdn_type) else name
                # A spent budget still answers from the cache; 1ms is the floor
                remaining_ms = max(1, int((deadline - time.monotonic()) * 1000))
                info = zc.get_service_info(fqdn_type, name, timeout=remaining_ms)
                addresses = info.parsed_scoped_addresses() if info is not None else []
                if not addresses or info.port is None:
                    # Browsing covers both families; V4 stands in for "unknown"
                    outcomes.append(
                        Unresolved(
                            Advertisement("", IpProtocol.V4, hostname, short_type, domain),
                            "no address record before timeout",
                        )
                    )
                    continue
                for address in addresses:
                    ip = ipaddress.ip_address(address)
                    protocol = IpProtocol.V4 if ip.version == 4 else IpProtocol.V6
                    logger.info("Resolved %s at %s:%d", hostname, ip, info.port)
                    outcomes.append(
                        Resolved(
                            ServiceRecord(
                                interface_name=getattr(ip, "scope_id", None) or "",
                                internet_protocol=protocol,
                                hostname=hostname,
                                service_type=short_type,
                                domain=domain,
                                resolved_name=f"{hostname}.{short_type}.{domain}",
                                target_host=(info.server or "").rstrip("."),
                                ip=ip,
                                port=info.port,
                                raw_txt=_txt_strings(info.properties or {}),
                            )
                        )
                    )
        finally:
            browser.cancel()
    finally:
        zc.close()
    return outcomes
