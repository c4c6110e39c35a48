"""Background re-discovery for long-running consumers (tray, panel)."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass

from elgato_keylight.discovery import DEFAULT_TIMEOUT, discover
from elgato_keylight.errors import DiscoveryUnavailable
from elgato_keylight.models import SERVICE_TYPE, DiscoveryOutcome, DiscoverySettings

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    """One tick's outcomes, or the error that prevented discovery."""

    outcomes: list[DiscoveryOutcome]
    error: Exception | None = None


class BackgroundPoller:
    """Run discovery every ``interval`` seconds on a worker thread.

    Results are put on ``channel``; the consumer only reads from it.  A
    failed tick is published as a ``PollResult`` carrying the error and the
    loop carries on.  ``stop()`` is checked between ticks, so a discovery
    pass already running finishes first.
    """

    def __init__(
        self,
        channel: queue.Queue[PollResult],
        interval: float = 10.0,
        service_type: str = SERVICE_TYPE,
        timeout: float = DEFAULT_TIMEOUT,
        backend: str = "avahi",
        discover: Callable[[str, float, str], list[DiscoveryOutcome]] = discover,
    ):
        self.channel = channel
        self.interval = interval
        self.service_type = service_type
        self.timeout = timeout
        self.backend = backend
        self._discover = discover
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(cls, channel: queue.Queue[PollResult], settings: DiscoverySettings, **kwargs) -> BackgroundPoller:
        """Poller using the ``[discovery]`` section of the config."""
        return cls(
            channel,
            interval=settings.poll_interval,
            service_type=settings.service_type,
            timeout=settings.timeout,
            backend=settings.backend,
            **kwargs,
        )

    def __enter__(self) -> BackgroundPoller:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Poller already running")
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="keylight-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def poll_once(self) -> PollResult:
        try:
            outcomes = self._discover(self.service_type, self.timeout, self.backend)
        except DiscoveryUnavailable as e:
            logger.warning("Discovery unavailable: %s", e)
            return PollResult(outcomes=[], error=e)
        except Exception as e:
            logger.exception("Discovery failed")
            return PollResult(outcomes=[], error=e)
        return PollResult(outcomes=outcomes)

    def _run(self) -> None:
        logger.info("Poller started (every %.1fs, %s backend)", self.interval, self.backend)
        while not self._stop.is_set():
            self.channel.put(self.poll_once())
            self._stop.wait(self.interval)
        logger.info("Poller stopped")
