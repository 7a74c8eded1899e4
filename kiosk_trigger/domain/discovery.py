"""
Network Discovery - Locates the relay controller on the LAN.

Sweeps a fixed set of /24 prefixes with concurrent health probes and
collects every address that answers. Probe failures are absorbed per
candidate; absence from the result is the only signal.
"""

import asyncio
from typing import Callable, Iterable, Optional

import httpx

from kiosk_trigger.configs import DEFAULT_SCAN_PREFIXES, HOST_SUFFIX_RANGE, PROBE_TIMEOUT_MS
from kiosk_trigger.domain.device_adapters import NetworkDevice
from kiosk_trigger.loggers import EventLog


ProgressCallback = Callable[[int, int], None]


class NetworkDiscovery:
    """
    Best-effort fan-out sweep for the network relay controller.

    Attributes:
        prefixes: Candidate /24 prefixes, e.g. ``"192.168.0"``.
        probe_timeout_ms: Timeout of each individual probe.
        max_concurrency: Probes in flight at once, None for unbounded.
        progress_every: Report progress after this many settled probes.
    """

    def __init__(
        self,
        prefixes: Iterable[str] = DEFAULT_SCAN_PREFIXES,
        *,
        probe_timeout_ms: int = PROBE_TIMEOUT_MS,
        max_concurrency: Optional[int] = None,
        progress_every: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.prefixes = tuple(prefixes)
        self.probe_timeout_ms = probe_timeout_ms
        self.max_concurrency = max_concurrency
        self.progress_every = progress_every
        self._transport = transport
        self._events = events or EventLog()

    def candidates(self) -> list[str]:
        """All host addresses of every prefix, in sweep order."""
        return [
            f"{prefix}.{suffix}"
            for prefix in self.prefixes
            for suffix in HOST_SUFFIX_RANGE
        ]

    async def scan(self, on_progress: Optional[ProgressCallback] = None) -> list[str]:
        """
        Probe every candidate and wait for all of them to settle.

        Args:
            on_progress: Optional observer called with (settled, total).

        Returns:
            Reachable addresses in candidate order, possibly empty.
        """
        candidates = self.candidates()
        total = len(candidates)
        found: set[str] = set()
        settled = 0

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )

        self._events.info("DISCOVERY", f"Network scan started ({total} candidates)")

        limits = httpx.Limits(max_connections=None, max_keepalive_connections=0)
        async with httpx.AsyncClient(transport=self._transport, limits=limits) as client:

            async def check(address: str) -> None:
                nonlocal settled
                if semaphore is not None:
                    async with semaphore:
                        reachable = await NetworkDevice.probe(
                            client, address, self.probe_timeout_ms
                        )
                else:
                    reachable = await NetworkDevice.probe(client, address, self.probe_timeout_ms)

                settled += 1
                if reachable:
                    found.add(address)
                    self._events.success("DISCOVERY", f"Found: {address}")
                if self.progress_every and settled % self.progress_every == 0:
                    self._report_progress(settled, total, on_progress)

            await asyncio.gather(
                *(check(address) for address in candidates),
                return_exceptions=True,
            )

        result = [address for address in candidates if address in found]
        self._events.info("DISCOVERY", f"Network scan finished: {len(result)} found", result)
        return result

    def _report_progress(
        self,
        settled: int,
        total: int,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        self._events.debug("DISCOVERY", f"Scan progress: {settled}/{total}")
        if on_progress is None:
            return
        try:
            on_progress(settled, total)
        except Exception as e:
            self._events.error("DISCOVERY", f"Progress observer error: {e}")
