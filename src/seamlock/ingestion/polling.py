"""Status polling ingestion.

This module owns the fixed-interval loop that reads each configured
device's status and feeds the reconciler. Errors are absorbed here: a
failed read leaves the last known state untouched instead of flapping the
device to "offline".
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from seamlock._constants import DEFAULT_POLLING_INTERVAL, STATUS_TIMEOUT
from seamlock.client import LockApi
from seamlock.exceptions import SeamError, SeamResponseParseError
from seamlock.ingestion.normalize import now_ms
from seamlock.state.events import StateUpdate, UpdateSource
from seamlock.state.store import AppliedChange, Rejected, StateReconciler

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PollError:
    """Last poll failure recorded for a device."""

    message: str
    at_ms: int


class PollingScheduler:
    """Polls every device on a fixed timer, starting immediately."""

    def __init__(
        self,
        api: LockApi,
        reconciler: StateReconciler,
        device_ids: Sequence[str] | Callable[[], Sequence[str]],
        *,
        interval: float = DEFAULT_POLLING_INTERVAL,
        status_timeout: float = STATUS_TIMEOUT,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._api = api
        self._reconciler = reconciler
        self._device_ids = device_ids
        self._interval = interval
        self._status_timeout = status_timeout
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self.last_errors: dict[str, PollError] = {}
        self.cycles = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _current_device_ids(self) -> list[str]:
        source = self._device_ids
        return list(source() if callable(source) else source)

    def start(self) -> None:
        """Start polling in the background; the first cycle runs immediately."""
        if self.is_running:
            return
        _logger.info("Starting state polling every %s seconds", self._interval)
        self._task = asyncio.get_running_loop().create_task(self._run(), name="seamlock-polling")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Polling stopped after %d cycles", self.cycles)

    async def _run(self) -> None:
        while True:
            await self.poll_all()
            await asyncio.sleep(self._interval)

    async def poll_all(self) -> None:
        """Run one poll cycle over all devices, sequentially."""
        _logger.debug("Polling devices for state updates...")
        for device_id in self._current_device_ids():
            try:
                await self.poll_device(device_id)
            except Exception:
                _logger.exception("Unexpected error polling %s", device_id)
        self.cycles += 1

    async def poll_device(self, device_id: str) -> AppliedChange | Rejected | None:
        """Poll one device; returns ``None`` if nothing was submitted.

        The update is stamped with the time the read was issued, so a slow
        reply cannot outrank a command that completed while it was pending.
        """
        issued_at = self._clock()
        try:
            async with asyncio.timeout(self._status_timeout):
                status = await self._api.get_lock_status(device_id, timeout=self._status_timeout)
        except SeamResponseParseError as exc:
            _logger.debug("Discarding malformed status for %s: %s", device_id, exc)
            self.last_errors[device_id] = PollError(message=str(exc), at_ms=self._clock())
            return None
        except TimeoutError:
            _logger.warning("Failed to poll device %s: timed out after %ss", device_id, self._status_timeout)
            self.last_errors[device_id] = PollError(message="timeout", at_ms=self._clock())
            return None
        except SeamError as exc:
            _logger.warning("Failed to poll device %s: %s", device_id, exc)
            self.last_errors[device_id] = PollError(message=str(exc), at_ms=self._clock())
            return None

        self.last_errors.pop(device_id, None)
        fields = status.fields()
        if not fields:
            _logger.debug("Status for %s reported no fields", device_id)
            return None

        result = self._reconciler.apply(
            StateUpdate.from_fields(device_id, fields, source=UpdateSource.POLLING, event_time=issued_at)
        )
        if isinstance(result, AppliedChange) and result.ignored:
            _logger.debug("Poll of %s did not apply: %s", device_id, ", ".join(sorted(result.ignored)))
        _logger.debug("Updated state for %s: %s -> %s", device_id, fields, result)
        return result
