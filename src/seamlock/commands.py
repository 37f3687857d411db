"""Serialized lock/unlock commands.

At most one remote command is in flight per device. A caller that arrives
while another command owns the device waits for it to finish, then
re-evaluates: if the reconciled state already matches what it wants, no
second remote call is made.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from seamlock._constants import COMMAND_SETTLE_DELAY, COMMAND_TIMEOUT
from seamlock.client import LockApi
from seamlock.exceptions import (
    SeamCommandTimeoutError,
    SeamCommunicationError,
    SeamConfigError,
    SeamError,
)
from seamlock.ingestion.normalize import now_ms
from seamlock.state.events import StateField, StateUpdate, UpdateSource
from seamlock.state.store import StateReconciler

_logger = logging.getLogger(__name__)


def _describe(locked: bool) -> str:
    return "lock" if locked else "unlock"


class CommandSerializer:
    """Per-device mutual exclusion and timeout around lock/unlock calls.

    This is the only component that sets ``command_in_flight`` on the
    reconciler, and it always clears it again, whatever the outcome.
    """

    def __init__(
        self,
        api: LockApi,
        reconciler: StateReconciler,
        *,
        timeout: float = COMMAND_TIMEOUT,
        settle_delay: float = COMMAND_SETTLE_DELAY,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._api = api
        self._reconciler = reconciler
        self._timeout = timeout
        self._settle_delay = settle_delay
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._closed = False

    def _lock_for(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_id] = lock
        return lock

    def is_in_flight(self, device_id: str) -> bool:
        lock = self._locks.get(device_id)
        return lock is not None and lock.locked()

    async def execute(self, device_id: str, desired_locked: bool) -> None:
        """Lock or unlock *device_id*.

        Raises
        ------
        SeamCommunicationError
            The remote call failed; the remote state is unknown.
        SeamCommandTimeoutError
            The remote call did not finish within the command timeout.
        SeamConfigError
            *device_id* is not a configured device.
        """
        if not self._reconciler.has_device(device_id):
            raise SeamConfigError(f"device {device_id} is not configured")
        if self._closed:
            raise SeamCommunicationError("command serializer is shut down", device_id=device_id)

        lock = self._lock_for(device_id)
        waited = lock.locked()
        if waited:
            _logger.debug("Command for %s already in flight, waiting", device_id)

        async with lock:
            if waited and self._reconciler.get_state(device_id).locked == desired_locked:
                _logger.debug(
                    "%s is already %s after the previous command, skipping",
                    device_id,
                    "locked" if desired_locked else "unlocked",
                )
                return
            await self._run(device_id, desired_locked)

    async def _run(self, device_id: str, desired_locked: bool) -> None:
        action = _describe(desired_locked)
        _logger.info("%sing %s...", action.capitalize(), device_id)
        self._reconciler.mark_command_in_flight(device_id, True)
        try:
            try:
                async with asyncio.timeout(self._timeout):
                    if desired_locked:
                        await self._api.lock_door(device_id, timeout=self._timeout)
                    else:
                        await self._api.unlock_door(device_id, timeout=self._timeout)
            except TimeoutError as exc:
                _logger.error("Timed out trying to %s %s after %ss", action, device_id, self._timeout)
                raise SeamCommandTimeoutError(
                    f"{action} {device_id} timed out after {self._timeout}s",
                    device_id=device_id,
                ) from exc
            except SeamError as exc:
                _logger.error("Failed to %s %s: %s", action, device_id, exc)
                if isinstance(exc.__cause__, TimeoutError):
                    raise SeamCommandTimeoutError(
                        f"{action} {device_id} timed out: {exc}",
                        device_id=device_id,
                    ) from exc
                raise SeamCommunicationError(f"{action} {device_id} failed: {exc}", device_id=device_id) from exc

            self._reconciler.apply(
                StateUpdate(
                    device_id=device_id,
                    fields={StateField.LOCKED: desired_locked},
                    event_time=self._clock(),
                    source=UpdateSource.COMMAND,
                )
            )
            _logger.info("%s %sed successfully", device_id, action)

            # Keep ownership while the hardware settles so a poll cannot
            # read back the pre-command value.
            if self._settle_delay > 0:
                await asyncio.sleep(self._settle_delay)
        finally:
            if self._reconciler.has_device(device_id):
                self._reconciler.mark_command_in_flight(device_id, False)

    async def drain(self) -> None:
        """Refuse new commands and wait for in-flight ones to finish."""
        self._closed = True
        for device_id, lock in list(self._locks.items()):
            if lock.locked():
                _logger.debug("Waiting for in-flight command on %s", device_id)
            async with lock:
                pass
