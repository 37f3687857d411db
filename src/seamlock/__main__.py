"""Run the lock platform until interrupted.

Usage::

    python -m seamlock --config config.json
    SEAM_API_KEY=... SEAM_DEVICE_IDS=a,b python -m seamlock --debug
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from seamlock.config import SeamConfig
from seamlock.exceptions import SeamConfigError
from seamlock.platform import SeamLockPlatform

_logger = logging.getLogger("seamlock")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="seamlock", description="Mirror Seam smart lock state")
    parser.add_argument("--config", help="JSON config document (default: SEAM_* environment variables)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


async def run(config: SeamConfig) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with SeamLockPlatform(config):
        await stop.wait()
        _logger.info("Shutting down")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = SeamConfig.from_file(args.config) if args.config else SeamConfig.from_env()
    except SeamConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2

    if args.debug or config.debug:
        _logger.setLevel(logging.DEBUG)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
