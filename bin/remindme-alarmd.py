#!/usr/bin/env python3
"""RemindMe alarm daemon."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from remindme.alarms.config import AlarmConfig
from remindme.alarms.daemon import AlarmDaemon

LOGGER = logging.getLogger("remindme-alarmd")


async def main() -> None:
    config = AlarmConfig.from_env()
    parser = argparse.ArgumentParser()
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    daemon = AlarmDaemon(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    report = await daemon.start()
    if report.failed:
        LOGGER.warning("Startup recovery left %d alarm(s) unarmed", len(report.failed))
    await stop_event.wait()
    await daemon.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
