#!/usr/bin/env python3
"""Home control server."""

import asyncio
import logging
import signal
import sys

from constants import DEFAULT_CONFIG_FILE
from homecontrol_app import HomeControl, load_config

logger = logging.getLogger(__name__)


async def main(config_path: str = DEFAULT_CONFIG_FILE):
    """Main entry point."""
    config = load_config(config_path)
    if config['debug']:
        logging.getLogger().setLevel(logging.DEBUG)

    app = HomeControl(config)
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    async def runner():
        try:
            await app.start()
            await stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await app.stop()

    task = loop.create_task(runner())

    def _shutdown():
        if not stop_event.is_set():
            logger.info("Shutting down...")
            stop_event.set()

    async def reload():
        try:
            rooms = load_config(config_path)['rooms']
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Unable to reload the configuration: {e}")
            return
        await app.reload_environment(rooms)

    def _reload():
        logger.info("Reloading the environment configuration...")
        loop.create_task(reload())

    handlers = [(signal.SIGINT, _shutdown), (signal.SIGTERM, _shutdown)]
    if hasattr(signal, "SIGHUP"):
        handlers.append((signal.SIGHUP, _reload))

    for sig, handler in handlers:
        try:
            loop.add_signal_handler(sig, handler)
        except NotImplementedError:
            pass

    await task


def run():
    """Console entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_FILE))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
