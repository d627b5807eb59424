"""Gateway relay - forwards node readings to the cloud store."""

import asyncio
import logging
import signal
import sys
from typing import Optional

from .relay import GatewayRelay, UploadResult

logger = logging.getLogger(__name__)


def build_relay(config) -> GatewayRelay:
    """Wire a relay from configuration."""
    from floodwatch.shared.logging import DiagnosticsBuffer
    from floodwatch.store import create_store
    from .lines import SerialLineSource, StreamLineSource
    from .links import LinkSupervisor, PingNetworkLink, StoreLink

    store = create_store(config.store)

    if config.serial_port:
        source = SerialLineSource(config.serial_port, config.baud_rate, config.read_timeout)
    else:
        source = StreamLineSource()

    diagnostics = DiagnosticsBuffer(capacity=config.diagnostics_capacity)
    logging.getLogger("floodwatch").addHandler(diagnostics)

    return GatewayRelay(
        config=config,
        source=source,
        store=store,
        network=LinkSupervisor(PingNetworkLink(config.network), config.link),
        store_link=LinkSupervisor(StoreLink(store), config.link),
        diagnostics=diagnostics,
    )


async def _run(relay: GatewayRelay) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(relay.run())

    def shutdown():
        logger.info("Received shutdown signal")
        relay.stop()
        # boot() may be sleeping between connect attempts
        task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown)
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Relay cancelled")
    finally:
        await relay.close()


def main(config_path: Optional[str] = None):
    """Entry point for the gateway relay service."""
    from .config import load_config
    from floodwatch.shared.logging import setup_logging

    config = load_config(config_path)
    setup_logging(config.log_level)

    logger.info(f"Starting gateway relay for device {config.device_id}...")
    relay = build_relay(config)

    try:
        asyncio.run(_run(relay))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


__all__ = ["GatewayRelay", "UploadResult", "build_relay", "main"]
