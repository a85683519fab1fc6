"""Entry point: wire the listener, tracker and Telegram gateway together."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog

from .config.manager import ConfigManager, initialize_config
from .gateway.notifier import TelegramNotifier
from .gateway.telegram_client import TelegramClient
from .gsi.listener import TelemetryListener
from .logs import configure_logging, on_config_updated
from .persistence.store import SaveStore
from .tracker.actor import ReconciliationActor
from .tracker.requests import TrackerClient

logger = structlog.get_logger(__name__)

CONTROL_QUEUE_SIZE = 32


async def _reload_dynamic_config(config: ConfigManager) -> None:
    """SIGHUP handler body: apply edited dynamic keys without a restart."""
    try:
        await config.reload_dynamic_config()
    except ValueError as e:
        logger.error("config_reload_rejected", error=str(e), error_type=type(e).__name__)


async def run(config: ConfigManager) -> None:
    """Run until SIGINT/SIGTERM."""
    token = config.get("telegram.bot_token")
    if not token:
        raise ValueError("telegram.bot_token is not set (use STALKER_TELEGRAM_BOT_TOKEN)")

    host = config.get("gsi.host")
    port = config.get("gsi.port")

    store = SaveStore(config.get("store.path"), save_retries=config.get("store.save_retries"))
    config.subscribe(store.on_config_updated)
    save_data = await store.load()

    control_queue: asyncio.Queue = asyncio.Queue(maxsize=CONTROL_QUEUE_SIZE)
    snapshot_queue: asyncio.Queue = asyncio.Queue(maxsize=config.get("gsi.queue_size"))

    telegram = TelegramClient(token, TrackerClient(control_queue), gsi_uri=f"http://{host}:{port}/")
    await telegram.start()

    notifier = TelegramNotifier(
        telegram.bot,
        timeout_seconds=config.get("notifier.timeout_seconds"),
        max_retries=config.get("notifier.max_retries"),
        backoff_base_seconds=config.get("notifier.backoff_base_seconds"),
    )
    config.subscribe(notifier.on_config_updated)

    actor = ReconciliationActor(save_data, store, notifier, control_queue, snapshot_queue)
    listener = TelemetryListener(
        snapshot_queue,
        host=host,
        port=port,
        max_request_bytes=config.get("gsi.max_request_bytes"),
        read_timeout_seconds=config.get("gsi.read_timeout_seconds"),
    )
    config.subscribe(listener.on_config_updated)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still raises KeyboardInterrupt.
            pass

    reloads: set[asyncio.Task] = set()

    def _schedule_reload() -> None:
        task = loop.create_task(_reload_dynamic_config(config))
        reloads.add(task)
        task.add_done_callback(reloads.discard)

    if hasattr(signal, "SIGHUP"):
        loop.add_signal_handler(signal.SIGHUP, _schedule_reload)

    logger.info("dota_stalker_initializing")
    await actor.start()
    await listener.start()
    try:
        await stop_event.wait()
    finally:
        await listener.stop()
        await telegram.stop()
        await actor.stop()
        logger.info("goodbye")


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(prog="dota-stalker", description=__doc__)
    parser.add_argument("--config", type=Path, default=Path("config/default.toml"), help="TOML config file")
    parser.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file with secrets")
    args = parser.parse_args()

    try:
        config = initialize_config(args.config, args.env_file)
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config.get("logging.level"), config.get("logging.file_path"))
    config.subscribe(on_config_updated)
    logger.info("config_loaded", config=config.describe())

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        return 0
    except (ValueError, OSError) as e:
        logger.error("startup_failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
