"""Courier entry point."""

import asyncio
import logging
import signal

from courier.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
# APScheduler logs every job submission at INFO.
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Recover stored tasks, then serve the API until SIGINT or SIGTERM."""
    from courier.notifications.email import SmtpNotifier
    from courier.scheduler.engine import SchedulerEngine
    from courier.scheduler.store import TaskStore
    from courier.server.app import ApiServer

    notifier = SmtpNotifier.from_settings(settings)
    if not notifier.configured:
        logger.warning("SMTP_HOST is empty; every delivery will fail")

    store = TaskStore()
    engine = SchedulerEngine(store=store, notifier=notifier)
    server = ApiServer(engine)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    # Recovery must finish before the API accepts requests.
    await engine.start()
    try:
        await server.start()
        await stop.wait()
        logger.info("Shutdown requested")
    finally:
        await server.stop()
        await engine.stop()


def main() -> None:
    """Start the scheduler and HTTP API."""
    logger.info("Starting Courier (db=%s)...", settings.database_path)
    asyncio.run(run())


if __name__ == "__main__":
    main()
