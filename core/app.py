import asyncio
import signal
import sys

from dotenv import load_dotenv

from core.config_loader import ChatConfig, load_chat_config
from core.presence import PresenceTracker
from core.scheduler import Scheduler
from runtime import version
from services.chat_api import ChatApiServer, ChatService
from shared.logging.logger import get_logger
from shared.storage.gateway import create_gateway

log = get_logger("core.app")


async def main(stop_event: asyncio.Event, config: ChatConfig | None = None):
    # --------------------------------------------------
    # ENV + CONFIG
    # --------------------------------------------------
    if config is None:
        load_dotenv()
        log.info("Environment variables loaded")
        config = load_chat_config()
    log.info(f"{version.as_string()} booting")

    # --------------------------------------------------
    # CORE SYSTEMS
    # --------------------------------------------------
    gateway = create_gateway(config.storage.backend, config.storage.db_path)
    tracker = PresenceTracker(
        gateway,
        stale_after=config.presence.stale_after_seconds,
        notice_sender=config.presence.notice_sender,
        system_sender=config.presence.system_sender,
    )
    service = ChatService(gateway, tracker)
    api = ChatApiServer(config.api, service)
    scheduler = Scheduler(tracker, interval=config.presence.sweep_interval_seconds)

    # --------------------------------------------------
    # START
    # --------------------------------------------------
    api.start()
    scheduler.start()

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL
    # --------------------------------------------------
    await stop_event.wait()

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN (SWEEPS FIRST)
    # --------------------------------------------------
    try:
        await scheduler.shutdown()
    except Exception as e:
        log.warning(f"Scheduler shutdown error ignored: {e}")

    try:
        api.stop()
    except Exception as e:
        log.warning(f"API shutdown error ignored: {e}")

    gateway.close()
    log.info("Chat server stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # not on the main thread
        log.debug("Signal handlers not installed")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutting down")

    finally:
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())
        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
