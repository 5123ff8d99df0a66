from __future__ import annotations

import asyncio
import contextlib
import signal

from aiohttp import web
from dotenv import load_dotenv

from burnshop.api import create_app
from burnshop.common import log_event
from burnshop.runtime import AppSettings, setup_logger
from burnshop.runtime.app import build_services
from burnshop.storage import StorageSettings


async def main() -> None:
    load_dotenv()
    logger = setup_logger()

    app_settings = AppSettings.from_env()
    storage_settings = StorageSettings.from_env()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(sig: signal.Signals) -> None:
        log_event(
            logger,
            level="info",
            event="shutdown_signal_received",
            message="Shutdown signal received",
            signal=sig.name,
        )
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, request_shutdown, sig)

    services = await build_services(
        settings=app_settings,
        storage_settings=storage_settings,
        logger=logger,
    )
    sweepers = services.start_sweepers(stop_event=stop_event)

    app = create_app(
        orchestrator=services.orchestrator,
        health=services.health,
        logger=logger,
    )
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, app_settings.api_host, app_settings.api_port)
    await site.start()
    log_event(
        logger,
        level="info",
        event="api_started",
        message="Burn shop API listening",
        host=app_settings.api_host,
        port=app_settings.api_port,
    )

    try:
        await stop_event.wait()
    finally:
        await runner.cleanup()

        for task in sweepers:
            task.cancel()
        await asyncio.gather(*sweepers, return_exceptions=True)

        await services.close()
        log_event(
            logger,
            level="info",
            event="shutdown_completed",
            message="Shutdown completed",
        )


if __name__ == "__main__":
    asyncio.run(main())
