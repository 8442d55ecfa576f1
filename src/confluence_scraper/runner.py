"""Entrypoint wiring together config, engine, telemetry, and scheduler."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from contextlib import suppress

import uvicorn
from dotenv import load_dotenv

from .admin_api import build_admin_app
from .config import AppConfig, load_config
from .scheduler import GatherScheduler
from .scraper_engine import GatherEngine
from .telemetry import Telemetry


def setup_logging(level: str) -> None:
    """Configure base logging."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    logging.getLogger().setLevel(numeric)


def _check_admin_settings(app_config: AppConfig) -> None:
    """Fail fast when the admin API is enabled without its secret."""
    secret_env = app_config.scraper.adminSecretEnv
    if not secret_env:
        raise ValueError(
            "enableAdminApi=true requires scraper.adminSecretEnv to be set to an env var name"
        )
    if secret_env not in os.environ:
        raise ValueError(
            f"enableAdminApi=true requires environment variable '{secret_env}' to be set for admin authentication"
        )


async def async_main(config_path: str) -> None:
    """Async entrypoint loading config and running scheduler."""
    app_config: AppConfig = load_config(config_path)
    setup_logging(app_config.scraper.logLevel)
    log = logging.getLogger(__name__)
    log.info(
        "Loaded %s Confluence target(s) from %s",
        len(app_config.targets),
        config_path,
    )
    for target in app_config.targets:
        log.info(
            "Target %s: %s every %s (maxConnections=%s, httpTimeout=%s, auth=%s)",
            target.name,
            target.url,
            app_config.frequency_for(target),
            target.max_connections,
            target.httpTimeout,
            "basic" if target.username and target.password else "none",
        )

    if app_config.scraper.enableAdminApi:
        _check_admin_settings(app_config)

    telemetry = Telemetry(app_config.scraper)
    engine = GatherEngine(app_config, telemetry)
    engine_scheduler = GatherScheduler(app_config, engine)

    admin_server_task = None
    if app_config.scraper.enableAdminApi:
        admin_app = build_admin_app(app_config, engine)
        uv_config = uvicorn.Config(
            admin_app,
            host="0.0.0.0",
            port=app_config.scraper.servicePort,
            log_level=app_config.scraper.logLevel.lower(),
        )
        admin_server = uvicorn.Server(uv_config)
        admin_server_task = asyncio.create_task(admin_server.serve())

        def _handle_server_error(task: asyncio.Task) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc:
                log.error("Admin API failed to start: %s", exc)

        admin_server_task.add_done_callback(_handle_server_error)

    engine_scheduler.start()
    await engine_scheduler.run_all_once()

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        if admin_server_task:
            admin_server_task.cancel()
            with suppress(asyncio.CancelledError):
                await admin_server_task
        await engine_scheduler.shutdown(app_config.scraper.terminateGracefully)
        await engine.close()
        await telemetry.shutdown()


def main() -> None:
    """CLI entrypoint."""
    load_dotenv()
    config_path = os.environ.get("SCRAPER_CONFIG", "config.yaml")
    try:
        asyncio.run(async_main(config_path))
    except FileNotFoundError:
        print(f"Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Scraper failed: {exc}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
