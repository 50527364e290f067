"""
Dashboard entry point.

    1. Parse CLI arguments and initialise logging
    2. Load and validate environment settings
    3. Build the app (registry, session manager, projector, summarizer)
    4. Launch FastAPI server via uvicorn

The MQTT session is opened later, when a user logs in from the page.

Architecture:
    MQTT Broker --> SessionManager --> decode() --> DeviceRegistry
                                   --> ConnectionStateProjector
    Browser     --> FastAPI        --> snapshot() / status / Summarizer
"""

import contextlib
import logging

import uvicorn

from thermodash.app import create_app
from thermodash.misc import get_cli_args, init_logging, load_settings


def main() -> None:
    args = get_cli_args()
    init_logging(args.log_level)
    settings = load_settings()
    logger = logging.getLogger("Main")

    if args.port is not None:
        settings = settings._replace(app_port=args.port)
    if args.auto_reconnect is not None:
        settings = settings._replace(mqtt_auto_reconnect=args.auto_reconnect)

    logger.info(
        "Broker [bright_magenta]%s:%d[/] (%s, tls=%s), topic [bright_green]%s[/]",
        settings.mqtt_broker,
        settings.mqtt_port,
        settings.mqtt_transport,
        settings.mqtt_use_tls,
        settings.mqtt_topic,
    )
    if settings.mqtt_auto_reconnect:
        logger.info("Auto-reconnect enabled")

    app = create_app(settings)

    with contextlib.suppress(KeyboardInterrupt):
        uvicorn.run(app, host=args.host, port=settings.app_port, root_path=settings.app_root_path, log_config=None)


if __name__ == "__main__":
    main()
