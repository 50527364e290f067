from __future__ import annotations

from argparse import ArgumentParser, ArgumentTypeError
from typing import TYPE_CHECKING, NamedTuple

from rich_argparse import RichHelpFormatter

from .logging_conf import LEVELS, LOG_ABBREV_2_LVL

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .logging_conf import LogLvl


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        port = 0

    if not 1 <= port <= 65535:  # noqa: PLR2004
        msg = f"invalid port: {value!r}"
        raise ArgumentTypeError(msg)
    return port


def _mk_parser() -> ArgumentParser:
    RichHelpFormatter.usage_markup = True
    RichHelpFormatter.styles.update(
        {
            "argparse.args": "cyan",
            "argparse.groups": "green bold",
            "argparse.metavar": "dim cyan",
            "argparse.prog": "cyan bold",
        },
    )

    parser = ArgumentParser(
        description="Temperature dashboard: live MQTT sensor readings in the browser, with LLM summaries",
        epilog="Broker, topic and API key come from the environment (or [cyan].env[/]).",
        formatter_class=RichHelpFormatter,
    )

    web = parser.add_argument_group("web server")
    web.add_argument(
        "-H",
        "--host",
        default="0.0.0.0",  # noqa: S104
        help="bind address (default: [yellow]0.0.0.0[/])",
        metavar="ADDR",
    )
    web.add_argument(
        "-p",
        "--port",
        type=_port,
        help="listen port, overrides [cyan]APP_PORT[/]",
    )

    mqtt = parser.add_argument_group("mqtt")
    mqtt.add_argument(
        "--auto-reconnect",
        action="store_const",
        const=True,
        help="retry with backoff after a lost connection, overrides [cyan]MQTT_AUTO_RECONNECT[/]",
    )

    levels = ", ".join(f"[{lv.color}]{lv.abbrev}[/]" for lv in LEVELS)
    parser.add_argument(
        "-l",
        "--log-level",
        default="INF",
        choices=LOG_ABBREV_2_LVL,
        help=f"log level (default: [yellow]INF[/]) [{levels}]",
        metavar="L",
    )
    return parser


class _Args(NamedTuple):
    host: str
    port: int | None
    auto_reconnect: bool | None
    log_level: LogLvl


def get_cli_args(argv: Sequence[str] | None = None) -> _Args:
    """Parse CLI arguments. `None` means "keep the environment's value"."""

    args = _mk_parser().parse_args(argv)
    return _Args(
        host=args.host,
        port=args.port,
        auto_reconnect=args.auto_reconnect,
        log_level=LOG_ABBREV_2_LVL[args.log_level],
    )
